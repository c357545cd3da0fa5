from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, Optional, Union
from warnings import warn

import numpy as np

from .errors import UnknownParameterKindError
from .formula import Node, as_formula, free_names, to_source
from .util import Value, as_value, filled_like, format_value, value_length


__all__ = [
    "Kind",
    "Parameter",
    "ValuedParameter",
    "Constant",
    "Free",
    "Derived",
    "IndependentPlaceholder",
    "make_parameter",
    "as_constant",
    "as_free",
    "as_derived",
]


class Kind(str, Enum):
    """Closed set of parameter kinds."""

    CONSTANT = "constant"
    FREE = "free"
    DERIVED = "derived"
    INDEPENDENT = "independent"


# Accepted spellings for make_parameter(kind=...); "parameter" and
# "expression" are the older names for free and derived parameters.
_KIND_ALIASES: Dict[str, Kind] = {
    "constant": Kind.CONSTANT,
    "free": Kind.FREE,
    "parameter": Kind.FREE,
    "derived": Kind.DERIVED,
    "expression": Kind.DERIVED,
    "independent": Kind.INDEPENDENT,
}


def _copy_value(v: Any) -> Any:
    return v.copy() if isinstance(v, np.ndarray) else v


@dataclass(eq=False)
class Parameter:
    """Base class for a named model parameter."""

    name: str

    kind: ClassVar[Kind]
    label: ClassVar[str] = "Parameter"

    def __len__(self) -> int:
        return 0

    def depends_on(self) -> FrozenSet[str]:
        """Names this parameter needs resolved before it can be evaluated."""
        return frozenset()

    def __str__(self) -> str:
        return f"{self.label}: name={self.name}"


class ValuedParameter(Parameter):
    """A parameter carrying a value: every kind but the placeholder.

    `value` is a python float or a 1-D float array ("vectorized"
    parameter); len(p) is its number of elements. Subclasses declare it as
    a dataclass field.
    """

    value: Value

    def __len__(self) -> int:
        return value_length(self.value)

    def __str__(self) -> str:
        return f"{self.label}: name={self.name}, value={format_value(self.value)}"


@dataclass(eq=False)
class Constant(ValuedParameter):
    value: Value = np.nan

    kind: ClassVar[Kind] = Kind.CONSTANT
    label: ClassVar[str] = "Constant"

    def __post_init__(self) -> None:
        self.value = as_value(self.value)


@dataclass(eq=False)
class Free(ValuedParameter):
    """A bounded parameter varied by the optimiser.

    Missing bounds default to -inf/+inf in the shape of `value`.
    """

    value: Value = np.nan
    min: Optional[Value] = None
    max: Optional[Value] = None

    kind: ClassVar[Kind] = Kind.FREE
    label: ClassVar[str] = "Free"

    def __post_init__(self) -> None:
        self.value = as_value(self.value)
        self.min = filled_like(self.value, -np.inf) if self.min is None else as_value(self.min)
        self.max = filled_like(self.value, np.inf) if self.max is None else as_value(self.max)

    def __str__(self) -> str:
        return (
            f"{super().__str__()}, min={format_value(self.min)}, max={format_value(self.max)}"
        )


@dataclass(eq=False)
class Derived(ValuedParameter):
    """A parameter computed from other parameters.

    `value` holds the last evaluated result. A vector `value` given by the
    caller fixes the shape the formula result is broadcast to; otherwise
    compiling infers the shape from the formula's operands and adopts it.
    """

    formula: Union[str, Node] = ""
    value: Value = np.nan
    # set when the current shape of `value` was inferred by the compiler
    shape_inferred: bool = field(default=False, init=False, repr=False)

    kind: ClassVar[Kind] = Kind.DERIVED
    label: ClassVar[str] = "Derived"

    def __post_init__(self) -> None:
        self.formula = as_formula(self.formula)
        self.value = as_value(self.value)

    def depends_on(self) -> FrozenSet[str]:
        return free_names(as_formula(self.formula))

    def __str__(self) -> str:
        return f"{super().__str__()}, formula={to_source(as_formula(self.formula))}"


@dataclass(eq=False)
class IndependentPlaceholder(Parameter):
    """Slot for externally supplied data such as the x-axis of a fit."""

    kind: ClassVar[Kind] = Kind.INDEPENDENT
    label: ClassVar[str] = "IndependentPlaceholder"


# ---- construction ----------------------------------------------------------

_UNSET: Any = object()


def _warn_or_raise(strict: bool, message: str) -> None:
    """Warn or raise based on strict mode."""
    if strict:
        raise ValueError(message)
    warn(message, UserWarning, stacklevel=3)


def _kind_from(kind: Union[Kind, str, None], *, independent: bool, formula: Any) -> Kind:
    if kind is None:
        if independent:
            return Kind.INDEPENDENT
        if formula is not None:
            return Kind.DERIVED
        return Kind.FREE
    if isinstance(kind, Kind):
        return kind
    if isinstance(kind, str) and kind.lower() in _KIND_ALIASES:
        return _KIND_ALIASES[kind.lower()]
    raise UnknownParameterKindError(
        f"Unknown parameter kind {kind!r}. Available: {tuple(k.value for k in Kind)}"
    )


def make_parameter(
    name: str,
    *,
    kind: Union[Kind, str, None] = None,
    value: Any = _UNSET,
    min: Any = None,
    max: Any = None,
    formula: Union[str, Node, None] = None,
    independent: bool = False,
    strict: bool = False,
) -> Parameter:
    """Build a parameter from a name and keyword options.

    Without `kind`, the kind is inferred: ``independent=True`` gives an
    IndependentPlaceholder, a `formula` gives a Derived parameter, anything
    else a Free one. An explicit `kind` always wins. Options the chosen kind
    has no use for are dropped with a warning (or rejected when
    ``strict=True``).
    """
    k = _kind_from(kind, independent=independent, formula=formula)

    given = {
        "value": value is not _UNSET,
        "min": min is not None,
        "max": max is not None,
        "formula": formula is not None,
        "independent": bool(independent) and k is not Kind.INDEPENDENT,
    }
    used = {
        Kind.CONSTANT: {"value"},
        Kind.FREE: {"value", "min", "max"},
        Kind.DERIVED: {"value", "formula"},
        Kind.INDEPENDENT: set(),
    }[k]
    ignored = [opt for opt, was_given in given.items() if was_given and opt not in used]
    if ignored:
        _warn_or_raise(
            strict,
            f"item {name}: {k.value} parameters ignore {', '.join(ignored)}.",
        )

    v = np.nan if value is _UNSET else value
    if k is Kind.CONSTANT:
        return Constant(name, value=v)
    if k is Kind.FREE:
        return Free(name, value=v, min=min, max=max)
    if k is Kind.DERIVED:
        if formula is None:
            raise TypeError(f"item {name}: a derived parameter requires a formula.")
        return Derived(name, formula=formula, value=v)
    return IndependentPlaceholder(name)


# ---- conversions -------------------------------------------------------------


def _require_value(p: Parameter) -> Value:
    if not isinstance(p, ValuedParameter):
        raise TypeError(f"item {p.name}: an independent placeholder carries no value.")
    return _copy_value(p.value)


def as_constant(p: Parameter) -> Constant:
    """Freeze a parameter at its current value."""
    return Constant(p.name, value=_require_value(p))


def as_free(p: Parameter, *, min: Any = None, max: Any = None) -> Free:
    """Turn a parameter into a free one, keeping existing bounds unless given."""
    value = _require_value(p)
    if isinstance(p, Free):
        min = _copy_value(p.min) if min is None else min
        max = _copy_value(p.max) if max is None else max
    return Free(p.name, value=value, min=min, max=max)


def as_derived(p: Parameter, formula: Union[str, Node]) -> Derived:
    """Replace a parameter by one computed from `formula`, seeded with its value."""
    return Derived(p.name, formula=formula, value=_require_value(p))
