from __future__ import annotations

import copy
from collections.abc import MutableMapping
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import numpy as np

from .errors import LengthMismatchError
from .evaluator import Evaluator, compile_evaluator, structure_key
from .params import Free, Kind, Parameter, ValuedParameter, make_parameter
from .resolver import resolve_order
from .util import as_flat, offsets
from .validation import validate_parameters


__all__ = ["Parameters", "update_from_vector"]


class Parameters(MutableMapping):
    """Ordered mapping name -> Parameter.

    Order matters: once resolve() has run it is an evaluation order, and it
    always fixes the layout of the flat vectors used by the evaluator and by
    update_from_vector().

    Examples
    --------
    >>> ps = (
    ...     Parameters()
    ...     .add("a", value=2.0)
    ...     .add("b", kind="constant", value=3.0)
    ...     .add("c", formula="a + b")
    ... )
    >>> ps.resolve().compile()([5.0])
    array([5., 3., 8.])
    """

    def __init__(self, *parameters: Union[Parameter, Iterable[Parameter]]):
        self._items: Dict[str, Parameter] = {}
        self._compiled: Optional[Tuple[Tuple[Any, ...], Evaluator]] = None
        for p in parameters:
            self.add(p)

    # ---- mapping protocol ----
    def __getitem__(self, name: str) -> Parameter:
        return self._items[name]

    def __setitem__(self, name: str, p: Parameter) -> None:
        # The key is stored as given; validate() reports a key/name mismatch.
        if not isinstance(p, Parameter):
            raise TypeError(f"Expected a Parameter, got {type(p).__name__}")
        self._items[name] = p

    def __delitem__(self, name: str) -> None:
        del self._items[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __str__(self) -> str:
        lines = ["Parameters:"]
        lines.extend(f"\t{p}" for p in self._items.values())
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Parameters({', '.join(self._items)})"

    # ---- building ----
    def add(
        self,
        p: Union[Parameter, str, Iterable[Parameter]],
        kind: Union[Kind, str, None] = None,
        **options: Any,
    ) -> "Parameters":
        """Insert or replace parameters.

        Accepts a Parameter, an iterable of Parameters, or a name plus the
        keyword options of make_parameter(). Returns self for chaining.
        """
        if isinstance(p, Parameter):
            if kind is not None or options:
                raise TypeError("Options can only be given together with a parameter name.")
            self[p.name] = p
        elif isinstance(p, str):
            self[p] = make_parameter(p, kind=kind, **options)
        else:
            if kind is not None or options:
                raise TypeError("Options can only be given together with a parameter name.")
            if isinstance(p, Mapping):
                p = p.values()
            for item in p:
                self.add(item)
        return self

    def copy(self) -> "Parameters":
        """Deep copy; the copy shares no parameter objects with self."""
        out = Parameters()
        out._items = copy.deepcopy(self._items)
        return out

    # ---- structure ----
    def depends_on(self) -> Dict[str, FrozenSet[str]]:
        """name -> names referenced by that entry's formula."""
        return {name: p.depends_on() for name, p in self._items.items()}

    def validate(self) -> bool:
        """Raise on the first invalid entry, return True otherwise."""
        return validate_parameters(self)

    def resolve(self) -> "Parameters":
        """Reorder entries into evaluation order.

        The new order is installed only when every entry resolves; on
        CircularDependencyError the collection is left exactly as it was.
        """
        order = resolve_order(self)
        self._items = {name: self._items[name] for name in order}
        return self

    def compile(self) -> Evaluator:
        """Return an Evaluator for the current structure.

        The collection is validated on every call. The evaluator is cached
        and rebuilt only when names, order, kinds, shapes, bounds, formulas
        or constant values change.
        """
        validate_parameters(self)
        key = structure_key(self)
        if self._compiled is not None and self._compiled[0] == key:
            return self._compiled[1]
        evaluator = compile_evaluator(self)
        # compiling may adopt inferred Derived shapes
        self._compiled = (structure_key(self), evaluator)
        return evaluator

    # ---- vectors ----
    def _valued(self) -> List[ValuedParameter]:
        return [p for p in self._items.values() if isinstance(p, ValuedParameter)]

    def values_vector(self) -> np.ndarray:
        """Current values of every non-placeholder entry, in collection order."""
        parts = [as_flat(p.value) for p in self._valued()]
        if not parts:
            return np.empty((0,), dtype=float)
        return np.concatenate(parts)

    def free_vector(self) -> np.ndarray:
        """Current Free values, in evaluator-input layout (an optimiser's x0)."""
        parts = [as_flat(p.value) for p in self._items.values() if isinstance(p, Free)]
        if not parts:
            return np.empty((0,), dtype=float)
        return np.concatenate(parts)

    def free_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """(lower, upper) arrays of Free bounds, in evaluator-input layout."""
        frees = [p for p in self._items.values() if isinstance(p, Free)]
        if not frees:
            return (np.empty((0,), dtype=float), np.empty((0,), dtype=float))
        lo = np.concatenate([as_flat(p.min) for p in frees])
        hi = np.concatenate([as_flat(p.max) for p in frees])
        return (lo, hi)

    def update_from_vector(self, vector: Any) -> "Parameters":
        update_from_vector(self, vector)
        return self


def update_from_vector(params: Mapping[str, Parameter], vector: Any) -> None:
    """Write a flat vector back into every entry, in collection order.

    Each non-placeholder entry takes len(p) elements: scalars get a python
    float, vectorized entries a fresh array. The length is checked before
    anything is written.
    """
    v = np.asarray(vector, dtype=float)
    entries = [p for p in params.values() if isinstance(p, ValuedParameter)]
    spans = offsets(len(p) for p in entries)
    expected = spans[-1][1] if spans else 0
    if v.ndim != 1 or v.shape[0] != expected:
        raise LengthMismatchError(
            f"Expected a parameter vector of length {expected}, got shape {v.shape}"
        )
    for p, (start, stop) in zip(entries, spans):
        if isinstance(p.value, np.ndarray):
            p.value = v[start:stop].copy()
        else:
            p.value = float(v[start])
