"""Compile a parameter collection into a free-vector -> full-vector function.

The collection is turned once into a flat list of instructions::

    LoadFreeSlice  bind a Free parameter to its slice of the input vector
    LoadConstant   bind a Constant to the value captured at compile time
    EvalFormula    evaluate a Derived formula against what is bound so far
    Concat         write every bound value into the output, in collection order

and every call simply runs that list, so the per-call cost is linear in the
total parameter length.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Mapping, Set, Tuple

import numpy as np

from .errors import LengthMismatchError, UnknownReferenceError
from .formula import Node, as_formula, compile_formula, to_source
from .params import Constant, Derived, Free, IndependentPlaceholder, Parameter, ValuedParameter
from .util import Value, as_flat, offsets
from .validation import validate_parameters


__all__ = [
    "LoadFreeSlice",
    "LoadConstant",
    "EvalFormula",
    "Concat",
    "Evaluator",
    "compile_evaluator",
    "structure_key",
]

Env = Dict[str, Value]


@dataclass(frozen=True)
class LoadFreeSlice:
    name: str
    start: int
    stop: int
    scalar: bool

    def execute(self, env: Env, free: np.ndarray) -> None:
        env[self.name] = float(free[self.start]) if self.scalar else free[self.start : self.stop]


@dataclass(frozen=True)
class LoadConstant:
    name: str
    value: Value

    def execute(self, env: Env, free: np.ndarray) -> None:
        env[self.name] = self.value


@dataclass(frozen=True)
class EvalFormula:
    name: str
    formula: Node
    bound_names: Tuple[str, ...]
    # () for a scalar parameter, (n,) for a vectorized one
    shape: Tuple[int, ...]
    func: Callable[[Mapping[str, Any]], Any] = field(repr=False, compare=False)

    def execute(self, env: Env, free: np.ndarray) -> None:
        result = np.asarray(self.func(env), dtype=float)
        if self.shape == ():
            if result.size != 1:
                raise LengthMismatchError(
                    f"item {self.name}: formula {to_source(self.formula)} gave {result.size} "
                    "values for a scalar parameter"
                )
            env[self.name] = float(result.reshape(-1)[0])
            return
        try:
            env[self.name] = np.broadcast_to(result, self.shape)
        except ValueError as e:
            raise LengthMismatchError(
                f"item {self.name}: formula {to_source(self.formula)} gave shape {result.shape}, "
                f"which does not broadcast to the parameter's shape {self.shape}"
            ) from e


@dataclass(frozen=True)
class Concat:
    # (name, start, stop) into the output vector
    layout: Tuple[Tuple[str, int, int], ...]
    size: int

    def execute(self, env: Env) -> np.ndarray:
        out = np.empty((self.size,), dtype=float)
        for name, start, stop in self.layout:
            out[start:stop] = env[name]
        return out


Instruction = Any  # LoadFreeSlice | LoadConstant | EvalFormula


class Evaluator:
    """Callable mapping the free-parameter vector to every resolved value.

    Input layout: Free entries in collection order, each taking len(p)
    elements. Output layout: Free, Constant and Derived entries in
    collection order; independent placeholders appear in neither.
    """

    def __init__(
        self,
        program: Tuple[Instruction, ...],
        concat: Concat,
        free_layout: Tuple[Tuple[str, int, int], ...],
    ):
        self._program = program
        self._concat = concat
        self._free_layout = free_layout
        self.n_free = free_layout[-1][2] if free_layout else 0
        self.n_out = concat.size

    @property
    def instructions(self) -> Tuple[Any, ...]:
        return self._program + (self._concat,)

    @property
    def names(self) -> Tuple[str, ...]:
        """Output entries in layout order."""
        return tuple(name for name, _, _ in self._concat.layout)

    @property
    def layout(self) -> Tuple[Tuple[str, slice], ...]:
        return tuple((n, slice(a, b)) for n, a, b in self._concat.layout)

    @property
    def free_layout(self) -> Tuple[Tuple[str, slice], ...]:
        return tuple((n, slice(a, b)) for n, a, b in self._free_layout)

    def _run(self, free_vector: Any) -> Env:
        # bound slices must not alias the caller's array
        free = np.array(free_vector, dtype=float)
        if free.ndim != 1 or free.shape[0] != self.n_free:
            raise LengthMismatchError(
                f"Expected a free-parameter vector of length {self.n_free}, got shape {free.shape}"
            )
        env: Env = {}
        for ins in self._program:
            ins.execute(env, free)
        return env

    def __call__(self, free_vector: Any) -> np.ndarray:
        return self._concat.execute(self._run(free_vector))

    def as_dict(self, free_vector: Any) -> Dict[str, Value]:
        """Like calling the evaluator, but keyed by parameter name.

        Vector values are fresh arrays the caller may modify.
        """
        env = self._run(free_vector)
        return {
            name: env[name].copy() if isinstance(env[name], np.ndarray) else env[name]
            for name in self.names
        }

    def __repr__(self) -> str:
        return f"Evaluator(n_free={self.n_free}, n_out={self.n_out}, names={self.names})"


def _shape(value: Value) -> Tuple[int, ...]:
    return value.shape if isinstance(value, np.ndarray) else ()


def _derived_shape(p: Derived, formula: Node, operands: List[Tuple[int, ...]]) -> Tuple[int, ...]:
    try:
        inferred = np.broadcast_shapes(*operands) if operands else ()
    except ValueError as e:
        raise LengthMismatchError(
            f"item {p.name}: operands of {to_source(formula)} have shapes {tuple(operands)}, "
            "which do not broadcast together"
        ) from e

    if isinstance(p.value, np.ndarray) and not p.shape_inferred:
        declared = p.value.shape
        try:
            fits = np.broadcast_shapes(inferred, declared) == declared
        except ValueError:
            fits = False
        if not fits:
            raise LengthMismatchError(
                f"item {p.name}: formula {to_source(formula)} gives shape {inferred}, "
                f"which does not broadcast to the parameter's shape {declared}"
            )
        return declared

    if _shape(p.value) != inferred:
        seed = float(np.ravel(p.value)[0]) if np.size(p.value) else np.nan
        p.value = np.full(inferred, seed) if inferred else seed
    p.shape_inferred = True
    return inferred


def compile_evaluator(params: Mapping[str, Parameter]) -> Evaluator:
    """Compile an already resolved collection into an Evaluator.

    The collection is validated first. Its order is used as given: every
    Derived entry may only reference Free and Constant entries or Derived
    entries placed before it.

    Each Derived output shape is the broadcast of its operands' shapes. A
    vector `value` set by the caller must accept that shape; otherwise the
    inferred shape is adopted into `value` (filled with its current scalar)
    so that len(p) and the updater layout agree with the output.
    """
    validate_parameters(params)

    frees: List[Free] = []
    constants: List[Constant] = []
    derived: List[Derived] = []
    placeholders: Set[str] = set()
    for name, p in params.items():
        if isinstance(p, Free):
            frees.append(p)
        elif isinstance(p, Constant):
            constants.append(p)
        elif isinstance(p, Derived):
            derived.append(p)
        elif isinstance(p, IndependentPlaceholder):
            placeholders.add(name)
        else:
            raise TypeError(f"item {name}: unsupported parameter type {type(p).__name__}")

    program: List[Instruction] = []
    free_layout = tuple(
        (p.name, a, b) for p, (a, b) in zip(frees, offsets(len(p) for p in frees))
    )
    for p, (_, a, b) in zip(frees, free_layout):
        program.append(LoadFreeSlice(p.name, a, b, scalar=not isinstance(p.value, np.ndarray)))

    for p in constants:
        v = p.value.copy() if isinstance(p.value, np.ndarray) else p.value
        program.append(LoadConstant(p.name, v))

    shapes: Dict[str, Tuple[int, ...]] = {p.name: _shape(p.value) for p in frees}
    shapes.update((p.name, _shape(p.value)) for p in constants)
    for p in derived:
        deps = p.depends_on()
        if deps & placeholders:
            raise UnknownReferenceError(
                p.name, deps & placeholders, "independent placeholders carry no value"
            )
        if deps - set(params):
            raise UnknownReferenceError(p.name, deps - set(params))
        if deps - set(shapes):
            raise UnknownReferenceError(
                p.name, deps - set(shapes), "not evaluated yet at this position; resolve() first"
            )
        formula = as_formula(p.formula)
        shape = _derived_shape(p, formula, [shapes[d] for d in sorted(deps)])
        program.append(
            EvalFormula(
                p.name,
                formula,
                bound_names=tuple(sorted(deps)),
                shape=shape,
                func=compile_formula(formula),
            )
        )
        shapes[p.name] = shape

    outputs = [p for p in params.values() if not isinstance(p, IndependentPlaceholder)]
    spans = offsets(len(p) for p in outputs)
    concat = Concat(
        layout=tuple((p.name, a, b) for p, (a, b) in zip(outputs, spans)),
        size=spans[-1][1] if spans else 0,
    )
    return Evaluator(tuple(program), concat, free_layout)


def structure_key(params: Mapping[str, Parameter]) -> Tuple[Hashable, ...]:
    """Hashable summary of everything a compiled Evaluator depends on.

    Free values and Derived values are excluded (the evaluator never reads
    them), constant values are included since they are captured.
    """
    key: List[Hashable] = []
    for name, p in params.items():
        if not isinstance(p, ValuedParameter):
            key.append((name, p.kind))
            continue
        extra: Hashable = None
        if isinstance(p, Constant):
            extra = as_flat(p.value).tobytes()
        elif isinstance(p, Derived):
            extra = as_formula(p.formula)
        elif isinstance(p, Free):
            # compiling validates bounds
            extra = (as_flat(p.min).tobytes(), as_flat(p.max).tobytes())
        key.append((name, p.name, p.kind, _shape(p.value), extra))
    return tuple(key)
