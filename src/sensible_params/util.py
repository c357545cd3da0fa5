from __future__ import annotations

from typing import Any, Iterable, Tuple, Union

import numpy as np


Value = Union[float, np.ndarray]


def safe_float(x: Any) -> float:
    """Convert numpy scalar / 0-d array to python float."""
    if isinstance(x, np.ndarray) and x.shape == ():
        return float(x.item())
    return float(x)


def as_value(x: Any) -> Value:
    """Normalize a parameter value.

    Scalars become python floats, sequences become fresh 1-D float arrays
    (never a view of the caller's data).
    """
    arr = np.array(x, dtype=float)
    if arr.ndim == 0:
        return float(arr.item())
    if arr.ndim != 1:
        raise TypeError(
            f"Parameter values must be scalars or 1-D sequences, got shape {arr.shape}."
        )
    return arr


def filled_like(value: Value, fill: float) -> Value:
    """Return `fill` in the shape of `value` (used for default bounds)."""
    if isinstance(value, np.ndarray):
        return np.full(value.shape, fill, dtype=float)
    return float(fill)


def value_length(value: Any) -> int:
    if isinstance(value, np.ndarray):
        return int(value.shape[0])
    return 1


def as_flat(value: Any) -> np.ndarray:
    """View a scalar or 1-D value as a 1-D array."""
    return np.atleast_1d(np.asarray(value, dtype=float))


def offsets(lengths: Iterable[int]) -> Tuple[Tuple[int, int], ...]:
    """Contiguous (start, stop) pairs for a run of lengths."""
    out = []
    start = 0
    for n in lengths:
        out.append((start, start + int(n)))
        start += int(n)
    return tuple(out)


def format_value(value: Any) -> str:
    if isinstance(value, np.ndarray):
        return np.array2string(value, separator=", ")
    return repr(safe_float(value))
