"""Structural checks on parameters and parameter collections."""

from __future__ import annotations

from typing import Mapping

import numpy as np

from .errors import (
    FormulaSyntaxError,
    InvalidBoundsError,
    LengthMismatchError,
    NameKeyMismatchError,
    OutOfBoundsError,
)
from .formula import Node
from .params import Derived, Free, Parameter
from .util import as_flat, format_value, value_length


__all__ = ["validate_parameter", "validate_parameters"]


def _validate_free(p: Free) -> None:
    n = value_length(p.value)
    if n != value_length(p.min) or n != value_length(p.max):
        raise LengthMismatchError(
            f"item {p.name}: length of all values and limit variables must be the same "
            f"(value={n}, min={value_length(p.min)}, max={value_length(p.max)})"
        )

    value, lo, hi = as_flat(p.value), as_flat(p.min), as_flat(p.max)
    if np.any(lo > hi):
        raise InvalidBoundsError(
            f"item {p.name}: min = {format_value(p.min)} must not exceed max = {format_value(p.max)}"
        )
    # Written as a negation so NaN values fail too.
    if not np.all((lo <= value) & (value <= hi)):
        raise OutOfBoundsError(
            f"item {p.name}: value = {format_value(p.value)} must be between "
            f"min = {format_value(p.min)} and max = {format_value(p.max)}"
        )


def _validate_derived(p: Derived) -> None:
    if not isinstance(p.formula, Node):
        raise FormulaSyntaxError(
            f"item {p.name}: formula must be a parsed expression, got {type(p.formula).__name__}"
        )


def validate_parameter(p: Parameter) -> bool:
    """Check one parameter; constants and placeholders always pass."""
    if isinstance(p, Free):
        _validate_free(p)
    elif isinstance(p, Derived):
        _validate_derived(p)
    return True


def validate_parameters(params: Mapping[str, Parameter]) -> bool:
    """Check every key matches its entry's name, then every entry."""
    for key, p in params.items():
        if key != p.name:
            raise NameKeyMismatchError(
                f"item {key}: Parameters name-key must match the name {p.name!r} of the associated record"
            )
        validate_parameter(p)
    return True
