"""Exceptions raised while building, resolving and evaluating parameters."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple


__all__ = [
    "ParameterError",
    "LengthMismatchError",
    "InvalidBoundsError",
    "OutOfBoundsError",
    "NameKeyMismatchError",
    "CircularDependencyError",
    "UnknownReferenceError",
    "UnknownParameterKindError",
    "FormulaSyntaxError",
]


class ParameterError(ValueError):
    """Base class for every parameter-set failure."""


class LengthMismatchError(ParameterError):
    """value/min/max, or a flat vector, have disagreeing lengths."""


class InvalidBoundsError(ParameterError):
    """A lower bound is greater than its upper bound."""


class OutOfBoundsError(ParameterError):
    """A value lies outside its declared bounds."""


class NameKeyMismatchError(ParameterError):
    """A collection key differs from the name stored on its entry."""


class CircularDependencyError(ParameterError):
    def __init__(self, names: Iterable[str]):
        self.names: Tuple[str, ...] = tuple(names)
        super().__init__(
            f"Circular dependencies detected between: {', '.join(self.names)}"
        )


class UnknownReferenceError(ParameterError):
    def __init__(self, name: str, missing: Iterable[str], reason: str = "not defined"):
        self.name = name
        self.missing: Tuple[str, ...] = tuple(sorted(missing))
        super().__init__(
            f"item {name}: formula refers to {', '.join(self.missing)} ({reason})"
        )


class UnknownParameterKindError(ParameterError):
    """Construction was given a kind discriminant that is not recognised."""


class FormulaSyntaxError(ParameterError):
    def __init__(self, message: str, text: str = "", position: Optional[int] = None):
        self.text = text
        self.position = position
        if position is not None and text:
            message = f"{message} at position {position} in {text!r}"
        super().__init__(message)
