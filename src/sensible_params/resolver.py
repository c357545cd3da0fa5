"""Evaluation ordering for parameters whose formulas reference each other."""

from __future__ import annotations

from typing import Dict, List, Mapping, Set

from .errors import CircularDependencyError, UnknownReferenceError
from .params import Parameter


__all__ = ["dependencies", "resolve_order"]


def dependencies(params: Mapping[str, Parameter]) -> Dict[str, Set[str]]:
    """Return name -> names its formula references (empty for non-derived)."""
    return {name: set(p.depends_on()) for name, p in params.items()}


def resolve_order(params: Mapping[str, Parameter]) -> List[str]:
    """Return the names of `params` in a valid evaluation order.

    Works in passes: every pending entry with nothing left to wait for is
    resolved, in insertion order, and the names resolved in that pass are
    then struck from the remaining dependency sets. A pass that resolves
    nothing while entries remain pending means a cycle.

    `params` is only read; installing the order is the caller's job.
    """
    pending = dependencies(params)

    for name, deps in pending.items():
        missing = deps.difference(params)
        if missing:
            raise UnknownReferenceError(name, missing)

    order: List[str] = []
    while pending:
        resolved = [name for name, deps in pending.items() if not deps]
        if not resolved:
            break
        for name in resolved:
            del pending[name]
        order.extend(resolved)
        for deps in pending.values():
            deps.difference_update(resolved)

    if pending:
        raise CircularDependencyError(pending)
    return order
