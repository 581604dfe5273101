"""
Field constraint resolution.

A constraint is the permitted-value rule recorded for one (action, field)
pair:

- ``None``: unconstrained, any value passes
- ``Interval`` or ``range``: the value must fall within the bounds
- a callable: a predicate over ``(value)`` or ``(value, entry)``
- anything else: a literal the value must equal

Fields that were never mentioned for an action resolve to ``ABSENT`` and are
always denied.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable

from .base import insecurely


class _Absent:
    def __repr__(self) -> str:
        return "<absent>"


ABSENT: Any = _Absent()


@dataclass(frozen=True)
class Interval:
    """
    Bounded range of comparable values, inclusive by default.

    Example:
        >>> 5 in Interval(0, 5)
        True
        >>> 5 in Interval(0, 5, exclusive=True)
        False
    """

    low: Any
    high: Any
    exclusive: bool = False

    def __contains__(self, value: Any) -> bool:
        try:
            if value < self.low:
                return False
            if self.exclusive:
                return value < self.high
            return value <= self.high
        except TypeError:
            return False


def is_range(constraint: Any) -> bool:
    return isinstance(constraint, (Interval, range))


def predicate_arity(predicate: Callable) -> int:
    """
    Count the positional arguments a predicate accepts.

    ``*args`` counts as two so the entry is passed along.
    """
    try:
        signature = inspect.signature(predicate)
    except (TypeError, ValueError):
        return 1
    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind == parameter.VAR_POSITIONAL:
            return 2
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


def resolve_constraint(constraint: Any, value: Any, entry: Any = None) -> bool:
    """
    Check ``value`` against ``constraint``.

    Predicates run inside ``insecurely()``: restrictable objects handed to
    them report no subject, so a predicate cannot re-enter authorization.
    """
    if constraint is ABSENT:
        return False
    if constraint is None:
        return True
    if is_range(constraint):
        try:
            return value in constraint
        except TypeError:
            return False
    if callable(constraint):
        with insecurely():
            if predicate_arity(constraint) >= 2:
                return bool(constraint(value, entry))
            return bool(constraint(value))
    return value == constraint
