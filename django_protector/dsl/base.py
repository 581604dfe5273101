"""
Subject restriction lifecycle.

An object becomes restricted once a subject is attached to it with
``restrict()``. Authorization-sensitive operations read the subject through
``protector_subject`` and fail loudly on unrestricted objects.

``insecurely()`` suspends every restriction check for the current execution
context. The depth counter lives in a ``ContextVar`` so a privileged block in
one thread or asyncio task never leaks into another.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Iterator, Optional

from ..exceptions import UnrestrictedAccessError

if TYPE_CHECKING:
    from .decision import AccessDecision

logger = logging.getLogger(__name__)

_insecure_depth: ContextVar[int] = ContextVar("protector_insecure_depth", default=0)


class _Unset:
    def __repr__(self) -> str:
        return "<unset>"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@contextmanager
def insecurely() -> Iterator[None]:
    """
    Disable restriction checks for the enclosed block.

    Nestable; the previous depth is restored on every exit path.

    Example:
        >>> with insecurely():
        ...     entry.has_protector_subject
        False
    """
    token = _insecure_depth.set(_insecure_depth.get() + 1)
    try:
        yield
    finally:
        _insecure_depth.reset(token)


def is_insecure() -> bool:
    """Return True inside an ``insecurely()`` block."""
    return _insecure_depth.get() > 0


def insecure_depth() -> int:
    return _insecure_depth.get()


class Restrictable:
    """
    Mixin holding the restricting subject of an object.

    Subclasses provide ``_evaluate_protector_decision()`` to build the access
    decision for the current subject; the result is cached until the next
    ``restrict()`` or ``unrestrict()``.
    """

    _protector_subject: Any = UNSET
    _protector_decision: Optional["AccessDecision"] = None

    def restrict(self, subject: Any):
        """Attach ``subject`` (``None`` included) and drop the cached decision."""
        self._protector_subject = subject
        self._protector_decision = None
        return self

    def unrestrict(self):
        """Detach the subject and drop the cached decision."""
        self._protector_subject = UNSET
        self._protector_decision = None
        return self

    @property
    def protector_subject(self) -> Any:
        subject = self._protector_subject
        if subject is UNSET:
            raise UnrestrictedAccessError(model_name=type(self).__name__)
        return subject

    @property
    def has_protector_subject(self) -> bool:
        if is_insecure():
            return False
        return self._protector_subject is not UNSET

    @property
    def protector_decision(self) -> "AccessDecision":
        decision = self._protector_decision
        if decision is None:
            decision = self._evaluate_protector_decision()
            self._protector_decision = decision
        return decision

    def _evaluate_protector_decision(self) -> "AccessDecision":
        raise NotImplementedError
