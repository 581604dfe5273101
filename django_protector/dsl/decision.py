"""
Rule evaluation context and the resulting access decision.

Rule blocks receive a ``RuleContext`` and call its verbs (``can``,
``cannot``, ``scope``). The context only logs the writes; once every block
has run, ``RuleContext.finalize()`` folds them into an immutable
``AccessDecision``.
"""

import logging
import warnings
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from .constraints import ABSENT, resolve_constraint

logger = logging.getLogger(__name__)

READ = "read"
CREATE = "create"
UPDATE = "update"
DESTROY = "destroy"

DEPRECATED_ACTIONS = {"view": READ}

_WILDCARD = object()
_CLEAR = object()
_DENY = object()
_PLAIN = object()


def normalize_action(action: Any) -> str:
    """Return the canonical action name, translating deprecated aliases."""
    name = str(action)
    replacement = DEPRECATED_ACTIONS.get(name)
    if replacement is not None:
        warnings.warn(
            f"The '{name}' action is deprecated, use '{replacement}' instead",
            DeprecationWarning,
            stacklevel=3,
        )
        return replacement
    return name


def _flatten_fields(fields: Iterable[Any]) -> Iterable[tuple[str, Any]]:
    for item in fields:
        if isinstance(item, Mapping):
            for name, constraint in item.items():
                yield str(name), constraint
        elif isinstance(item, (list, tuple, set, frozenset)):
            yield from _flatten_fields(item)
        else:
            yield str(item), _PLAIN


class RuleContext:
    """
    Mutable builder handed to every rule block of one evaluation.

    Example:
        >>> def rules(box, subject):
        ...     box.can("read")
        ...     box.cannot("read", "password")
        ...     if subject != "admin":
        ...         box.scope(Q(owner=subject))
    """

    def __init__(
        self,
        fields: Callable[[], Sequence[str]],
        scope_root: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._fields = fields
        self._scope_root = scope_root
        self._writes: dict[str, list[tuple[Any, Any]]] = {}
        self._destroyable = False
        self._relation: Any = None
        self._scoped = False

    def can(self, action: Any, *fields: Any, **constraints: Any) -> None:
        """
        Permit ``fields`` for ``action``.

        Plain names and the no-field wildcard only add missing fields; a
        constraint recorded earlier for the same field is kept. Mappings and
        keyword arguments always replace the constraint.
        """
        action = normalize_action(action)
        if action == DESTROY:
            self._destroyable = True
            return

        writes = self._writes.setdefault(action, [])
        if not fields and not constraints:
            writes.append((_WILDCARD, None))
            return
        for name, constraint in _flatten_fields(fields):
            writes.append((name, constraint))
        for name, constraint in constraints.items():
            writes.append((name, constraint))

    def cannot(self, action: Any, *fields: Any) -> None:
        action = normalize_action(action)
        if action == DESTROY:
            self._destroyable = False
            return

        writes = self._writes.setdefault(action, [])
        if not fields:
            writes.append((_CLEAR, None))
            return
        for name, _ in _flatten_fields(fields):
            writes.append((name, _DENY))

    def scope(self, value: Any) -> Any:
        """
        Record the scope value of the evaluation.

        Callables receive the collaborator's query root and their return value
        is recorded. Only the last call of an evaluation is kept.
        """
        if callable(value):
            root = self._scope_root() if self._scope_root is not None else None
            value = value(root)
        self._relation = value
        self._scoped = True
        return value

    # Deprecated verb aliases for read permissions
    def can_view(self, *fields: Any, **constraints: Any) -> None:
        warnings.warn(
            "can_view() is deprecated, use can('read', ...) instead",
            DeprecationWarning,
            stacklevel=2,
        )
        self.can(READ, *fields, **constraints)

    def cannot_view(self, *fields: Any) -> None:
        warnings.warn(
            "cannot_view() is deprecated, use cannot('read', ...) instead",
            DeprecationWarning,
            stacklevel=2,
        )
        self.cannot(READ, *fields)

    def _materialize(self) -> dict[str, dict[str, Any]]:
        access: dict[str, dict[str, Any]] = {}
        for action, writes in self._writes.items():
            permitted: dict[str, Any] = {}
            for target, constraint in writes:
                if target is _CLEAR:
                    permitted.clear()
                elif target is _WILDCARD:
                    for name in self._fields():
                        permitted.setdefault(str(name), None)
                elif constraint is _DENY:
                    permitted.pop(target, None)
                elif constraint is _PLAIN:
                    permitted.setdefault(target, None)
                else:
                    permitted[target] = constraint
            if permitted:
                access[action] = permitted
        return access

    def finalize(
        self,
        subject: Any = None,
        entry: Any = None,
        model: Any = None,
        adapter: Any = None,
        paranoid: bool = False,
    ) -> "AccessDecision":
        access = self._materialize()
        return AccessDecision(
            access=MappingProxyType(
                {action: MappingProxyType(fields) for action, fields in access.items()}
            ),
            destroyable=self._destroyable,
            relation=self._relation,
            scoped=self._scoped or paranoid,
            subject=subject,
            entry=entry,
            model=model,
            adapter=adapter,
        )


@dataclass(frozen=True)
class AccessDecision:
    """
    Immutable outcome of evaluating all rule blocks for a subject and entry.

    Attributes:
        access: action -> field name -> constraint.
        destroyable: Whether the destroy action is permitted.
        relation: Scope value recorded by the last ``scope`` call.
        scoped: True when a scope was recorded or paranoid mode was on.
    """

    access: Mapping[str, Mapping[str, Any]] = field(hash=False)
    destroyable: bool = False
    relation: Any = None
    scoped: bool = False
    subject: Any = field(default=None, compare=False, repr=False)
    entry: Any = field(default=None, compare=False, repr=False)
    model: Any = field(default=None, compare=False, repr=False)
    adapter: Any = field(default=None, compare=False, repr=False)

    def can(self, action: Any, field_name: Any = None) -> bool:
        action = normalize_action(action)
        if action == DESTROY:
            return self.destroyable
        fields = self.access.get(action)
        if not fields:
            return False
        if field_name is None:
            return True
        return str(field_name) in fields

    def cannot(self, action: Any, field_name: Any = None) -> bool:
        return not self.can(action, field_name)

    def is_readable(self, field_name: Any) -> bool:
        return self.can(READ, field_name)

    def is_creatable(self, attributes: Optional[Mapping[str, Any]] = None) -> bool:
        return self._is_modifiable(CREATE, attributes)

    def is_updatable(self, attributes: Optional[Mapping[str, Any]] = None) -> bool:
        return self._is_modifiable(UPDATE, attributes)

    def is_destroyable(self) -> bool:
        return self.destroyable

    def first_uncreatable_field(self, attributes: Mapping[str, Any]) -> Optional[str]:
        return self._first_unmodifiable_field(CREATE, attributes)

    def first_unupdatable_field(self, attributes: Mapping[str, Any]) -> Optional[str]:
        return self._first_unmodifiable_field(UPDATE, attributes)

    def is_visible(self) -> bool:
        """
        Whether the entry falls inside the decision's scope.

        Membership is answered by the adapter; without one, or without an
        entry, a scoped decision hides everything.
        """
        if not self.scoped:
            return True
        if self.adapter is None or self.entry is None:
            return False
        return bool(self.adapter.contains(self.relation, self.entry))

    def _is_modifiable(self, action: str, attributes: Optional[Mapping[str, Any]]) -> bool:
        if not self.can(action):
            return False
        if attributes is None:
            return True
        return self._first_unmodifiable_field(action, attributes) is None

    def _first_unmodifiable_field(
        self, action: str, attributes: Mapping[str, Any]
    ) -> Optional[str]:
        fields = self.access.get(action, {})
        for name, value in attributes.items():
            constraint = fields.get(str(name), ABSENT)
            if not resolve_constraint(constraint, value, self.entry):
                return str(name)
        return None
