"""
Protected Django models.

``ProtectedModel`` (or ``ProtectedModelMixin`` placed before
``models.Model``) wires the protection engine into the ORM:

- field reads the subject may not see return ``None``
- forward relations inherit the subject and hide invisible targets
- ``save()`` and ``delete()`` refuse changes the rules do not permit
- ``clean()`` reports the same refusal as a validation error
"""

import logging
from typing import Any, Optional

from django.core.exceptions import ValidationError
from django.db import models

from .adapter import deny, django_adapter
from .dsl.base import Restrictable, insecurely
from .dsl.decision import CREATE, DESTROY, UPDATE
from .dsl.entry import Protectable
from .exceptions import AccessDenied
from .query import ProtectedManager

logger = logging.getLogger(__name__)


class ProtectedModelMixin(Protectable):
    """
    Protection behaviour for Django models.

    Example:
        >>> class Article(ProtectedModelMixin, models.Model):
        ...     title = models.CharField(max_length=100)
        ...     objects = ProtectedManager()
        >>> @Article.protect
        ... def rules(box, user, article):
        ...     box.can("read")
        ...     if user.is_staff:
        ...         box.can("update", "title")
    """

    protector_adapter = django_adapter

    @classmethod
    def protector_fields(cls) -> list[str]:
        return [field.attname for field in cls._meta.concrete_fields]

    @classmethod
    def _protector_guarded_names(cls) -> frozenset:
        guarded = cls.__dict__.get("_protector_guarded")
        if guarded is None:
            pk = cls._meta.pk.attname if cls._meta.pk is not None else None
            guarded = frozenset(
                name for name in cls.protector_meta.fields if name != pk
            )
            cls._protector_guarded = guarded
        return guarded

    @classmethod
    def _protector_relation_names(cls) -> dict[str, str]:
        relations = cls.__dict__.get("_protector_relations")
        if relations is None:
            relations = {
                field.name: field.attname
                for field in cls._meta.concrete_fields
                if field.is_relation and (field.many_to_one or field.one_to_one)
            }
            cls._protector_relations = relations
        return relations

    def __getattribute__(self, name: str) -> Any:
        if name[:1] == "_":
            return super().__getattribute__(name)

        cls = type(self)
        guarded = cls._protector_guarded_names()
        relations = cls._protector_relation_names()
        if name not in guarded and name not in relations:
            return super().__getattribute__(name)
        if not super().__getattribute__("has_protector_subject"):
            return super().__getattribute__(name)

        decision = super().__getattribute__("protector_decision")
        if name in guarded:
            if decision.is_readable(name):
                return super().__getattribute__(name)
            return None

        attname = relations[name]
        if attname in guarded and not decision.is_readable(attname):
            return None
        value = super().__getattribute__(name)
        if isinstance(value, Restrictable):
            value.restrict(self._protector_subject)
            if not value.is_visible():
                return None
        return value

    def __getstate__(self) -> dict[str, Any]:
        state = super().__getstate__()
        state.pop("_protector_decision", None)
        return state

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._protector_snapshot()
        return instance

    def _protector_snapshot(self) -> None:
        loaded = {}
        for field in self._meta.concrete_fields:
            if field.attname in self.__dict__:
                loaded[field.attname] = self.__dict__[field.attname]
        self._protector_loaded = loaded

    def protector_changes(self) -> dict[str, Any]:
        """
        Field values the pending save would write.

        New instances report fields differing from their default; persisted
        instances report fields changed since they were loaded or saved.
        Deferred fields are skipped.
        """
        loaded = self.__dict__.get("_protector_loaded")
        adding = self._state.adding or loaded is None
        changes = {}
        for field in self._meta.concrete_fields:
            attname = field.attname
            if attname not in self.__dict__:
                continue
            value = self.__dict__[attname]
            if adding:
                if value == field.get_default():
                    continue
            elif attname in loaded and loaded[attname] == value:
                continue
            changes[attname] = value
        return changes

    def is_creatable(self) -> bool:
        return self.protector_decision.is_creatable(self.protector_changes())

    def is_updatable(self) -> bool:
        return self.protector_decision.is_updatable(self.protector_changes())

    def is_destroyable(self) -> bool:
        return self.protector_decision.is_destroyable()

    def first_unmodifiable_field(self) -> Optional[str]:
        decision = self.protector_decision
        changes = self.protector_changes()
        if self._state.adding:
            return decision.first_uncreatable_field(changes)
        return decision.first_unupdatable_field(changes)

    def check_protector_save(self) -> None:
        """Raise ``AccessDenied`` when the subject may not persist pending changes."""
        if not self.has_protector_subject:
            return
        decision = self.protector_decision
        changes = self.protector_changes()
        if self._state.adding:
            if decision.is_creatable(changes):
                return
            raise deny(
                CREATE,
                decision.first_uncreatable_field(changes),
                type(self),
                self._protector_subject,
            )
        if decision.is_updatable(changes):
            return
        raise deny(
            UPDATE,
            decision.first_unupdatable_field(changes),
            type(self),
            self._protector_subject,
        )

    # Field validation reads and writes back raw values; hidden fields would
    # otherwise be replaced by None.
    def clean_fields(self, *args: Any, **kwargs: Any) -> None:
        with insecurely():
            super().clean_fields(*args, **kwargs)

    def validate_unique(self, *args: Any, **kwargs: Any) -> None:
        with insecurely():
            super().validate_unique(*args, **kwargs)

    def validate_constraints(self, *args: Any, **kwargs: Any) -> None:
        with insecurely():
            super().validate_constraints(*args, **kwargs)

    def clean(self) -> None:
        super().clean()
        try:
            self.check_protector_save()
        except AccessDenied as error:
            raise ValidationError(str(error), code="access_denied") from error

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.check_protector_save()
        with insecurely():
            super().save(*args, **kwargs)
        self._protector_snapshot()

    save.alters_data = True

    def delete(self, *args: Any, **kwargs: Any):
        if self.has_protector_subject and not self.protector_decision.is_destroyable():
            raise deny(DESTROY, None, type(self), self._protector_subject)
        with insecurely():
            return super().delete(*args, **kwargs)

    delete.alters_data = True

    def refresh_from_db(self, *args: Any, **kwargs: Any) -> None:
        with insecurely():
            super().refresh_from_db(*args, **kwargs)
        self._protector_snapshot()


class ProtectedModel(ProtectedModelMixin, models.Model):
    """Abstract base model with protector rules and a ``ProtectedManager``."""

    objects = ProtectedManager()

    class Meta:
        abstract = True
