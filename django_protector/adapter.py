"""
Django ORM collaborator for the protection engine.

The engine only records scope values. This adapter turns them into queryset
narrowing and answers whether a single instance lies inside a scope.
"""

import logging
from typing import Any, Optional

from django.db import models
from django.db.models import Q
from django.db.models.query import EmptyQuerySet

from .config_proxy import get_protector_settings
from .dsl.base import insecurely
from .dsl.decision import AccessDecision
from .exceptions import AccessDenied

logger = logging.getLogger(__name__)


class DjangoAdapter:
    """Apply protector scopes to Django querysets."""

    name = "django"

    def scope_root(self, model: Optional[type]) -> Optional[models.QuerySet]:
        """Queryset handed to callable scopes, unfiltered by any restriction."""
        if model is None or getattr(model, "_meta", None) is None:
            return None
        if model._meta.abstract:
            return None
        return model._base_manager.all()

    def null_scope(self, queryset: models.QuerySet) -> models.QuerySet:
        return queryset.none()

    def apply(self, queryset: models.QuerySet, decision: AccessDecision) -> models.QuerySet:
        """Narrow ``queryset`` to the records the decision's scope allows."""
        if not decision.scoped:
            return queryset
        return self.apply_relation(queryset, decision.relation)

    def apply_relation(self, queryset: models.QuerySet, relation: Any) -> models.QuerySet:
        if relation is None or isinstance(relation, EmptyQuerySet):
            return self.null_scope(queryset)
        if isinstance(relation, Q):
            return queryset.filter(relation)
        if isinstance(relation, models.QuerySet):
            return queryset.filter(pk__in=relation.values("pk"))
        if callable(relation):
            return relation(queryset)
        raise TypeError(
            f"Unsupported scope value {type(relation).__name__!r}; "
            "expected a Q object, a queryset or a callable"
        )

    def contains(self, relation: Any, entry: Any) -> bool:
        """Whether the persisted ``entry`` survives ``relation``."""
        if not isinstance(entry, models.Model) or entry.pk is None:
            return False
        with insecurely():
            queryset = type(entry)._base_manager.filter(pk=entry.pk)
            return self.apply_relation(queryset, relation).exists()


def is_protected_model(model: Any) -> bool:
    """Return True for Django model classes or instances carrying protector rules."""
    from .models import ProtectedModelMixin

    target = model if isinstance(model, type) else type(model)
    return issubclass(target, ProtectedModelMixin)


django_adapter = DjangoAdapter()


def deny(
    action: str,
    field_name: Optional[str] = None,
    model: Optional[type] = None,
    subject: Any = None,
) -> AccessDenied:
    """Build (and log, when enabled) the rejection for a refused operation."""
    model_name = model.__name__ if model is not None else None
    error = AccessDenied(action=action, field_name=field_name, model_name=model_name)
    if get_protector_settings().log_denials:
        logger.info(
            "Protector denied %s on %s for subject %r: %s",
            action,
            model_name or "object",
            subject,
            error,
        )
    return error
