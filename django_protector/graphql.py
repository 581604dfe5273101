"""
graphene-django integration.

Object types deriving from ``ProtectedDjangoObjectType`` restrict every
queryset they resolve to the subject of the GraphQL request. Unreadable
fields resolve to ``None`` through the model's read protection.
"""

import logging
from functools import lru_cache
from typing import Any, Callable

from django.utils.module_loading import import_string
from graphene_django import DjangoObjectType

from .config_proxy import get_protector_settings

logger = logging.getLogger(__name__)


def default_subject_resolver(info: Any) -> Any:
    """Use the request user as subject."""
    context = getattr(info, "context", None)
    return getattr(context, "user", None)


@lru_cache(maxsize=None)
def _load_resolver(path: str) -> Callable[[Any], Any]:
    return import_string(path)


def get_subject_resolver() -> Callable[[Any], Any]:
    path = get_protector_settings().subject_resolver
    if not path:
        return default_subject_resolver
    return _load_resolver(path)


def resolve_subject(info: Any) -> Any:
    """Resolve the restricting subject for a GraphQL resolve ``info``."""
    return get_subject_resolver()(info)


class ProtectedDjangoObjectType(DjangoObjectType):
    """
    DjangoObjectType restricting its querysets to the request subject.

    Example:
        >>> class ArticleType(ProtectedDjangoObjectType):
        ...     class Meta:
        ...         model = Article
        ...         fields = ("id", "title")
    """

    class Meta:
        abstract = True

    @classmethod
    def get_queryset(cls, queryset, info):
        queryset = super().get_queryset(queryset, info)
        restrict = getattr(queryset, "restrict", None)
        if restrict is None:
            logger.debug(
                "Queryset for %s is not restrictable; returning it unchanged",
                cls.__name__,
            )
            return queryset
        return restrict(resolve_subject(info))
