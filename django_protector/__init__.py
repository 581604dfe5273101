"""
Declarative per-model authorization for Django.

Attach rule blocks to a protected model, restrict instances or querysets to a
subject and ask the resulting access decision what the subject may do.

Example usage:
    >>> from django_protector import ProtectedModel, Interval, insecurely
    >>>
    >>> class Article(ProtectedModel):
    ...     title = models.CharField(max_length=100, null=True)
    ...     rating = models.IntegerField(null=True)
    >>>
    >>> @Article.protect
    ... def rules(box, user, article):
    ...     box.can("read")
    ...     box.cannot("read", "rating")
    ...     if user.is_staff:
    ...         box.can("update", "title", rating=Interval(0, 5))
    ...     else:
    ...         box.scope(Q(published=True))
    >>>
    >>> articles = Article.objects.restrict(request.user)
    >>> article = articles.first()
    >>> article.is_updatable()
    >>> with insecurely():
    ...     article.rating
"""

from .dsl import (
    ABSENT,
    AccessDecision,
    Interval,
    Meta,
    Protectable,
    Restrictable,
    RuleContext,
    get_meta,
    insecurely,
    is_insecure,
    registry,
    resolve_constraint,
)
from .exceptions import AccessDenied, ProtectorError, UnrestrictedAccessError

__version__ = "0.1.0"

__all__ = [
    "ABSENT",
    "AccessDecision",
    "AccessDenied",
    "Interval",
    "Meta",
    "Protectable",
    "ProtectorError",
    "Restrictable",
    "RuleContext",
    "UnrestrictedAccessError",
    "get_meta",
    "insecurely",
    "is_insecure",
    "registry",
    "resolve_constraint",
]


def __getattr__(name):
    # Model classes need the app registry; import them lazily.
    if name in ("ProtectedModel", "ProtectedModelMixin"):
        from . import models

        return getattr(models, name)
    if name in ("ProtectedManager", "ProtectedQuerySet"):
        from . import query

        return getattr(query, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
