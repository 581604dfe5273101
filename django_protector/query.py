"""
Restrictable querysets and managers.
"""

import logging
from typing import Any, Iterable, Iterator

from django.db import models

from .adapter import deny, django_adapter
from .dsl.base import UNSET, Restrictable, insecurely
from .dsl.decision import DESTROY, UPDATE, AccessDecision

logger = logging.getLogger(__name__)


class ProtectedQuerySet(Restrictable, models.QuerySet):
    """
    QuerySet carrying a restricting subject.

    ``restrict()`` returns a clone narrowed by the subject's scope. Clones keep
    the subject and every fetched instance is restricted to it.

    Example:
        >>> Article.objects.restrict(request.user).filter(published=True)
    """

    def _clone(self):
        clone = super()._clone()
        clone._protector_subject = self._protector_subject
        clone._protector_decision = self._protector_decision
        return clone

    def restrict(self, subject: Any) -> "ProtectedQuerySet":
        clone = self._chain()
        clone._protector_subject = subject
        clone._protector_decision = None
        return django_adapter.apply(clone, clone.protector_decision)

    def unrestrict(self) -> "ProtectedQuerySet":
        clone = self._chain()
        clone._protector_subject = UNSET
        clone._protector_decision = None
        return clone

    def _evaluate_protector_decision(self) -> AccessDecision:
        return self.model.protector_meta.evaluate(self.protector_subject, None)

    def _restrict_result(self, obj: Any) -> Any:
        if isinstance(obj, Restrictable):
            obj.restrict(self._protector_subject)
        return obj

    def __getstate__(self) -> dict[str, Any]:
        state = super().__getstate__()
        state.pop("_protector_decision", None)
        return state

    def _fetch_all(self) -> None:
        # Results are restricted before prefetching so related managers of
        # each result see its subject.
        if self._result_cache is None:
            self._result_cache = list(self._iterable_class(self))
            if self._protector_subject is not UNSET:
                for obj in self._result_cache:
                    self._restrict_result(obj)
        if self._prefetch_related_lookups and not self._prefetch_done:
            self._prefetch_related_objects()

    def iterator(self, *args: Any, **kwargs: Any) -> Iterator[Any]:
        results = super().iterator(*args, **kwargs)
        if self._protector_subject is UNSET:
            yield from results
            return
        for obj in results:
            yield self._restrict_result(obj)

    def build(self, **kwargs: Any) -> models.Model:
        """Instantiate an unsaved model restricted to this queryset's subject."""
        obj = self.model(**kwargs)
        if self._protector_subject is not UNSET:
            obj.restrict(self._protector_subject)
        return obj

    def create(self, **kwargs: Any) -> models.Model:
        if self._protector_subject is UNSET:
            return super().create(**kwargs)
        obj = self.build(**kwargs)
        self._for_write = True
        obj.save(force_insert=True, using=self.db)
        return obj

    create.alters_data = True

    def update(self, **kwargs: Any) -> int:
        if self.has_protector_subject:
            decision = self.protector_decision
            if not decision.is_updatable(kwargs):
                field_name = decision.first_unupdatable_field(kwargs)
                raise deny(UPDATE, field_name, self.model, self._protector_subject)
        return super().update(**kwargs)

    update.alters_data = True

    def _restrict_written(self, objs: Iterable[Any]) -> list[Any]:
        objs = list(objs)
        if self._protector_subject is not UNSET:
            for obj in objs:
                self._restrict_result(obj)
        return objs

    def bulk_create(self, objs: Iterable[Any], *args: Any, **kwargs: Any) -> list[Any]:
        objs = self._restrict_written(objs)
        for obj in objs:
            obj.check_protector_save()
        with insecurely():
            created = super().bulk_create(objs, *args, **kwargs)
        for obj in objs:
            obj._protector_snapshot()
        return created

    bulk_create.alters_data = True

    def bulk_update(
        self, objs: Iterable[Any], fields: Iterable[str], *args: Any, **kwargs: Any
    ) -> int:
        objs = self._restrict_written(objs)
        fields = list(fields)
        attnames = [self.model._meta.get_field(name).attname for name in fields]
        for obj in objs:
            if not obj.has_protector_subject:
                continue
            decision = obj.protector_decision
            written = {attname: obj.__dict__.get(attname) for attname in attnames}
            if not decision.is_updatable(written):
                raise deny(
                    UPDATE,
                    decision.first_unupdatable_field(written),
                    self.model,
                    obj._protector_subject,
                )
        with insecurely():
            updated = super().bulk_update(objs, fields, *args, **kwargs)
        for obj in objs:
            obj._protector_snapshot()
        return updated

    bulk_update.alters_data = True

    def delete(self):
        if self.has_protector_subject and not self.protector_decision.is_destroyable():
            raise deny(DESTROY, None, self.model, self._protector_subject)
        return super().delete()

    delete.alters_data = True
    delete.queryset_only = True


class ProtectedManager(models.Manager.from_queryset(ProtectedQuerySet)):
    """
    Manager returning ``ProtectedQuerySet``.

    Related managers built from it inherit the subject of a restricted
    instance, so ``article.comments.all()`` stays restricted.
    """

    def get_queryset(self) -> ProtectedQuerySet:
        queryset = super().get_queryset()
        instance = getattr(self, "instance", None)
        if isinstance(instance, Restrictable) and instance.has_protector_subject:
            queryset = queryset.restrict(instance.protector_subject)
        return queryset
