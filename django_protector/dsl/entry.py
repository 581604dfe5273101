"""
Registration surface mixed into every protectable class.
"""

from typing import Any, Iterable

from .base import Restrictable
from .decision import AccessDecision
from .meta import Meta, RuleBlock, registry


class ProtectorMetaDescriptor:
    """Resolve ``protector_meta`` to the owning class's Meta from class or instance."""

    def __get__(self, instance: Any, owner: type) -> Meta:
        return registry.meta_for(owner)


class Protectable(Restrictable):
    """
    Mixin for classes carrying rule blocks.

    Example:
        >>> class Document(Protectable):
        ...     @classmethod
        ...     def protector_fields(cls):
        ...         return ["title", "body"]
        >>> @Document.protect
        ... def rules(box, subject, entry):
        ...     box.can("read")
        >>> Document().restrict("reader").can("read", "body")
        True
    """

    protector_adapter: Any = None
    protector_meta = ProtectorMetaDescriptor()

    @classmethod
    def protector_fields(cls) -> Iterable[str]:
        return ()

    @classmethod
    def protect(cls, block: RuleBlock) -> RuleBlock:
        """Register a rule block for this class and its subclasses."""
        return cls.protector_meta.register(block)

    def _evaluate_protector_decision(self) -> AccessDecision:
        return type(self).protector_meta.evaluate(self.protector_subject, self)

    def can(self, action: Any, field_name: Any = None) -> bool:
        return self.protector_decision.can(action, field_name)

    def cannot(self, action: Any, field_name: Any = None) -> bool:
        return self.protector_decision.cannot(action, field_name)

    def is_visible(self) -> bool:
        return self.protector_decision.is_visible()
