"""
Rule block accumulation per protectable class.

Each protectable class owns one ``Meta``. A subclass's Meta points at the
Meta of its nearest protectable base, so inherited blocks always run before
the subclass's own blocks, including blocks the base registers later.
"""

import inspect
import logging
import threading
from typing import Any, Callable, Iterable, Optional

from ..config_proxy import is_paranoid
from .base import insecurely
from .decision import AccessDecision, RuleContext

logger = logging.getLogger(__name__)

RuleBlock = Callable[..., Any]


def _block_arity(block: RuleBlock) -> int:
    """Number of positional arguments a block accepts, capped at three."""
    try:
        signature = inspect.signature(block)
    except (TypeError, ValueError):
        return 3
    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind == parameter.VAR_POSITIONAL:
            return 3
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return min(count, 3)


class Meta:
    """
    Ordered rule blocks plus a lazily resolved field-name set.

    Args:
        adapter: Collaborator answering scope roots and visibility checks.
        model: The protected class, handed to the adapter.
        fields: Zero-argument provider of the model's field names.
        parent: Meta of the protectable base class, if any.

    Example:
        >>> meta = Meta(fields=lambda: ["title", "body"])
        >>> @meta.register
        ... def rules(box, subject):
        ...     box.can("read")
        >>> meta.evaluate("reader").can("read", "title")
        True
    """

    def __init__(
        self,
        adapter: Any = None,
        model: Any = None,
        fields: Optional[Callable[[], Iterable[str]]] = None,
        parent: Optional["Meta"] = None,
        blocks: Optional[Iterable[RuleBlock]] = None,
    ) -> None:
        self.adapter = adapter
        self.model = model
        self.parent = parent
        self._fields_provider = fields
        self._fields: Optional[tuple[str, ...]] = None
        self._fields_lock = threading.Lock()
        self._blocks: list[RuleBlock] = list(blocks or [])

    def __repr__(self) -> str:
        name = getattr(self.model, "__name__", None)
        return f"<Meta {name or 'anonymous'} blocks={len(self.blocks)}>"

    def register(self, block: RuleBlock) -> RuleBlock:
        """Append a rule block; returns it so the method doubles as a decorator."""
        if not callable(block):
            raise TypeError(f"Rule block must be callable, got {type(block).__name__}")
        self._blocks.append(block)
        logger.debug(
            "Rule block %s registered on %r",
            getattr(block, "__qualname__", block),
            self,
        )
        return block

    append = register

    def __lshift__(self, block: RuleBlock) -> "Meta":
        self.register(block)
        return self

    @property
    def own_blocks(self) -> list[RuleBlock]:
        return list(self._blocks)

    @property
    def blocks(self) -> list[RuleBlock]:
        inherited = self.parent.blocks if self.parent is not None else []
        return inherited + self._blocks

    @property
    def fields(self) -> tuple[str, ...]:
        if self._fields is None:
            with self._fields_lock:
                if self._fields is None:
                    provider = self._fields_provider
                    names = provider() if provider is not None else ()
                    self._fields = tuple(str(name) for name in names)
        return self._fields

    def inherit(
        self,
        model: Any,
        fields: Optional[Callable[[], Iterable[str]]] = None,
        adapter: Any = None,
    ) -> "Meta":
        """Create the Meta of a subclass, evaluating this Meta's blocks first."""
        return Meta(
            adapter=adapter if adapter is not None else self.adapter,
            model=model,
            fields=fields if fields is not None else self._fields_provider,
            parent=self,
        )

    def _scope_root(self) -> Any:
        if self.adapter is None:
            return self.model
        return self.adapter.scope_root(self.model)

    def evaluate(self, subject: Any = None, entry: Any = None) -> AccessDecision:
        """
        Run every rule block for ``subject`` and ``entry``.

        Blocks run in registration order, inherited ones first, inside
        ``insecurely()``. Exceptions raised by a block propagate.
        """
        blocks = self.blocks
        box = RuleContext(lambda: self.fields, self._scope_root)
        logger.debug("Evaluating %d rule blocks on %r", len(blocks), self)

        with insecurely():
            for block in blocks:
                arity = _block_arity(block)
                if arity >= 3:
                    block(box, subject, entry)
                elif arity == 2:
                    block(box, subject)
                elif arity == 1:
                    block(box)
                else:
                    # Legacy blocks taking no arguments still run.
                    block()

        return box.finalize(
            subject=subject,
            entry=entry,
            model=self.model,
            adapter=self.adapter,
            paranoid=is_paranoid(),
        )


class MetaRegistry:
    """
    Meta per protectable class, keyed by class identity.

    A class's Meta is created on first access; its parent is the Meta of the
    nearest protectable base found in the MRO.
    """

    def __init__(self) -> None:
        self._metas: dict[type, Meta] = {}
        self._lock = threading.RLock()

    def meta_for(self, cls: type) -> Meta:
        meta = self._metas.get(cls)
        if meta is not None:
            return meta
        with self._lock:
            meta = self._metas.get(cls)
            if meta is None:
                meta = self._build(cls)
                self._metas[cls] = meta
        return meta

    def _build(self, cls: type) -> Meta:
        fields = getattr(cls, "protector_fields", None)
        adapter = getattr(cls, "protector_adapter", None)
        parent = None
        for base in cls.__mro__[1:]:
            if hasattr(base, "protector_fields") and hasattr(base, "protect"):
                parent = self.meta_for(base)
                break
        logger.debug("Meta created for %s (parent=%r)", cls.__qualname__, parent)
        return Meta(adapter=adapter, model=cls, fields=fields, parent=parent)

    def __contains__(self, cls: type) -> bool:
        return cls in self._metas


registry = MetaRegistry()


def get_meta(cls: type) -> Meta:
    return registry.meta_for(cls)
