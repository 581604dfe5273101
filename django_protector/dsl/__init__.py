"""
Rule registration and evaluation engine.

This package provides:
- Meta: ordered rule blocks per protectable class
- RuleContext: the ``can`` / ``cannot`` / ``scope`` verbs used inside blocks
- AccessDecision: the immutable result of an evaluation
- Restrictable / Protectable: the subject restriction lifecycle and DSL mixin
- insecurely: context-local bypass of restriction checks
"""

from .base import UNSET, Restrictable, insecure_depth, insecurely, is_insecure
from .constraints import ABSENT, Interval, resolve_constraint
from .decision import (
    CREATE,
    DESTROY,
    READ,
    UPDATE,
    AccessDecision,
    RuleContext,
    normalize_action,
)
from .entry import Protectable
from .meta import Meta, MetaRegistry, get_meta, registry

__all__ = [
    "ABSENT",
    "AccessDecision",
    "CREATE",
    "DESTROY",
    "Interval",
    "Meta",
    "MetaRegistry",
    "Protectable",
    "READ",
    "Restrictable",
    "RuleContext",
    "UNSET",
    "UPDATE",
    "get_meta",
    "insecure_depth",
    "insecurely",
    "is_insecure",
    "normalize_action",
    "registry",
    "resolve_constraint",
]
