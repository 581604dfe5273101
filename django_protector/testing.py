"""
Testing helpers for django-protector.
"""

from __future__ import annotations

from contextlib import contextmanager
from types import SimpleNamespace
from typing import Any, Iterator

from django.conf import settings
from django.test.utils import override_settings

from .config_proxy import SETTINGS_NAME, settings_proxy


@contextmanager
def override_protector_settings(**values: Any) -> Iterator[None]:
    """
    Override ``PROTECTOR`` keys for the enclosed block.

    Keys not given keep their current value.

    Example:
        >>> with override_protector_settings(paranoid=True):
        ...     assert Article.protector_meta.evaluate(user).scoped
    """
    current = dict(getattr(settings, SETTINGS_NAME, None) or {})
    current.update(values)
    with override_settings(**{SETTINGS_NAME: current}):
        settings_proxy.clear_cache()
        try:
            yield
        finally:
            settings_proxy.clear_cache()


def build_info(user: Any = None, **context: Any) -> SimpleNamespace:
    """Minimal GraphQL resolve ``info`` stand-in carrying ``context.user``."""
    return SimpleNamespace(context=SimpleNamespace(user=user, **context))
