"""
Configuration management for django-protector.

Settings are resolved from the ``PROTECTOR`` dictionary in Django settings,
falling back to the library defaults declared in ``defaults.py``.
"""

from dataclasses import dataclass
from typing import Any, Optional

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

from .defaults import LIBRARY_DEFAULTS

SETTINGS_NAME = "PROTECTOR"


class SettingsProxy:
    """
    Proxy for accessing protector settings with caching.

    Settings are resolved in the following order:
    1. Django settings (PROTECTOR)
    2. Library defaults (LIBRARY_DEFAULTS)
    """

    def __init__(self) -> None:
        self._cache: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value with caching.

        Args:
            key: Setting key to retrieve (dot notation for nested keys)
            default: Default value if setting is not found

        Returns:
            The setting value from the highest priority source
        """
        if key in self._cache:
            return self._cache[key]

        value = self._get_nested_value(self._get_django_settings(), key)
        if value is None:
            value = self._get_nested_value(LIBRARY_DEFAULTS, key)
        if value is None:
            value = default

        self._cache[key] = value
        return value

    def _get_django_settings(self) -> dict[str, Any]:
        data = getattr(settings, SETTINGS_NAME, None)
        return data if isinstance(data, dict) else {}

    def _get_nested_value(self, data: dict[str, Any], key: str) -> Any:
        """
        Get nested value from dictionary using dot notation.

        Args:
            data: Dictionary to search in
            key: Key to retrieve

        Returns:
            The value or None if not found
        """
        current: Any = data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
        return current

    def clear_cache(self) -> None:
        """Clear the settings cache."""
        self._cache.clear()


# Global settings proxy instance
settings_proxy = SettingsProxy()


def get_setting(key: str, default: Any = None) -> Any:
    """
    Get a protector setting value.

    Args:
        key: Setting key to retrieve
        default: Default value if setting is not found

    Returns:
        The resolved setting value
    """
    return settings_proxy.get(key, default)


@receiver(setting_changed)
def _clear_settings_cache(setting: str, **kwargs: Any) -> None:
    if setting == SETTINGS_NAME:
        settings_proxy.clear_cache()


@dataclass(frozen=True)
class ProtectorSettings:
    paranoid: bool
    subject_resolver: Optional[str]
    log_denials: bool


def _coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    return bool(value)


def _coerce_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def get_protector_settings() -> ProtectorSettings:
    return ProtectorSettings(
        paranoid=_coerce_bool(get_setting("paranoid", False), False),
        subject_resolver=_coerce_str(get_setting("subject_resolver")),
        log_denials=_coerce_bool(get_setting("log_denials", True), True),
    )


def is_paranoid() -> bool:
    """Return whether unscoped decisions must be treated as scoped."""
    return _coerce_bool(get_setting("paranoid", False), False)
