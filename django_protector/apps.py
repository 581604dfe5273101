"""
Django app configuration for django-protector.

On startup the configured ``PROTECTOR`` settings are validated so that a
broken subject resolver path is reported before the first request.
"""

import logging

from django.apps import AppConfig as BaseAppConfig
from django.conf import settings as django_settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class ProtectorConfig(BaseAppConfig):
    """Django app configuration for django-protector."""

    name = "django_protector"
    verbose_name = "Django Protector"
    label = "django_protector"

    def ready(self):
        """Validate library configuration after Django has loaded."""
        from .config_proxy import get_protector_settings

        protector_settings = get_protector_settings()
        try:
            self._validate_subject_resolver(protector_settings.subject_resolver)
        except ImproperlyConfigured as e:
            logger.warning("Protector configuration validation failed: %s", e)
            if self._is_debug_mode():
                raise

        logger.debug(
            "Protector initialized (paranoid=%s)", protector_settings.paranoid
        )

    def _validate_subject_resolver(self, path):
        if not path:
            return
        try:
            resolver = import_string(path)
        except ImportError as e:
            raise ImproperlyConfigured(
                f"PROTECTOR['subject_resolver'] cannot be imported: {path}"
            ) from e
        if not callable(resolver):
            raise ImproperlyConfigured(
                f"PROTECTOR['subject_resolver'] is not callable: {path}"
            )

    def _is_debug_mode(self):
        """Check if we're in debug mode."""
        return bool(getattr(django_settings, "DEBUG", False))
