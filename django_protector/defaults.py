"""
Default configuration for the django-protector library.

Every key the library reads from the ``PROTECTOR`` Django setting has its
default declared here. ``config_proxy`` falls back to these values when the
project does not override them.
"""

from __future__ import annotations

from typing import Any

LIBRARY_VERSION = "0.1.0"
LIBRARY_NAME = "django-protector"


LIBRARY_DEFAULTS: dict[str, Any] = {
    # Unscoped decisions are treated as scoped to nothing (deny-all default).
    "paranoid": False,
    # Dotted path to a callable(info) returning the GraphQL subject.
    "subject_resolver": "django_protector.graphql.default_subject_resolver",
    # Log refused create/update/destroy attempts at INFO level.
    "log_denials": True,
}
