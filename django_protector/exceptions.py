"""
Exceptions raised by the protection engine and its Django adapter.
"""

from typing import Optional

from django.core.exceptions import PermissionDenied


class ProtectorError(Exception):
    """Base exception for protection engine errors."""


class UnrestrictedAccessError(ProtectorError):
    """Raised when a protected operation runs before a subject was set."""

    def __init__(self, message: Optional[str] = None, model_name: Optional[str] = None):
        self.model_name = model_name
        if message is None:
            target = model_name or "object"
            message = f"Unrestricted access to {target}: call restrict() first"
        super().__init__(message)


class AccessDenied(PermissionDenied):
    """
    Raised by the Django adapter when a subject may not persist a change.

    ``field_name`` holds the first offending field for create/update attempts
    and is ``None`` when the action itself is not permitted.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        action: Optional[str] = None,
        field_name: Optional[str] = None,
        model_name: Optional[str] = None,
    ):
        self.action = action
        self.field_name = field_name
        self.model_name = model_name
        if message is None:
            message = denial_message(action, field_name, model_name)
        super().__init__(message)


def denial_message(
    action: Optional[str], field_name: Optional[str], model_name: Optional[str] = None
) -> str:
    """Build the user facing rejection message for a denied operation."""
    if field_name is not None:
        return f"Access denied to '{field_name}'"
    if model_name:
        return f"Access denied to {action} {model_name}"
    return f"Access denied to {action}"
