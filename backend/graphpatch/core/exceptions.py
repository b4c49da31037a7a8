"""Common exception classes.

Every error raised by this service carries a human-readable message, a
machine-readable ``error_code`` and a ``details`` dictionary so the HTTP
layer and agent callers can act on failures without parsing text.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base application exception.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code for API responses.
        details: Additional error context as dictionary.
    """

    error_code: str = "APP_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API error bodies."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AppError):
    """Raised when a collaborator cannot be built from current settings.

    Example:
        >>> raise ConfigurationError("DATABASE_URL")
    """

    error_code = "CONFIGURATION_ERROR"

    def __init__(self, setting: str, reason: str = "is not set") -> None:
        super().__init__(
            message=f"Setting {setting} {reason}",
            details={"setting": setting},
        )
        self.setting = setting


__all__ = [
    "AppError",
    "ConfigurationError",
]
