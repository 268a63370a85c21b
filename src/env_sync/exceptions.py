"""
Exception classes for the env-sync system.

All exceptions inherit from EnvSyncError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class EnvSyncError(Exception):
    """Base exception for all env-sync errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class DecodeError(EnvSyncError):
    """Raised when an entry or a compressed bucket payload cannot be decoded."""

    pass


class ValidationError(EnvSyncError):
    """Raised when a config, settings object or hostname is rejected before writing."""

    pass


class CapacityError(EnvSyncError):
    """Raised when entries do not fit the per-item quota or the bucket count."""

    pass


class BackendError(EnvSyncError):
    """Raised when the backing key-value store fails (I/O, network, quota exceeded)."""

    pass


class ConfigError(EnvSyncError):
    """Raised when configuration cannot be loaded or holds invalid values."""

    pass
