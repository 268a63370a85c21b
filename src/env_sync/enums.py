"""
Enumeration types for the env-sync system.

These enums provide type-safe constants for protocols, error codes,
and configuration options throughout the system.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Protocol(Enum):
    """URL protocol of an environment, in the form browsers report it."""

    HTTP = "http:"
    HTTPS = "https:"


class DecodeErrorCode(Enum):
    """Error codes for entry and bucket decoding failures."""

    UNKNOWN_VERSION = "unknown_version"
    SECTION_COUNT = "section_count"
    INVALID_ENV_COUNT = "invalid_env_count"
    INVALID_FLAGS = "invalid_flags"
    INVALID_VALUE_BLOCK = "invalid_value_block"
    INVALID_PORT = "invalid_port"
    INVALID_HOSTNAMES = "invalid_hostnames"
    INVALID_BASE64 = "invalid_base64"
    INVALID_STREAM = "invalid_stream"
    INVALID_PAYLOAD = "invalid_payload"


class BackendKind(Enum):
    """Kind of backing store the CLI connects to."""

    MEMORY = "memory"
    FILE = "file"
    HTTP = "http"
