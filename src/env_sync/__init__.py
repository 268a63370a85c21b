"""
env-sync - Quota-constrained synchronized storage of per-domain environments.

This package serializes per-domain environment records into a compact text
form, packs them into a fixed number of size-capped buckets of a replicated
key-value store, and serves them through a two-tier (fast cache + sync
store) read/write path.
"""

__version__ = "0.1.0"

from env_sync.exceptions import (
    EnvSyncError,
    DecodeError,
    ValidationError,
    CapacityError,
    BackendError,
    ConfigError,
)
from env_sync.enums import (
    LogLevel,
    Protocol,
    DecodeErrorCode,
    BackendKind,
)
from env_sync.models import (
    Environment,
    DomainConfig,
    DomainSettings,
    Bucket,
    BucketUsage,
    StoreUsage,
    DomainListing,
)
from env_sync.config import (
    SyncConfig,
    BackendConfig,
    LoggingConfig,
    SystemConfig,
    load_config_from_env,
)
from env_sync.entry_codec import (
    serialize,
    deserialize,
    validate_config,
)
from env_sync.bucket_codec import (
    compress,
    decompress,
)
from env_sync.bucket_packer import (
    distribute,
)
from env_sync.backends import (
    SyncBackend,
    MemoryBackend,
    JsonFileBackend,
)
from env_sync.http_backend import (
    HttpBackend,
)
from env_sync.sync_logger import (
    SyncLogger,
    LogEntry,
)
from env_sync.sync_store import (
    SyncStore,
)
from env_sync.settings_cache import (
    SettingsCache,
    to_domain_config,
    from_domain_config,
)

__all__ = [
    # Exceptions
    "EnvSyncError",
    "DecodeError",
    "ValidationError",
    "CapacityError",
    "BackendError",
    "ConfigError",
    # Enums
    "LogLevel",
    "Protocol",
    "DecodeErrorCode",
    "BackendKind",
    # Models
    "Environment",
    "DomainConfig",
    "DomainSettings",
    "Bucket",
    "BucketUsage",
    "StoreUsage",
    "DomainListing",
    # Configuration
    "SyncConfig",
    "BackendConfig",
    "LoggingConfig",
    "SystemConfig",
    "load_config_from_env",
    # Entry Codec
    "serialize",
    "deserialize",
    "validate_config",
    # Bucket Codec
    "compress",
    "decompress",
    # Bucket Packer
    "distribute",
    # Backends
    "SyncBackend",
    "MemoryBackend",
    "JsonFileBackend",
    "HttpBackend",
    # Logging
    "SyncLogger",
    "LogEntry",
    # Sync Store
    "SyncStore",
    # Settings Cache
    "SettingsCache",
    "to_domain_config",
    "from_domain_config",
]
