"""
Configuration dataclasses for the env-sync system.

This module defines the sync store limits, the backing store connection,
and logging configuration, and loads them from the process environment
(optionally seeded from a ``.env`` file).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .enums import BackendKind, LogLevel
from .exceptions import ConfigError

ENV_PREFIX = "ENV_SYNC_"


def default_store_path() -> Path:
    return Path.home() / ".env_sync" / "store.json"


def default_config_path() -> Path:
    return Path.home() / ".env_sync" / "config.json"


@dataclass
class SyncConfig:
    """Limits of the backing store and how buckets are addressed in it."""

    quota_bytes_per_item: int = 8_192
    max_buckets: int = 13
    bucket_key_prefix: str = "bucket-"
    quota_bytes: int = 102_400
    max_items: int = 512

    def validate(self) -> None:
        """
        Reject limits the sync store cannot work with.

        Raises:
            ConfigError: If a limit is out of range
        """
        # Smallest quota that fits one minimal entry: ["0|1|0000|0||a."]
        if self.quota_bytes_per_item < 32:
            raise ConfigError(
                code="invalid_quota",
                message=f"quota_bytes_per_item too small: {self.quota_bytes_per_item}",
                details={"quota_bytes_per_item": self.quota_bytes_per_item},
            )
        if self.max_buckets < 1 or self.max_buckets > self.max_items:
            raise ConfigError(
                code="invalid_max_buckets",
                message=f"max_buckets must be in 1..{self.max_items}, got {self.max_buckets}",
                details={"max_buckets": self.max_buckets, "max_items": self.max_items},
            )
        if not self.bucket_key_prefix:
            raise ConfigError(
                code="invalid_bucket_key_prefix",
                message="bucket_key_prefix must not be empty",
                details={},
            )

    def bucket_key(self, index: int) -> str:
        return f"{self.bucket_key_prefix}{index}"

    def bucket_keys(self) -> list[str]:
        """Every key a bucket may occupy, in index order."""
        return [self.bucket_key(i) for i in range(self.max_buckets)]


@dataclass
class BackendConfig:
    """Which backing store to use and how to reach it."""

    kind: BackendKind = BackendKind.FILE
    file_path: Path = field(default_factory=default_store_path)
    url: Optional[str] = None
    token: Optional[str] = None
    timeout_seconds: float = 10.0
    allow_insecure: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'

    def log_level(self) -> LogLevel:
        try:
            return LogLevel(self.level.lower())
        except ValueError:
            raise ConfigError(
                code="invalid_log_level",
                message=f"Unknown log level: {self.level!r}",
                details={"level": self.level, "allowed": [lv.value for lv in LogLevel]},
            )


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    sync: SyncConfig = field(default_factory=SyncConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _env(name: str) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _int_env(name: str, default: int) -> int:
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(
            code="invalid_env_value",
            message=f"{ENV_PREFIX}{name} must be an integer, got {value!r}",
            details={"variable": ENV_PREFIX + name},
        )


def _float_env(name: str, default: float) -> float:
    value = _env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(
            code="invalid_env_value",
            message=f"{ENV_PREFIX}{name} must be a number, got {value!r}",
            details={"variable": ENV_PREFIX + name},
        )


def _bool_env(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def parse_backend_kind(value: str) -> BackendKind:
    try:
        return BackendKind(value.lower())
    except ValueError:
        raise ConfigError(
            code="invalid_backend_kind",
            message=f"Unknown backend kind: {value!r}",
            details={"kind": value, "allowed": [k.value for k in BackendKind]},
        )


def load_config_from_env(env_file: Optional[Path] = None) -> SystemConfig:
    """
    Build a SystemConfig from ``ENV_SYNC_*`` environment variables.

    Variables already set in the process take precedence over the
    ``.env`` file.

    Args:
        env_file: Optional path of a .env file to load first

    Returns:
        The resulting configuration, validated

    Raises:
        ConfigError: If a variable holds an invalid value
    """
    if env_file is not None:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    defaults = SyncConfig()
    sync = SyncConfig(
        quota_bytes_per_item=_int_env("QUOTA_BYTES_PER_ITEM", defaults.quota_bytes_per_item),
        max_buckets=_int_env("MAX_BUCKETS", defaults.max_buckets),
        bucket_key_prefix=_env("BUCKET_KEY_PREFIX") or defaults.bucket_key_prefix,
        quota_bytes=_int_env("QUOTA_BYTES", defaults.quota_bytes),
        max_items=_int_env("MAX_ITEMS", defaults.max_items),
    )
    sync.validate()

    kind = _env("BACKEND")
    store_path = _env("STORE_PATH")
    backend = BackendConfig(
        kind=parse_backend_kind(kind) if kind else BackendKind.FILE,
        file_path=Path(store_path).expanduser() if store_path else default_store_path(),
        url=_env("URL"),
        token=_env("TOKEN"),
        timeout_seconds=_float_env("TIMEOUT", 10.0),
        allow_insecure=_bool_env("ALLOW_INSECURE", False),
    )

    logging_config = LoggingConfig(
        level=_env("LOG_LEVEL") or "info",
        output_format=_env("LOG_FORMAT") or "text",
    )
    logging_config.log_level()

    return SystemConfig(sync=sync, backend=backend, logging=logging_config)
