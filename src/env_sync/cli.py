"""
Command-line interface for the env-sync system.

This module provides the ``env-sync`` entry point with commands for:
- list / get / set / remove: Inspect and edit per-domain environment settings
- usage: Report bucket sizes against the store quotas
- reset: Remove every bucket from the store
- config: Configuration management
"""

import argparse
import asyncio
import json
import sys
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import AsyncIterator, Optional

from . import __version__
from .backends import JsonFileBackend, MemoryBackend, SyncBackend
from .config import (
    BackendConfig,
    LoggingConfig,
    SyncConfig,
    SystemConfig,
    default_config_path,
    default_store_path,
    load_config_from_env,
    parse_backend_kind,
)
from .enums import BackendKind, Protocol
from .exceptions import ConfigError, EnvSyncError
from .http_backend import HttpBackend
from .models import DomainSettings, StoreUsage, default_tld
from .settings_cache import SettingsCache
from .sync_logger import SyncLogger
from .sync_store import SyncStore


def create_default_config() -> SystemConfig:
    """Create a configuration with every default applied."""
    return SystemConfig()


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig, or None if the file does not exist

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(
            code="parse_error",
            message=f"Failed to load config: {e}",
            details={"config_path": str(config_path)},
        )

    try:
        defaults = SyncConfig()
        sync_data = data.get("sync", {})
        sync = SyncConfig(
            quota_bytes_per_item=int(sync_data.get("quota_bytes_per_item", defaults.quota_bytes_per_item)),
            max_buckets=int(sync_data.get("max_buckets", defaults.max_buckets)),
            bucket_key_prefix=str(sync_data.get("bucket_key_prefix", defaults.bucket_key_prefix)),
            quota_bytes=int(sync_data.get("quota_bytes", defaults.quota_bytes)),
            max_items=int(sync_data.get("max_items", defaults.max_items)),
        )

        backend_data = data.get("backend", {})
        file_path = backend_data.get("file_path")
        backend = BackendConfig(
            kind=parse_backend_kind(backend_data.get("kind", BackendKind.FILE.value)),
            file_path=Path(file_path).expanduser() if file_path else default_store_path(),
            url=backend_data.get("url"),
            token=backend_data.get("token"),
            timeout_seconds=float(backend_data.get("timeout_seconds", 10.0)),
            allow_insecure=bool(backend_data.get("allow_insecure", False)),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigError(
            code="invalid_config",
            message=f"Invalid config values: {e}",
            details={"config_path": str(config_path)},
        )

    sync.validate()
    logging_config.log_level()

    return SystemConfig(sync=sync, backend=backend, logging=logging_config)


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "sync": {
                "quota_bytes_per_item": config.sync.quota_bytes_per_item,
                "max_buckets": config.sync.max_buckets,
                "bucket_key_prefix": config.sync.bucket_key_prefix,
                "quota_bytes": config.sync.quota_bytes,
                "max_items": config.sync.max_items,
            },
            "backend": {
                "kind": config.backend.kind.value,
                "file_path": str(config.backend.file_path),
                "url": config.backend.url,
                "token": config.backend.token,
                "timeout_seconds": config.backend.timeout_seconds,
                "allow_insecure": config.backend.allow_insecure,
            },
            "logging": {
                "level": config.logging.level,
                "output_format": config.logging.output_format,
            },
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def resolve_config(args: argparse.Namespace) -> SystemConfig:
    """Load the config named by ``--config``, else build it from the environment."""
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            raise ConfigError(
                code="not_found",
                message=f"Could not load config from {args.config}",
                details={"config_path": args.config},
            )
        return config
    return load_config_from_env()


def create_logger(config: SystemConfig, verbose: bool) -> Optional[SyncLogger]:
    if not verbose:
        return None
    return SyncLogger(
        output_format=config.logging.output_format,
        level=config.logging.log_level(),
    )


@asynccontextmanager
async def open_backend(config: SystemConfig) -> AsyncIterator[SyncBackend]:
    """
    Open the backing store described by ``config.backend``.

    Raises:
        ConfigError: If the HTTP backend has no URL
    """
    backend_config = config.backend

    if backend_config.kind is BackendKind.HTTP:
        if not backend_config.url:
            raise ConfigError(
                code="missing_url",
                message="The http backend needs a url",
                details={},
            )
        async with HttpBackend(
            base_url=backend_config.url,
            token=backend_config.token,
            timeout=backend_config.timeout_seconds,
            allow_insecure=backend_config.allow_insecure,
        ) as backend:
            yield backend
    elif backend_config.kind is BackendKind.MEMORY:
        yield MemoryBackend(limits=config.sync)
    else:
        yield JsonFileBackend(backend_config.file_path, limits=config.sync)


def _format_settings(domain_base: str, settings: DomainSettings) -> str:
    local_host = settings.local_hostname or domain_base
    prod_host = settings.prod_hostname or domain_base
    return (
        f"{domain_base}: local {settings.local_protocol.value}//{local_host}{settings.local_tld}"
        f"  production {settings.prod_protocol.value}//{prod_host}{settings.prod_tld}"
    )


def _format_usage(usage: StoreUsage) -> list[str]:
    lines = [
        f"Buckets: {len(usage.buckets)}/{usage.max_buckets}",
        f"Entries: {usage.entry_count}",
        f"Stored: {usage.stored_bytes} bytes ({usage.quota_percent:.1f}% of {usage.quota_bytes})",
    ]
    for bucket in usage.buckets:
        lines.append(
            f"  {bucket.key}: {bucket.entry_count} entries, "
            f"{bucket.raw_bytes} raw / {bucket.stored_bytes} stored bytes "
            f"(limit {usage.quota_bytes_per_item})"
        )
    return lines


async def run_command(args: argparse.Namespace, config: SystemConfig) -> int:
    """
    Execute a store command against the configured backend.

    Returns:
        Exit code
    """
    logger = create_logger(config, args.verbose)

    async with open_backend(config) as backend:
        store = SyncStore(backend, config.sync, logger=logger)
        cache = SettingsCache(store, MemoryBackend(), logger=logger)

        if args.command == "list":
            listings = await cache.list_all()
            if args.json:
                print(json.dumps(
                    [{"domain_base": l.domain_base, "settings": l.settings.to_dict()} for l in listings],
                    indent=2,
                ))
            elif not listings:
                print("No domains stored.")
            else:
                for listing in listings:
                    print(_format_settings(listing.domain_base, listing.settings))
            return 0

        if args.command == "get":
            settings = await cache.get(args.domain)
            if settings is None:
                print(f"No settings stored for {args.domain}", file=sys.stderr)
                return 1
            if args.json:
                print(json.dumps(settings.to_dict(), indent=2))
            else:
                print(_format_settings(args.domain, settings))
            return 0

        if args.command == "set":
            current = await cache.get(args.domain) or DomainSettings(
                prod_tld=default_tld(1),
                local_tld=default_tld(0),
            )
            updates = {}
            if args.prod_tld is not None:
                updates["prod_tld"] = args.prod_tld
            if args.local_tld is not None:
                updates["local_tld"] = args.local_tld
            if args.prod_protocol is not None:
                updates["prod_protocol"] = Protocol(args.prod_protocol + ":")
            if args.local_protocol is not None:
                updates["local_protocol"] = Protocol(args.local_protocol + ":")
            if args.prod_hostname is not None:
                updates["prod_hostname"] = args.prod_hostname
            if args.local_hostname is not None:
                updates["local_hostname"] = args.local_hostname

            settings = replace(current, **updates)
            await cache.save(args.domain, settings)
            print(f"Saved settings for {args.domain}")
            return 0

        if args.command == "remove":
            await cache.remove(args.domain)
            print(f"Removed settings for {args.domain}")
            return 0

        if args.command == "usage":
            usage = await store.usage()
            if args.json:
                print(json.dumps({
                    "buckets": [
                        {
                            "index": b.index,
                            "key": b.key,
                            "entry_count": b.entry_count,
                            "raw_bytes": b.raw_bytes,
                            "stored_bytes": b.stored_bytes,
                        }
                        for b in usage.buckets
                    ],
                    "entry_count": usage.entry_count,
                    "stored_bytes": usage.stored_bytes,
                    "quota_bytes": usage.quota_bytes,
                    "quota_percent": round(usage.quota_percent, 2),
                    "max_buckets": usage.max_buckets,
                }, indent=2))
            else:
                for line in _format_usage(usage):
                    print(line)
            return 0

        if args.command == "reset":
            if not args.force:
                print("Refusing to remove every bucket without --force.", file=sys.stderr)
                return 1
            await store.clear()
            print("Removed all buckets.")
            return 0

    return 1


def cmd_store(args: argparse.Namespace) -> int:
    """Handle the list/get/set/remove/usage/reset commands."""
    try:
        config = resolve_config(args)
        return asyncio.run(run_command(args, config))
    except EnvSyncError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else default_config_path()

    try:
        if args.action == "show":
            config = load_config_from_file(config_path)
            if config is None:
                print(f"No configuration found at: {config_path}")
                print("Use 'config init' to create a default configuration.")
                return 1

            print(f"Configuration from: {config_path}")
            print(f"  Backend: {config.backend.kind.value}")
            if config.backend.kind is BackendKind.HTTP:
                print(f"  URL: {config.backend.url}")
            else:
                print(f"  Store file: {config.backend.file_path}")
            print(f"  Per-item quota: {config.sync.quota_bytes_per_item} bytes")
            print(f"  Max buckets: {config.sync.max_buckets}")
            print(f"  Log level: {config.logging.level}")
            return 0

        elif args.action == "init":
            if config_path.exists() and not args.force:
                print(f"Configuration already exists at: {config_path}")
                print("Use --force to overwrite.")
                return 1

            if save_config_to_file(create_default_config(), config_path):
                print(f"Configuration created at: {config_path}")
                return 0
            return 1

        elif args.action == "validate":
            config = load_config_from_file(config_path)
            if config is None:
                print(f"Error: Could not load config from {config_path}", file=sys.stderr)
                return 1

            print(f"Configuration at {config_path} is valid.")
            return 0

    except ConfigError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1

    return 1


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file (default: ENV_SYNC_* environment variables)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable log output on stderr",
    )
    parser.set_defaults(func=cmd_store)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="env-sync",
        description="Quota-constrained synchronized storage of per-domain environments",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser("list", help="List every stored domain")
    _add_common_arguments(list_parser)

    get_parser = subparsers.add_parser("get", help="Show the settings of a domain")
    get_parser.add_argument("domain", help="Domain base (e.g., example)")
    _add_common_arguments(get_parser)

    set_parser = subparsers.add_parser("set", help="Create or update the settings of a domain")
    set_parser.add_argument("domain", help="Domain base (e.g., example)")
    set_parser.add_argument("--prod-tld", help="Production TLD (e.g., .com)")
    set_parser.add_argument("--local-tld", help="Local TLD (e.g., .test)")
    set_parser.add_argument("--prod-protocol", choices=["http", "https"], help="Production protocol")
    set_parser.add_argument("--local-protocol", choices=["http", "https"], help="Local protocol")
    set_parser.add_argument("--prod-hostname", help="Production hostname when it differs from local")
    set_parser.add_argument("--local-hostname", help="Local hostname when it differs from production")
    _add_common_arguments(set_parser)

    remove_parser = subparsers.add_parser("remove", help="Remove the settings of a domain")
    remove_parser.add_argument("domain", help="Domain base (e.g., example)")
    _add_common_arguments(remove_parser)

    usage_parser = subparsers.add_parser("usage", help="Show bucket sizes against the quotas")
    _add_common_arguments(usage_parser)

    reset_parser = subparsers.add_parser("reset", help="Remove every bucket from the store")
    reset_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Confirm removal",
    )
    _add_common_arguments(reset_parser)

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
