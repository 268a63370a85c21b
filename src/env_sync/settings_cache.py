"""
Two-tier settings cache.

Reads go to an ephemeral fast cache first and fall through to the sync
store; writes and removals go to both concurrently. The fast cache is
keyed by domain base and, for hostname-divergent records, by each alias
hostname as well.

The fast cache is never invalidated by changes that arrive through the
sync store from elsewhere (another device, another process). A stale
entry stays until the fast cache is discarded or a local write replaces it.
"""

import asyncio
from dataclasses import replace
from typing import Optional

from . import entry_codec
from .backends import SyncBackend
from .enums import Protocol
from .exceptions import ValidationError
from .hostnames import from_sync_hostname, normalize_domain_base, to_sync_hostname
from .models import (
    LOCAL_INDEX,
    PRODUCTION_INDEX,
    DomainConfig,
    DomainListing,
    DomainSettings,
    Environment,
    default_port,
    default_title,
    default_tld,
)
from .sync_logger import SyncLogger
from .sync_store import SyncStore

COMPONENT = "settings_cache"


def _environment(index: int, tld: str, protocol: Protocol) -> Environment:
    tls = protocol is Protocol.HTTPS
    return Environment(
        tls=tls,
        tld=tld,
        port=default_port(tls),
        title=default_title(index),
    )


def canonical_settings(settings: DomainSettings) -> DomainSettings:
    """
    Normalise alias hostnames, dropping them when they do not diverge.

    Raises:
        ValidationError: If an alias hostname is invalid
    """
    prod = settings.prod_hostname
    local = settings.local_hostname
    if prod is not None:
        prod = normalize_domain_base(prod)
    if local is not None:
        local = normalize_domain_base(local)

    if prod is None or local is None or prod == local:
        prod = local = None

    return replace(settings, prod_hostname=prod, local_hostname=local)


def to_domain_config(domain_base: str, settings: DomainSettings) -> DomainConfig:
    """
    Map UI settings to the stored record.

    Environments are ``[local, production]`` with default titles and the
    default port of their protocol.
    """
    settings = canonical_settings(settings)
    environments = [
        _environment(LOCAL_INDEX, settings.local_tld, settings.local_protocol),
        _environment(PRODUCTION_INDEX, settings.prod_tld, settings.prod_protocol),
    ]

    if settings.is_divergent:
        hostnames = [
            to_sync_hostname(settings.prod_hostname),
            to_sync_hostname(settings.local_hostname),
        ]
    else:
        hostnames = [to_sync_hostname(domain_base)]

    return DomainConfig(
        env_count=len(environments),
        environments=environments,
        hostname_divergence=settings.is_divergent,
        hostnames=hostnames,
    )


def from_domain_config(config: DomainConfig) -> DomainSettings:
    """
    Map a stored record to UI settings.

    A record with a single environment has no production environment;
    its production side takes the positional defaults of index 1 over
    plain HTTP.
    """
    local = config.environments[LOCAL_INDEX]
    if config.env_count > PRODUCTION_INDEX:
        prod = config.environments[PRODUCTION_INDEX]
        prod_tld = prod.tld
        prod_protocol = Protocol.HTTPS if prod.tls else Protocol.HTTP
    else:
        prod_tld = default_tld(PRODUCTION_INDEX)
        prod_protocol = Protocol.HTTP

    prod_hostname = local_hostname = None
    if config.hostname_divergence:
        prod_hostname = from_sync_hostname(config.hostnames[0])
        local_hostname = from_sync_hostname(config.hostnames[1])

    return DomainSettings(
        prod_tld=prod_tld,
        local_tld=local.tld,
        prod_protocol=prod_protocol,
        local_protocol=Protocol.HTTPS if local.tls else Protocol.HTTP,
        prod_hostname=prod_hostname,
        local_hostname=local_hostname,
    )


class SettingsCache:
    """
    Read-through / write-through access to per-domain settings.

    The fast cache is injected so its lifecycle is owned by the caller:
    create it at process start and discard it at process end.
    """

    def __init__(
        self,
        store: SyncStore,
        fast_cache: SyncBackend,
        logger: Optional[SyncLogger] = None,
    ) -> None:
        """
        Initialize the settings cache.

        Args:
            store: Durable replicated store
            fast_cache: Session-scoped key-value cache
            logger: Optional logger
        """
        self._store = store
        self._fast_cache = fast_cache
        self._logger = logger

    def _log_debug(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)

    @staticmethod
    def _cache_keys(domain_base: str, settings: DomainSettings) -> list[str]:
        keys = [domain_base]
        for alias in settings.aliases():
            if alias not in keys:
                keys.append(alias)
        return keys

    async def _cached(self, domain_base: str) -> Optional[DomainSettings]:
        data = await self._fast_cache.get([domain_base])
        if domain_base not in data:
            return None
        return DomainSettings.from_dict(data[domain_base])

    async def get(self, domain_base: str) -> Optional[DomainSettings]:
        """
        Get the settings for a domain base or alias hostname.

        Args:
            domain_base: Domain base, e.g. ``"example"``

        Returns:
            The settings, or None if the domain has none stored

        Raises:
            ValidationError: If the key is not a valid hostname
            DecodeError: If the sync store holds a malformed entry
            BackendError: If either tier fails
        """
        key = normalize_domain_base(domain_base)

        cached = await self._cached(key)
        if cached is not None:
            self._log_debug("Fast cache hit", {"domain_base": key})
            return cached

        config = await self._store.find_config(to_sync_hostname(key))
        if config is None:
            self._log_debug("Not stored", {"domain_base": key})
            return None

        settings = from_domain_config(config)
        value = settings.to_dict()
        await self._fast_cache.set({k: value for k in self._cache_keys(key, settings)})
        self._log_debug("Filled fast cache from sync store", {"domain_base": key})
        return settings

    async def save(self, domain_base: str, settings: DomainSettings) -> None:
        """
        Store settings in both tiers.

        For divergent settings, ``domain_base`` must be one of the two alias
        hostnames so the record can be found again by it after a restart.

        Raises:
            ValidationError: If the key or settings are invalid
            CapacityError: If the sync store is full
            BackendError: If either tier fails
        """
        key = normalize_domain_base(domain_base)
        settings = canonical_settings(settings)

        if settings.is_divergent and key not in settings.aliases():
            raise ValidationError(
                code="alias_mismatch",
                message=(
                    f"Domain base {key!r} must be one of the alias hostnames "
                    f"{settings.aliases()!r}"
                ),
                details={"domain_base": key, "aliases": settings.aliases()},
            )

        config = to_domain_config(key, settings)
        # Reject before either tier is touched; the two writes run concurrently.
        entry_codec.validate_config(config)
        keys = self._cache_keys(key, settings)
        value = settings.to_dict()

        previous = await self._cached(key)
        stale = [k for k in previous.aliases() if k not in keys] if previous else []

        operations = [
            self._fast_cache.set({k: value for k in keys}),
            self._store.write_config(to_sync_hostname(key), config),
        ]
        if stale:
            operations.append(self._fast_cache.remove(stale))
        await asyncio.gather(*operations)

    async def remove(self, domain_base: str) -> None:
        """
        Remove a domain from both tiers, including its cached aliases.

        Raises:
            ValidationError: If the key is not a valid hostname
            BackendError: If either tier fails
        """
        key = normalize_domain_base(domain_base)

        keys = [key]
        previous = await self._cached(key)
        if previous is not None:
            keys.extend(a for a in previous.aliases() if a not in keys)

        await asyncio.gather(
            self._fast_cache.remove(keys),
            self._store.remove_config(to_sync_hostname(key)),
        )

    async def list_all(self) -> list[DomainListing]:
        """
        List every stored domain from the sync store, bypassing the fast cache.

        Raises:
            DecodeError: If the sync store holds a malformed entry
        """
        return [
            DomainListing(
                domain_base=from_sync_hostname(config.hostnames[0]),
                settings=from_domain_config(config),
            )
            for config in await self._store.list_configs()
        ]
