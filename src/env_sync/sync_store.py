"""
Sync Store module for quota-constrained domain configuration storage.

Domain configs are serialized to entries, packed into at most
``max_buckets`` size-capped buckets, compressed, and written to fixed
bucket keys of a backing store. Every mutation rewrites the whole bucket
set; there is no incremental patching.

The backing store offers no transactions. ``write_config`` and
``remove_config`` are read-modify-write cycles over the full entry set,
so two concurrent writers can race and the later ``set`` wins. A failure
between ``set`` and ``remove`` can leave stale keys behind; nothing is
rolled back, and the next read reflects whatever landed.
"""

from typing import Optional

from . import bucket_codec, bucket_packer, entry_codec
from .backends import SyncBackend, item_size
from .config import SyncConfig
from .exceptions import BackendError, CapacityError, ValidationError
from .models import Bucket, BucketUsage, DomainConfig, StoreUsage
from .sync_logger import SyncLogger

COMPONENT = "sync_store"


class SyncStore:
    """
    Bucketed storage of domain configs over a key-value backend.

    Lookups scan every entry (O(total entries)); the store keeps no index
    or in-memory copy between calls.
    """

    def __init__(
        self,
        backend: SyncBackend,
        config: Optional[SyncConfig] = None,
        logger: Optional[SyncLogger] = None,
    ) -> None:
        """
        Initialize the sync store.

        Args:
            backend: Backing store exposing get/set/remove
            config: Quota and bucket addressing; defaults to SyncConfig()
            logger: Optional logger
        """
        self._backend = backend
        self._config = config or SyncConfig()
        self._config.validate()
        self._logger = logger

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def backend(self) -> SyncBackend:
        return self._backend

    def _log_debug(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)

    def _log_info(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.info(COMPONENT, message, data)

    def _log_error(self, message: str, error: Exception, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log_error(COMPONENT, message, error=error, additional_data=data)

    async def _fetch_raw(self) -> dict[int, str]:
        try:
            data = await self._backend.get(self._config.bucket_keys())
        except BackendError as e:
            self._log_error("Failed to read buckets", e)
            raise

        raw = {}
        for index, key in enumerate(self._config.bucket_keys()):
            value = data.get(key)
            if value:
                raw[index] = value
        return raw

    async def read_buckets(self) -> list[Bucket]:
        """
        Fetch and decompress every present bucket.

        Returns:
            Buckets in index order; absent keys are skipped

        Raises:
            DecodeError: If a stored bucket cannot be decompressed
            BackendError: If the backing store read fails
        """
        raw = await self._fetch_raw()
        buckets = [
            Bucket(index=index, entries=bucket_codec.decompress(value))
            for index, value in raw.items()
        ]
        self._log_debug(
            "Read buckets",
            {"buckets": [b.index for b in buckets], "entries": sum(len(b.entries) for b in buckets)},
        )
        return buckets

    async def collect_all_entries(self) -> list[str]:
        """All entries, in bucket-index then intra-bucket order."""
        return [entry for bucket in await self.read_buckets() for entry in bucket.entries]

    async def find_config(self, hostname: str) -> Optional[DomainConfig]:
        """
        Find the first config whose hostnames contain ``hostname``.

        Args:
            hostname: Sync-form hostname, e.g. ``"example."``

        Returns:
            The decoded DomainConfig, or None if no entry matches

        Raises:
            DecodeError: If an entry scanned before the match is malformed
        """
        for entry in await self.collect_all_entries():
            config = entry_codec.deserialize(entry)
            if config.matches(hostname):
                return config
        return None

    async def list_configs(self) -> list[DomainConfig]:
        """Decode every stored entry, in storage order."""
        return [entry_codec.deserialize(entry) for entry in await self.collect_all_entries()]

    async def write_config(self, hostname: str, config: DomainConfig) -> None:
        """
        Insert or replace the config stored for ``hostname``.

        The existing entry matching ``hostname`` (or any hostname of
        ``config``) is replaced by the new entry in place; without a match
        the entry is appended. The full entry set is then repacked and
        rewritten.

        Args:
            hostname: Sync-form hostname identifying the record
            config: The config to store

        Raises:
            ValidationError: If ``hostname`` is not one of the config's
                hostnames, or the config cannot be serialized
            CapacityError: If the entries no longer fit ``max_buckets`` buckets
            DecodeError: If an existing entry is malformed
            BackendError: If the backing store read or write fails
        """
        if hostname not in config.hostnames:
            raise ValidationError(
                code="hostname_not_in_config",
                message=(
                    f"Hostname {hostname!r} is not one of the config's "
                    f"hostnames {config.hostnames!r}"
                ),
                details={"hostname": hostname, "hostnames": list(config.hostnames)},
            )

        new_entry = entry_codec.serialize(config)
        claimed = set(config.hostnames)
        entries = await self.collect_all_entries()

        # Hostnames are unique across records: the first entry claiming any
        # of them is replaced in place, later ones are dropped.
        updated = []
        replaced = False
        for entry in entries:
            existing = entry_codec.deserialize(entry)
            if not claimed.intersection(existing.hostnames):
                updated.append(entry)
            elif not replaced:
                updated.append(new_entry)
                replaced = True

        if not replaced:
            updated.append(new_entry)

        self._log_info(
            "Replacing domain entry" if replaced else "Adding domain entry",
            {"hostname": hostname, "entries": len(updated)},
        )
        await self._write_buckets(updated)

    async def remove_config(self, hostname: str) -> bool:
        """
        Remove every entry whose hostnames contain ``hostname``.

        Args:
            hostname: Sync-form hostname identifying the record

        Returns:
            True if anything was removed, False if nothing matched

        Raises:
            DecodeError: If an existing entry is malformed
            BackendError: If the backing store read or write fails
        """
        entries = await self.collect_all_entries()
        remaining = [
            entry for entry in entries
            if not entry_codec.deserialize(entry).matches(hostname)
        ]

        if len(remaining) == len(entries):
            self._log_debug("No entry to remove", {"hostname": hostname})
            return False

        self._log_info(
            "Removing domain entry",
            {"hostname": hostname, "removed": len(entries) - len(remaining)},
        )

        if not remaining:
            await self._remove_keys(self._config.bucket_keys())
        else:
            await self._write_buckets(remaining)
        return True

    async def clear(self) -> None:
        """Remove every bucket key."""
        self._log_info("Clearing all buckets")
        await self._remove_keys(self._config.bucket_keys())

    async def usage(self) -> StoreUsage:
        """
        Report per-bucket sizes against the backing store's quotas.

        Raises:
            DecodeError: If a stored bucket cannot be decompressed
        """
        buckets = []
        for index, value in (await self._fetch_raw()).items():
            entries = bucket_codec.decompress(value)
            key = self._config.bucket_key(index)
            buckets.append(BucketUsage(
                index=index,
                key=key,
                entry_count=len(entries),
                raw_bytes=bucket_codec.encoded_size(entries),
                stored_bytes=item_size(key, value),
            ))

        return StoreUsage(
            buckets=buckets,
            quota_bytes_per_item=self._config.quota_bytes_per_item,
            quota_bytes=self._config.quota_bytes,
            max_buckets=self._config.max_buckets,
        )

    def pack(self, entries: list[str]) -> list[list[str]]:
        """
        Distribute entries over buckets within this store's limits.

        Raises:
            CapacityError: If an entry is over quota, or more than
                ``max_buckets`` buckets would be needed
        """
        buckets = bucket_packer.distribute(entries, self._config.quota_bytes_per_item)
        if len(buckets) > self._config.max_buckets:
            raise CapacityError(
                code="bucket_overflow",
                message=(
                    f"{len(entries)} entries need {len(buckets)} buckets, "
                    f"only {self._config.max_buckets} are available"
                ),
                details={
                    "entries": len(entries),
                    "buckets_needed": len(buckets),
                    "max_buckets": self._config.max_buckets,
                },
            )
        return buckets

    async def _write_buckets(self, entries: list[str]) -> None:
        try:
            buckets = self.pack(entries)
        except CapacityError as e:
            self._log_error("Entries do not fit the bucket quota", e)
            raise

        items = {
            self._config.bucket_key(index): bucket_codec.compress(bucket)
            for index, bucket in enumerate(buckets)
        }
        stale = [self._config.bucket_key(i) for i in range(len(buckets), self._config.max_buckets)]

        try:
            await self._backend.set(items)
        except BackendError as e:
            self._log_error("Failed to write buckets", e, {"buckets": len(items)})
            raise

        self._log_info("Wrote buckets", {"buckets": len(items), "entries": len(entries)})

        if stale:
            await self._remove_keys(stale)

    async def _remove_keys(self, keys: list[str]) -> None:
        try:
            await self._backend.remove(keys)
        except BackendError as e:
            self._log_error("Failed to remove buckets", e, {"keys": keys})
            raise
