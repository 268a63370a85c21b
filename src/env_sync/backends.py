"""
Key-value backends for the sync store and the fast cache.

The sync store only needs ``get``/``set``/``remove`` over string keys.
``MemoryBackend`` and ``JsonFileBackend`` implement that contract and,
when given limits, reject writes the way a quota-constrained replicated
store (e.g. chrome.storage.sync) does: per-item size, total size and
item count. Neither offers atomicity across separate calls.
"""

import copy
import json
from abc import abstractmethod
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Protocol, runtime_checkable

from .config import SyncConfig
from .exceptions import BackendError


@runtime_checkable
class SyncBackend(Protocol):
    """Protocol defining the interface of a key-value backend."""

    @abstractmethod
    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """
        Fetch values for ``keys``.

        Returns:
            Mapping of the keys that are present to their values
        """
        ...

    @abstractmethod
    async def set(self, items: Mapping[str, Any]) -> None:
        """Store every key/value pair in ``items``."""
        ...

    @abstractmethod
    async def remove(self, keys: Iterable[str]) -> None:
        """Delete ``keys``; missing keys are ignored."""
        ...


def item_size(key: str, value: Any) -> int:
    """Bytes a key/value pair counts against a quota: key plus JSON value."""
    encoded = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return len(key.encode("utf-8")) + len(encoded.encode("utf-8"))


def enforce_quota(data: Mapping[str, Any], items: Mapping[str, Any], limits: SyncConfig) -> None:
    """
    Check that applying ``items`` on top of ``data`` stays within ``limits``.

    Raises:
        BackendError: With code ``quota_bytes_per_item``, ``max_items``
            or ``quota_bytes`` when a limit would be exceeded
    """
    for key, value in items.items():
        size = item_size(key, value)
        if size > limits.quota_bytes_per_item:
            raise BackendError(
                code="quota_bytes_per_item",
                message=(
                    f"Item {key!r} is {size} bytes, over the "
                    f"{limits.quota_bytes_per_item}-byte per-item quota"
                ),
                details={"key": key, "size": size, "quota": limits.quota_bytes_per_item},
            )

    merged = dict(data)
    merged.update(items)

    if len(merged) > limits.max_items:
        raise BackendError(
            code="max_items",
            message=f"Store would hold {len(merged)} items, over the {limits.max_items}-item limit",
            details={"items": len(merged), "max_items": limits.max_items},
        )

    total = sum(item_size(k, v) for k, v in merged.items())
    if total > limits.quota_bytes:
        raise BackendError(
            code="quota_bytes",
            message=f"Store would hold {total} bytes, over the {limits.quota_bytes}-byte quota",
            details={"size": total, "quota": limits.quota_bytes},
        )


class MemoryBackend:
    """
    In-process key-value backend.

    Without limits it serves as the ephemeral fast cache: it lives as long
    as the object and is never replicated. With limits it stands in for a
    quota-constrained replicated store.
    """

    def __init__(self, limits: Optional[SyncConfig] = None) -> None:
        """
        Initialize the backend.

        Args:
            limits: Quotas to enforce on ``set``; None for no limits
        """
        self._data: dict[str, Any] = {}
        self._limits = limits

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: copy.deepcopy(self._data[key]) for key in keys if key in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        if self._limits is not None:
            enforce_quota(self._data, items, self._limits)
        for key, value in items.items():
            self._data[key] = copy.deepcopy(value)

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def clear(self) -> None:
        """Drop every key, as at process end."""
        self._data.clear()

    def snapshot(self) -> dict[str, Any]:
        """Copy of the current contents (for inspection and tests)."""
        return copy.deepcopy(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class JsonFileBackend:
    """
    Key-value backend persisted to a single JSON file.

    The file is re-read on every call so that edits by other processes
    show up, and rewritten in full on every mutation.
    """

    def __init__(self, file_path: Path, limits: Optional[SyncConfig] = None) -> None:
        """
        Initialize the backend.

        Args:
            file_path: Path to the JSON file; created on first write
            limits: Quotas to enforce on ``set``; None for no limits
        """
        self._file_path = file_path
        self._limits = limits

    @property
    def file_path(self) -> Path:
        return self._file_path

    def _load(self) -> dict[str, Any]:
        if not self._file_path.exists():
            return {}

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise BackendError(
                code="parse_error",
                message=f"Failed to parse store file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise BackendError(
                code="io_error",
                message=f"Failed to read store file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(data, dict):
            raise BackendError(
                code="parse_error",
                message="Store file does not hold a JSON object",
                details={"file_path": str(self._file_path)},
            )
        return data

    def _save(self, data: dict[str, Any]) -> None:
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True, ensure_ascii=False)
        except OSError as e:
            raise BackendError(
                code="io_error",
                message=f"Failed to write store file: {e}",
                details={"file_path": str(self._file_path)},
            )

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        data = self._load()
        return {key: data[key] for key in keys if key in data}

    async def set(self, items: Mapping[str, Any]) -> None:
        data = self._load()
        if self._limits is not None:
            enforce_quota(data, items, self._limits)
        data.update(items)
        self._save(data)

    async def remove(self, keys: Iterable[str]) -> None:
        data = self._load()
        removed = False
        for key in keys:
            if key in data:
                del data[key]
                removed = True
        if removed:
            self._save(data)
