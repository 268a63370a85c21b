"""
Bucket packer: greedy in-order bin packing under a byte quota.

Sizes are measured on the uncompressed JSON encoding, so a bucket fits
its storage slot whether or not compression helps.
"""

import json
from typing import Sequence

from .exceptions import CapacityError

# Encoded size of an empty JSON array: "[]"
ARRAY_OVERHEAD = 2


def entry_size(entry: str) -> int:
    """Bytes an entry adds to a bucket: its JSON string plus one separator."""
    return len(json.dumps(entry, ensure_ascii=False).encode("utf-8")) + 1


def distribute(entries: Sequence[str], quota: int) -> list[list[str]]:
    """
    Pack entries into buckets whose encoded size stays within ``quota``.

    Entries keep their input order and are never split; a new bucket is
    opened whenever the next entry would push the current one past the
    quota. The counter over-counts one separator per bucket, so the real
    encoded size is always below the running total.

    Args:
        entries: Entry strings in storage order
        quota: Maximum encoded bytes per bucket

    Returns:
        List of buckets, each a list of entries; empty for no entries

    Raises:
        CapacityError: If one entry alone does not fit in a bucket
    """
    buckets: list[list[str]] = []
    current: list[str] = []
    size = ARRAY_OVERHEAD

    for position, entry in enumerate(entries):
        added = entry_size(entry)
        # A bucket holding only this entry has no separator.
        alone = ARRAY_OVERHEAD + added - 1

        if alone > quota:
            raise CapacityError(
                code="entry_too_large",
                message=(
                    f"Entry {position} needs {alone} bytes on its own, "
                    f"more than the {quota}-byte bucket quota"
                ),
                details={"position": position, "size": alone, "quota": quota},
            )

        if current and size + added > quota:
            buckets.append(current)
            current = []
            size = ARRAY_OVERHEAD

        current.append(entry)
        size += added

    if current:
        buckets.append(current)

    return buckets
