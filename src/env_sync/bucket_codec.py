"""
Bucket compression codec.

A bucket is stored as a JSON array of entry strings, deflated with zlib
and base64-encoded so it fits a text-only storage value. The JSON
encoding matches ``JSON.stringify`` (compact separators, no ASCII
escaping) so buckets written by browser clients decode unchanged.
"""

import base64
import binascii
import json
import zlib
from typing import Sequence

from .enums import DecodeErrorCode
from .exceptions import DecodeError


def encode_entries(entries: Sequence[str]) -> bytes:
    """Return the canonical UTF-8 JSON array encoding of ``entries``."""
    return json.dumps(
        list(entries), ensure_ascii=False, separators=(",", ":")
    ).encode("utf-8")


def encoded_size(entries: Sequence[str]) -> int:
    """Uncompressed size in bytes of a bucket holding ``entries``."""
    return len(encode_entries(entries))


def compress(entries: Sequence[str]) -> str:
    """
    Compress a sequence of entry strings into printable text.

    Args:
        entries: Entry strings, possibly empty

    Returns:
        Base64 text of the deflated JSON array
    """
    return base64.b64encode(zlib.compress(encode_entries(entries))).decode("ascii")


def decompress(text: str) -> list[str]:
    """
    Inverse of ``compress``.

    Args:
        text: Value read from a bucket key

    Returns:
        The entry strings, in stored order

    Raises:
        DecodeError: If the text is not valid base64, not a complete zlib
            stream, or does not hold a JSON array of strings
    """
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise DecodeError(
            code=DecodeErrorCode.INVALID_BASE64.value,
            message=f"Bucket payload is not valid base64: {e}",
            details={"length": len(text) if isinstance(text, str) else None},
        )

    # The stream must end exactly at the end of the payload: a truncated
    # stream never reaches eof and appended bytes land in unused_data.
    decompressor = zlib.decompressobj()
    try:
        payload = decompressor.decompress(raw)
    except zlib.error as e:
        raise DecodeError(
            code=DecodeErrorCode.INVALID_STREAM.value,
            message=f"Bucket payload is not a valid deflate stream: {e}",
            details={"length": len(raw)},
        )

    if not decompressor.eof or decompressor.unused_data:
        raise DecodeError(
            code=DecodeErrorCode.INVALID_STREAM.value,
            message=(
                "Bucket payload is truncated"
                if not decompressor.eof
                else f"Bucket payload has {len(decompressor.unused_data)} bytes after the deflate stream"
            ),
            details={"length": len(raw)},
        )

    try:
        entries = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(
            code=DecodeErrorCode.INVALID_PAYLOAD.value,
            message=f"Bucket payload is not a JSON document: {e}",
            details={"length": len(payload)},
        )

    if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
        raise DecodeError(
            code=DecodeErrorCode.INVALID_PAYLOAD.value,
            message="Bucket payload is not an array of entry strings",
            details={"type": type(entries).__name__},
        )

    return entries
