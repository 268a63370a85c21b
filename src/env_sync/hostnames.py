"""
Hostname key normalisation.

The settings cache is keyed by domain bases (a hostname with its TLD
stripped, e.g. ``"example"`` for ``example.test``). Records in the sync
store carry the same base with a trailing dot (``"example."``).
"""

import re

import idna

from .exceptions import ValidationError

# Control characters, whitespace, and symbols that cannot appear in a
# hostname. Includes the entry delimiters "|" and "^".
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)


def normalize_domain_base(raw: str) -> str:
    """
    Convert a domain base to canonical form (lowercase, IDNA-encoded).

    A single trailing dot is accepted and dropped, so both ``"Example"``
    and ``"example."`` normalise to ``"example"``.

    Args:
        raw: Domain base as typed or extracted from a URL

    Returns:
        Canonical domain base

    Raises:
        ValidationError: If the input is empty, contains forbidden
            characters, or cannot be IDNA-encoded
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(
            code="empty_hostname",
            message="Domain base is empty",
            details={"raw_input": raw},
        )

    base = raw.strip().lower()
    if base.endswith("."):
        base = base[:-1]

    forbidden = FORBIDDEN_CHARS_PATTERN.findall(base)
    if forbidden or not base or ".." in base or base.startswith("."):
        raise ValidationError(
            code="forbidden_chars",
            message=f"Domain base is not a valid hostname: {raw!r}",
            details={"raw_input": raw, "forbidden_chars": forbidden},
        )

    if any(ord(c) > 127 for c in base):
        try:
            base = idna.encode(base, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code="idna_error",
                message=f"IDNA encoding failed: {e}",
                details={"raw_input": raw, "idna_error": str(e)},
            )

    return base


def to_sync_hostname(domain_base: str) -> str:
    """``"example"`` -> ``"example."``"""
    return f"{domain_base}."


def from_sync_hostname(hostname: str) -> str:
    """``"example."`` -> ``"example"``; hostnames without the dot pass through."""
    return hostname[:-1] if hostname.endswith(".") else hostname
