"""
Data models for the env-sync system.

This module defines the stored domain configuration records, the
UI-facing settings projection, and the usage reports produced by
the sync store.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import Protocol
from .exceptions import ValidationError

# Positional defaults; indexes past the end fall back to ".com" and
# "Environment {index + 1}".
DEFAULT_TLDS = (".test", ".com", ".com")
DEFAULT_TITLES = ("Local", "Production")
FALLBACK_TLD = ".com"

LOCAL_INDEX = 0
PRODUCTION_INDEX = 1


def default_tld(index: int) -> str:
    """Return the TLD an environment at ``index`` has unless customised."""
    if index < len(DEFAULT_TLDS):
        return DEFAULT_TLDS[index]
    return FALLBACK_TLD


def default_title(index: int) -> str:
    """Return the title an environment at ``index`` has unless customised."""
    if index < len(DEFAULT_TITLES):
        return DEFAULT_TITLES[index]
    return f"Environment {index + 1}"


def default_port(tls: bool) -> int:
    return 443 if tls else 80


@dataclass
class Environment:
    """One deployment target within a domain configuration."""

    tls: bool
    tld: str  # Leading dot, e.g. ".test"
    port: int
    title: str

    @classmethod
    def default(cls, index: int, tls: bool = False) -> "Environment":
        """Build the environment that has no custom fields at ``index``."""
        return cls(
            tls=tls,
            tld=default_tld(index),
            port=default_port(tls),
            title=default_title(index),
        )

    def custom_fields(self, index: int) -> tuple[bool, bool, bool]:
        """
        Report which fields differ from their positional defaults.

        Args:
            index: Position of this environment in its DomainConfig

        Returns:
            Tuple of (tld_is_custom, port_is_custom, title_is_custom)
        """
        return (
            self.tld != default_tld(index),
            self.port != default_port(self.tls),
            self.title != default_title(index),
        )


@dataclass
class DomainConfig:
    """
    One stored record: every environment of a domain plus its hostnames.

    ``hostnames`` holds one shared base (``"example."``) unless the
    production and local hosts diverge, in which case it holds
    ``[prod_hostname + ".", local_hostname + "."]``.
    """

    env_count: int
    environments: list[Environment]
    hostname_divergence: bool
    hostnames: list[str]

    def matches(self, hostname: str) -> bool:
        """Check whether ``hostname`` is one of this record's lookup keys."""
        return hostname in self.hostnames


@dataclass
class DomainSettings:
    """Decoded projection of a DomainConfig consumed by UI collaborators."""

    prod_tld: str
    local_tld: str
    prod_protocol: Protocol = Protocol.HTTPS
    local_protocol: Protocol = Protocol.HTTP
    prod_hostname: Optional[str] = None
    local_hostname: Optional[str] = None

    @property
    def is_divergent(self) -> bool:
        """True when production and local use different hostnames."""
        return (
            self.prod_hostname is not None
            and self.local_hostname is not None
            and self.prod_hostname != self.local_hostname
        )

    def aliases(self) -> list[str]:
        """Hostnames, other than the domain base, this settings object answers to."""
        if not self.is_divergent:
            return []
        return [self.prod_hostname, self.local_hostname]

    def to_dict(self) -> dict:
        """Convert to the plain dictionary kept in the fast cache."""
        return {
            "prod_tld": self.prod_tld,
            "local_tld": self.local_tld,
            "prod_protocol": self.prod_protocol.value,
            "local_protocol": self.local_protocol.value,
            "prod_hostname": self.prod_hostname,
            "local_hostname": self.local_hostname,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DomainSettings":
        """
        Rebuild settings from a dictionary produced by ``to_dict``.

        Raises:
            ValidationError: If a field is missing or has the wrong type
        """
        try:
            prod_tld = data["prod_tld"]
            local_tld = data["local_tld"]
            prod_protocol = Protocol(data["prod_protocol"])
            local_protocol = Protocol(data["local_protocol"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(
                code="invalid_settings",
                message=f"Malformed domain settings: {e}",
                details={"data": data},
            )

        if not isinstance(prod_tld, str) or not isinstance(local_tld, str):
            raise ValidationError(
                code="invalid_settings",
                message="Domain settings TLDs must be strings",
                details={"data": data},
            )

        return cls(
            prod_tld=prod_tld,
            local_tld=local_tld,
            prod_protocol=prod_protocol,
            local_protocol=local_protocol,
            prod_hostname=data.get("prod_hostname"),
            local_hostname=data.get("local_hostname"),
        )


@dataclass
class Bucket:
    """A decoded bucket: its slot index and the entries it holds."""

    index: int
    entries: list[str] = field(default_factory=list)


@dataclass
class BucketUsage:
    """Size report for a single stored bucket."""

    index: int
    key: str
    entry_count: int
    raw_bytes: int  # Uncompressed JSON array size
    stored_bytes: int  # Key plus JSON-encoded compressed value, as quotas count it


@dataclass
class StoreUsage:
    """Size report for every bucket of a sync store."""

    buckets: list[BucketUsage]
    quota_bytes_per_item: int
    quota_bytes: int
    max_buckets: int

    @property
    def entry_count(self) -> int:
        return sum(b.entry_count for b in self.buckets)

    @property
    def stored_bytes(self) -> int:
        return sum(b.stored_bytes for b in self.buckets)

    @property
    def quota_percent(self) -> float:
        """Share of the total byte quota in use, as a percentage."""
        if self.quota_bytes <= 0:
            return 0.0
        return 100.0 * self.stored_bytes / self.quota_bytes


@dataclass
class DomainListing:
    """One row of the "all stored domains" listing."""

    domain_base: str
    settings: DomainSettings
