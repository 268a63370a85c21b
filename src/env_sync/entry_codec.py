"""
Entry codec: DomainConfig <-> compact delimited string.

Wire format (version 0)::

    version|envCount|flags|divergenceFlag|block_0|...|block_{n-1}|hostnames

``flags`` holds four ``0``/``1`` characters per environment (tls,
custom tld, custom port, custom title). Each value block carries only
the custom fields, in that order, joined by ``^``; everything else is
rebuilt from positional defaults. Neither delimiter is escaped, so
``validate_config`` rejects any field value that contains one.
"""

import re

from .enums import DecodeErrorCode
from .exceptions import DecodeError, ValidationError
from .models import (
    DomainConfig,
    Environment,
    default_port,
    default_title,
    default_tld,
)

VERSION = "0"
DELIMITER = "|"
SUB_DELIMITER = "^"

FLAGS_PER_ENVIRONMENT = 4
# version, env count, flags, divergence flag, hostname block
FIXED_SECTIONS = 5
MAX_PORT = 65535

_DIGITS = re.compile(r"[0-9]+")
_FLAG_CHARS = frozenset("01")


def _has_delimiter(value: str) -> bool:
    return DELIMITER in value or SUB_DELIMITER in value


def validate_config(config: DomainConfig) -> None:
    """
    Check that a config can be serialized and decoded back unchanged.

    Args:
        config: The domain configuration about to be written

    Raises:
        ValidationError: If the structure is inconsistent or a field value
            contains a delimiter character
    """
    if (
        not isinstance(config.env_count, int)
        or isinstance(config.env_count, bool)
        or config.env_count < 1
    ):
        raise ValidationError(
            code="invalid_env_count",
            message=f"env_count must be a positive integer, got {config.env_count!r}",
            details={"env_count": config.env_count},
        )

    if len(config.environments) != config.env_count:
        raise ValidationError(
            code="env_count_mismatch",
            message=(
                f"env_count is {config.env_count} but "
                f"{len(config.environments)} environments were given"
            ),
            details={
                "env_count": config.env_count,
                "environments": len(config.environments),
            },
        )

    expected_hostnames = 2 if config.hostname_divergence else 1
    if len(config.hostnames) != expected_hostnames:
        raise ValidationError(
            code="hostname_count",
            message=(
                f"Expected {expected_hostnames} hostname(s) for "
                f"hostname_divergence={config.hostname_divergence}, "
                f"got {len(config.hostnames)}"
            ),
            details={"hostnames": list(config.hostnames)},
        )

    for hostname in config.hostnames:
        if not isinstance(hostname, str) or not hostname:
            raise ValidationError(
                code="invalid_hostname",
                message="Hostnames must be non-empty strings",
                details={"hostname": hostname},
            )
        if _has_delimiter(hostname):
            raise ValidationError(
                code="delimiter_in_value",
                message=f"Hostname contains a reserved delimiter: {hostname!r}",
                details={"hostname": hostname, "field": "hostname"},
            )

    for index, env in enumerate(config.environments):
        if not isinstance(env.tls, bool):
            raise ValidationError(
                code="invalid_environment",
                message=f"Environment {index}: tls must be a bool",
                details={"index": index, "tls": env.tls},
            )
        if (
            not isinstance(env.port, int)
            or isinstance(env.port, bool)
            or not 0 <= env.port <= MAX_PORT
        ):
            raise ValidationError(
                code="invalid_port",
                message=f"Environment {index}: port must be in 0..{MAX_PORT}",
                details={"index": index, "port": env.port},
            )
        for field_name in ("tld", "title"):
            value = getattr(env, field_name)
            if not isinstance(value, str):
                raise ValidationError(
                    code="invalid_environment",
                    message=f"Environment {index}: {field_name} must be a string",
                    details={"index": index, "field": field_name},
                )
            if _has_delimiter(value):
                raise ValidationError(
                    code="delimiter_in_value",
                    message=(
                        f"Environment {index}: {field_name} contains a "
                        f"reserved delimiter: {value!r}"
                    ),
                    details={"index": index, "field": field_name, "value": value},
                )


def serialize(config: DomainConfig) -> str:
    """
    Encode a domain configuration as a single entry string.

    Args:
        config: The configuration to encode

    Returns:
        The entry string

    Raises:
        ValidationError: If the config fails ``validate_config``
    """
    validate_config(config)

    flags = []
    blocks = []
    for index, env in enumerate(config.environments):
        custom_tld, custom_port, custom_title = env.custom_fields(index)
        flags.append(
            "".join(
                "1" if bit else "0"
                for bit in (env.tls, custom_tld, custom_port, custom_title)
            )
        )

        values = []
        if custom_tld:
            values.append(env.tld)
        if custom_port:
            values.append(str(env.port))
        if custom_title:
            values.append(env.title)
        blocks.append(SUB_DELIMITER.join(values))

    return DELIMITER.join([
        VERSION,
        str(config.env_count),
        "".join(flags),
        "1" if config.hostname_divergence else "0",
        *blocks,
        SUB_DELIMITER.join(config.hostnames),
    ])


def _decode_error(code: DecodeErrorCode, message: str, entry: str) -> DecodeError:
    return DecodeError(code=code.value, message=message, details={"entry": entry})


def deserialize(entry: str) -> DomainConfig:
    """
    Decode an entry string produced by ``serialize``.

    Defaults are only applied to fields whose custom flag is unset; a
    malformed entry is never patched up into a default record. Only the
    canonical form is accepted: a custom-flagged value equal to its default
    or a zero-padded port is rejected, so every decoded entry serializes
    back to the same string.

    Args:
        entry: The entry string

    Returns:
        The decoded DomainConfig

    Raises:
        DecodeError: If the entry is malformed, truncated, or of an
            unknown version
    """
    if not isinstance(entry, str):
        raise DecodeError(
            code=DecodeErrorCode.INVALID_PAYLOAD.value,
            message=f"Entry must be a string, got {type(entry).__name__}",
            details={"entry": repr(entry)},
        )

    sections = entry.split(DELIMITER)
    if len(sections) < FIXED_SECTIONS + 1:
        raise _decode_error(
            DecodeErrorCode.SECTION_COUNT,
            f"Entry has {len(sections)} sections, expected at least {FIXED_SECTIONS + 1}",
            entry,
        )

    version, count_str, flag_str, divergence_str = sections[:4]

    if version != VERSION:
        raise _decode_error(
            DecodeErrorCode.UNKNOWN_VERSION,
            f"Unsupported entry version {version!r}",
            entry,
        )

    if not _DIGITS.fullmatch(count_str) or int(count_str) < 1:
        raise _decode_error(
            DecodeErrorCode.INVALID_ENV_COUNT,
            f"Environment count {count_str!r} is not a positive integer",
            entry,
        )
    env_count = int(count_str)

    if len(sections) != FIXED_SECTIONS + env_count:
        raise _decode_error(
            DecodeErrorCode.SECTION_COUNT,
            f"Entry has {len(sections)} sections, expected {FIXED_SECTIONS + env_count}",
            entry,
        )

    if len(flag_str) != env_count * FLAGS_PER_ENVIRONMENT or not set(flag_str) <= _FLAG_CHARS:
        raise _decode_error(
            DecodeErrorCode.INVALID_FLAGS,
            f"Flags {flag_str!r} do not describe {env_count} environment(s)",
            entry,
        )

    if divergence_str not in _FLAG_CHARS:
        raise _decode_error(
            DecodeErrorCode.INVALID_FLAGS,
            f"Divergence flag {divergence_str!r} is not 0 or 1",
            entry,
        )
    hostname_divergence = divergence_str == "1"

    environments = []
    for index in range(env_count):
        offset = index * FLAGS_PER_ENVIRONMENT
        tls, custom_tld, custom_port, custom_title = (
            flag == "1" for flag in flag_str[offset:offset + FLAGS_PER_ENVIRONMENT]
        )
        block = sections[4 + index]
        expected = custom_tld + custom_port + custom_title

        values = block.split(SUB_DELIMITER) if expected else []
        if (not expected and block) or len(values) != expected:
            raise _decode_error(
                DecodeErrorCode.INVALID_VALUE_BLOCK,
                f"Value block {block!r} of environment {index} does not match "
                f"its {expected} custom flag(s)",
                entry,
            )

        values_iter = iter(values)
        tld = next(values_iter) if custom_tld else default_tld(index)
        if custom_port:
            port_str = next(values_iter)
            if (
                not _DIGITS.fullmatch(port_str)
                or str(int(port_str)) != port_str
                or int(port_str) > MAX_PORT
            ):
                raise _decode_error(
                    DecodeErrorCode.INVALID_PORT,
                    f"Port {port_str!r} of environment {index} is not a valid port",
                    entry,
                )
            port = int(port_str)
        else:
            port = default_port(tls)
        title = next(values_iter) if custom_title else default_title(index)

        environment = Environment(tls=tls, tld=tld, port=port, title=title)
        if environment.custom_fields(index) != (custom_tld, custom_port, custom_title):
            raise _decode_error(
                DecodeErrorCode.INVALID_VALUE_BLOCK,
                f"Value block {block!r} of environment {index} flags a default value as custom",
                entry,
            )
        environments.append(environment)

    hostnames = sections[-1].split(SUB_DELIMITER)
    expected_hostnames = 2 if hostname_divergence else 1
    if len(hostnames) != expected_hostnames or not all(hostnames):
        raise _decode_error(
            DecodeErrorCode.INVALID_HOSTNAMES,
            f"Hostname block {sections[-1]!r} does not hold {expected_hostnames} hostname(s)",
            entry,
        )

    return DomainConfig(
        env_count=env_count,
        environments=environments,
        hostname_divergence=hostname_divergence,
        hostnames=hostnames,
    )
