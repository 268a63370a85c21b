"""
Property-based tests for the Entry Codec module.

Uses Hypothesis for property-based testing to verify that entries
round-trip, that defaults are omitted from the wire form, and that
malformed entries are rejected instead of patched up.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from env_sync.entry_codec import (
    DELIMITER,
    SUB_DELIMITER,
    deserialize,
    serialize,
    validate_config,
)
from env_sync.enums import DecodeErrorCode
from env_sync.exceptions import DecodeError, ValidationError
from env_sync.models import (
    DomainConfig,
    Environment,
    default_port,
    default_title,
    default_tld,
)


# Strategies for generating valid test data

field_text = st.text(
    alphabet=st.characters(
        exclude_categories=("Cs",),
        exclude_characters=DELIMITER + SUB_DELIMITER,
    ),
    max_size=20,
)


@st.composite
def environment_strategy(draw, index: int) -> Environment:
    """Generate an Environment whose fields are default or custom at random."""
    tls = draw(st.booleans())
    return Environment(
        tls=tls,
        tld=draw(st.one_of(
            st.just(default_tld(index)),
            st.sampled_from([".local", ".dev", ".staging", ".co.uk", ".io"]),
            field_text,
        )),
        port=draw(st.one_of(
            st.just(default_port(tls)),
            st.integers(min_value=0, max_value=65535),
        )),
        title=draw(st.one_of(st.just(default_title(index)), field_text)),
    )


@st.composite
def hostname_strategy(draw) -> str:
    """Generate sync-form hostnames like 'my-site.'."""
    label = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-"),
        min_size=1,
        max_size=20,
    ))
    return f"{label}."


@st.composite
def domain_config_strategy(draw) -> DomainConfig:
    """Generate valid DomainConfig objects with 1 to 4 environments."""
    env_count = draw(st.integers(min_value=1, max_value=4))
    divergent = draw(st.booleans())
    return DomainConfig(
        env_count=env_count,
        environments=[draw(environment_strategy(i)) for i in range(env_count)],
        hostname_divergence=divergent,
        hostnames=[draw(hostname_strategy()) for _ in range(2 if divergent else 1)],
    )


def example_config() -> DomainConfig:
    return DomainConfig(
        env_count=2,
        environments=[
            Environment(tls=False, tld=".test", port=80, title="Local"),
            Environment(tls=True, tld=".com", port=443, title="Production"),
        ],
        hostname_divergence=False,
        hostnames=["example."],
    )


class TestEntryRoundTripProperty:
    """Property-based tests for entry round-trips."""

    @given(config=domain_config_strategy())
    @settings(max_examples=300)
    def test_deserialize_inverts_serialize(self, config: DomainConfig) -> None:
        """
        Property: Entries round-trip without data loss.

        *For any* valid DomainConfig, deserialize(serialize(config)) SHALL
        equal the original config.
        """
        assert deserialize(serialize(config)) == config

    @given(config=domain_config_strategy())
    @settings(max_examples=100)
    def test_decoded_entries_reencode_identically(self, config: DomainConfig) -> None:
        """
        Property: Every accepted entry is in canonical form.

        *For any* entry that decodes, serializing the result SHALL give back
        the same string.
        """
        entry = serialize(config)
        assert serialize(deserialize(entry)) == entry

    @given(config=domain_config_strategy())
    @settings(max_examples=100)
    def test_section_layout(self, config: DomainConfig) -> None:
        """
        Property: Entries carry one value block per environment.

        *For any* config, the entry SHALL have 5 + env_count top-level
        sections and a flags field of 4 characters per environment.
        """
        sections = serialize(config).split(DELIMITER)

        assert len(sections) == 5 + config.env_count
        assert sections[0] == "0"
        assert sections[1] == str(config.env_count)
        assert len(sections[2]) == 4 * config.env_count
        assert set(sections[2]) <= {"0", "1"}
        assert sections[-1] == SUB_DELIMITER.join(config.hostnames)

    def test_example_entry(self) -> None:
        """A default Local/Production pair encodes to the documented entry."""
        entry = serialize(example_config())

        assert entry == "0|2|00001000|0|||example."
        assert deserialize(entry) == example_config()

    def test_divergent_hostnames(self) -> None:
        config = DomainConfig(
            env_count=2,
            environments=[
                Environment(tls=True, tld=".test", port=8443, title="Local"),
                Environment(tls=True, tld=".com", port=443, title="Live"),
            ],
            hostname_divergence=True,
            hostnames=["shop.", "shop-dev."],
        )

        entry = serialize(config)

        assert entry == "0|2|10101001|1|8443|Live|shop.^shop-dev."
        assert deserialize(entry) == config


class TestDefaultEncodingProperty:
    """Property-based tests for omitting default fields."""

    @given(
        index=st.integers(min_value=0, max_value=5),
        tls=st.booleans(),
    )
    @settings(max_examples=100)
    def test_default_environment_has_no_custom_flags(self, index: int, tls: bool) -> None:
        """
        Property: Default environments encode to a flag group with only the
        tls bit and an empty value block.

        *For any* position, an environment equal to its positional defaults
        SHALL serialize to flags "<tls>000" and an empty value block.
        """
        environments = [Environment.default(i) for i in range(index + 1)]
        environments[index] = Environment.default(index, tls=tls)
        config = DomainConfig(
            env_count=index + 1,
            environments=environments,
            hostname_divergence=False,
            hostnames=["example."],
        )

        sections = serialize(config).split(DELIMITER)
        flags = sections[2][index * 4:index * 4 + 4]

        assert flags == ("1000" if tls else "0000")
        assert sections[4 + index] == ""

    def test_positional_defaults(self) -> None:
        assert Environment.default(0) == Environment(tls=False, tld=".test", port=80, title="Local")
        assert Environment.default(1, tls=True) == Environment(
            tls=True, tld=".com", port=443, title="Production"
        )
        assert Environment.default(2) == Environment(
            tls=False, tld=".com", port=80, title="Environment 3"
        )

    def test_custom_fields_keep_fixed_order(self) -> None:
        config = DomainConfig(
            env_count=1,
            environments=[Environment(tls=False, tld=".dev", port=3000, title="Dev")],
            hostname_divergence=False,
            hostnames=["app."],
        )

        assert serialize(config) == "0|1|0111|0|.dev^3000^Dev|app."


class TestMalformedEntryRejection:
    """Malformed entries raise DecodeError instead of decoding to defaults."""

    @pytest.mark.parametrize(
        "entry, code",
        [
            ("", DecodeErrorCode.SECTION_COUNT),
            ("0|2|00001000|0||example.", DecodeErrorCode.SECTION_COUNT),
            ("0|2|00001000|0||||example.", DecodeErrorCode.SECTION_COUNT),
            ("1|2|00001000|0|||example.", DecodeErrorCode.UNKNOWN_VERSION),
            ("0|two|00001000|0|||example.", DecodeErrorCode.INVALID_ENV_COUNT),
            ("0|0|0|0||example.", DecodeErrorCode.INVALID_ENV_COUNT),
            ("0|2|0000100|0|||example.", DecodeErrorCode.INVALID_FLAGS),
            ("0|2|0000100x|0|||example.", DecodeErrorCode.INVALID_FLAGS),
            ("0|2|00001000|2|||example.", DecodeErrorCode.INVALID_FLAGS),
            ("0|2|00001000|0|.dev||example.", DecodeErrorCode.INVALID_VALUE_BLOCK),
            ("0|2|01101000|0|.dev||example.", DecodeErrorCode.INVALID_VALUE_BLOCK),
            ("0|2|00101000|0|http||example.", DecodeErrorCode.INVALID_PORT),
            ("0|2|00101000|0|99999||example.", DecodeErrorCode.INVALID_PORT),
            ("0|1|0010|0|0080|a.", DecodeErrorCode.INVALID_PORT),
            ("0|1|0010|0|80|a.", DecodeErrorCode.INVALID_VALUE_BLOCK),
            ("0|1|1010|0|443|a.", DecodeErrorCode.INVALID_VALUE_BLOCK),
            ("0|1|0100|0|.test|a.", DecodeErrorCode.INVALID_VALUE_BLOCK),
            ("0|1|0001|0|Local|a.", DecodeErrorCode.INVALID_VALUE_BLOCK),
            ("0|2|00001000|0|||a.^b.", DecodeErrorCode.INVALID_HOSTNAMES),
            ("0|2|00001000|1|||example.", DecodeErrorCode.INVALID_HOSTNAMES),
            ("0|2|00001000|0|||", DecodeErrorCode.INVALID_HOSTNAMES),
        ],
    )
    def test_malformed_entry(self, entry: str, code: DecodeErrorCode) -> None:
        with pytest.raises(DecodeError) as excinfo:
            deserialize(entry)
        assert excinfo.value.code == code.value

    @given(config=domain_config_strategy())
    @settings(max_examples=100)
    def test_truncated_entry_is_rejected(self, config: DomainConfig) -> None:
        """
        Property: Truncated entries are rejected.

        *For any* valid entry, dropping its last section SHALL raise
        DecodeError.
        """
        entry = serialize(config)
        truncated = entry[:entry.rindex(DELIMITER)]

        with pytest.raises(DecodeError):
            deserialize(truncated)

    @given(config=domain_config_strategy(), version=st.sampled_from(["1", "9", "", "00"]))
    @settings(max_examples=50)
    def test_unknown_version_is_rejected(self, config: DomainConfig, version: str) -> None:
        entry = serialize(config)
        changed = version + entry[1:]

        with pytest.raises(DecodeError) as excinfo:
            deserialize(changed)
        assert excinfo.value.code == DecodeErrorCode.UNKNOWN_VERSION.value


class TestWriteValidation:
    """Configs that could not be decoded back are rejected at write time."""

    @pytest.mark.parametrize("bad", ["a|b", "a^b", "|", "^"])
    def test_delimiter_in_title(self, bad: str) -> None:
        config = example_config()
        config.environments[0].title = bad

        with pytest.raises(ValidationError) as excinfo:
            serialize(config)
        assert excinfo.value.code == "delimiter_in_value"

    @pytest.mark.parametrize("bad", [".te|st", ".te^st"])
    def test_delimiter_in_tld(self, bad: str) -> None:
        config = example_config()
        config.environments[1].tld = bad

        with pytest.raises(ValidationError):
            serialize(config)

    def test_delimiter_in_hostname(self) -> None:
        config = example_config()
        config.hostnames = ["exa^mple."]

        with pytest.raises(ValidationError):
            serialize(config)

    def test_env_count_mismatch(self) -> None:
        config = example_config()
        config.env_count = 3

        with pytest.raises(ValidationError) as excinfo:
            validate_config(config)
        assert excinfo.value.code == "env_count_mismatch"

    def test_hostname_count_must_follow_divergence(self) -> None:
        config = example_config()
        config.hostname_divergence = True

        with pytest.raises(ValidationError) as excinfo:
            validate_config(config)
        assert excinfo.value.code == "hostname_count"

    @pytest.mark.parametrize("port", [-1, 65536, True])
    def test_port_out_of_range(self, port) -> None:
        config = example_config()
        config.environments[0].port = port

        with pytest.raises(ValidationError) as excinfo:
            validate_config(config)
        assert excinfo.value.code == "invalid_port"
