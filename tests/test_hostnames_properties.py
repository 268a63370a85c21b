"""
Property-based tests for hostname key normalisation.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from env_sync.exceptions import ValidationError
from env_sync.hostnames import from_sync_hostname, normalize_domain_base, to_sync_hostname


label = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-", min_size=1, max_size=20)


class TestNormalizationProperty:
    @given(labels=st.lists(label, min_size=1, max_size=3))
    @settings(max_examples=100)
    def test_normalization_is_idempotent(self, labels: list) -> None:
        """
        Property: Normalisation is idempotent and case-insensitive.

        *For any* ASCII domain base, normalising the upper-cased form or the
        sync form SHALL give the same key, and normalising that key again
        SHALL not change it.
        """
        base = ".".join(labels)

        key = normalize_domain_base(base.upper())

        assert key == base
        assert normalize_domain_base(key) == key
        assert normalize_domain_base(to_sync_hostname(key)) == key

    @given(base=label)
    @settings(max_examples=50)
    def test_sync_form_round_trip(self, base: str) -> None:
        assert from_sync_hostname(to_sync_hostname(base)) == base

    def test_unicode_is_idna_encoded(self) -> None:
        assert normalize_domain_base("Bücher") == "xn--bcher-kva"

    @pytest.mark.parametrize("raw", ["", "  ", ".", "..", ".example", "a..b", "a|b", "a^b", "a b", "a/b"])
    def test_rejected(self, raw: str) -> None:
        with pytest.raises(ValidationError):
            normalize_domain_base(raw)
