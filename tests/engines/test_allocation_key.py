"""
Tests for the allocation key codec.

Covers:
- Three-segment keys
- Legacy two-segment keys (index defaults to 0)
- Size names containing the delimiter
- Malformed keys
"""

from coldstore_engines.allocation_key import (
    KEY_DELIMITER,
    AllocationKey,
    decode_key,
    encode_key,
)


class TestEncode:

    def test_joins_parts(self):
        assert encode_key("L1", "Seed", 2) == "L1::Seed::2"

    def test_index_defaults_to_zero(self):
        assert encode_key("L1", "Seed") == "L1::Seed::0"

    def test_allocation_key_encode_and_str(self):
        key = AllocationKey("L1", "Seed", 1)
        assert key.encode() == "L1::Seed::1"
        assert str(key) == "L1::Seed::1"


class TestDecode:

    def test_three_segments(self):
        assert decode_key("L1::Seed::2") == AllocationKey("L1", "Seed", 2)

    def test_legacy_two_segments(self):
        """Keys written before multi-location support address index 0."""
        assert decode_key("L1::Seed") == AllocationKey("L1", "Seed", 0)

    def test_size_containing_delimiter(self):
        key = encode_key("L1", "50kg::big", 3)
        assert decode_key(key) == AllocationKey("L1", "50kg::big", 3)

    def test_unparsable_index_defaults_to_zero(self):
        assert decode_key("L1::Seed::x") == AllocationKey("L1", "Seed", 0)

    def test_negative_index_clamped(self):
        assert decode_key("L1::Seed::-4") == AllocationKey("L1", "Seed", 0)

    def test_single_segment_is_malformed(self):
        assert decode_key("L1") is None

    def test_empty_string_is_malformed(self):
        assert decode_key("") is None

    def test_non_string_is_malformed(self):
        assert decode_key(None) is None  # type: ignore[arg-type]

    def test_parse_alias(self):
        assert AllocationKey.parse("L1::Seed::1") == AllocationKey("L1", "Seed", 1)

    def test_delimiter_constant(self):
        assert KEY_DELIMITER == "::"
