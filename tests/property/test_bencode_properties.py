"""Property-based tests for bencode encoding/decoding.

Tests invariants and properties of the bencode implementation
using Hypothesis for automatic test case generation.
"""

from __future__ import annotations

from typing import Annotated, Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from bencodec import FixedLength, Int64, UInt64
from bencodec.bencode import BencodeDecoder, decode, encode
from bencodec.core.values import INT64_MIN, UINT64_MAX

pytestmark = [pytest.mark.property]

wire_ints = st.integers(min_value=INT64_MIN, max_value=UINT64_MAX)

values = st.recursive(
    st.one_of(wire_ints, st.binary(max_size=32)),
    lambda children: st.one_of(
        st.lists(children, max_size=5),
        st.dictionaries(st.binary(max_size=8), children, max_size=5),
    ),
    max_leaves=20,
)


class TestBencodeProperties:
    """Property-based tests for bencode operations."""

    @given(values)
    def test_value_roundtrip(self, obj):
        """Decoding the encoding of a plain value returns an equal value."""
        encoded = encode(obj)
        decoder = BencodeDecoder(encoded)

        assert decoder.decode() == obj
        assert decoder.pos == len(encoded)

    @given(values)
    def test_canonical_reencode(self, obj):
        """Encoding the decoding of canonical bytes reproduces them exactly."""
        encoded = encode(obj)
        assert encode(decode(encoded)) == encoded

    @given(st.dictionaries(st.binary(max_size=8), wire_ints, max_size=10), st.randoms())
    def test_key_order_independent(self, dct, rnd):
        """Dict insertion order never changes the encoding."""
        items = list(dct.items())
        rnd.shuffle(items)
        assert encode(dict(items)) == encode(dct)

    @given(st.dictionaries(st.binary(max_size=8), wire_ints, max_size=10))
    def test_dict_keys_ascending(self, dct):
        """Keys appear on the wire in ascending byte order."""
        decoder_keys = list(decode(encode(dct)).keys())
        assert decoder_keys == sorted(dct)

    @given(st.text())
    def test_text_roundtrip(self, text):
        """Str values encode as UTF-8 and decode back into str targets."""
        encoded = encode(text)
        assert decode(encoded) == text.encode("utf-8", "surrogateescape")
        assert decode(encoded, str) == text

    @given(st.integers())
    def test_integer_encoding_is_decimal(self, i):
        """Integers of any size encode as i<decimal>e."""
        assert encode(i) == b"i%de" % i

    @given(st.integers(min_value=INT64_MIN, max_value=2**63 - 1))
    def test_int64_target(self, i):
        """Every int64 value decodes into an Int64 target."""
        assert decode(encode(i), Int64) == i

    @given(st.integers(min_value=0, max_value=UINT64_MAX))
    def test_uint64_target(self, i):
        """Every uint64 value decodes into a UInt64 target."""
        assert decode(encode(i), UInt64) == i

    @given(st.lists(wire_ints, max_size=10), st.integers(min_value=0, max_value=8))
    def test_fixed_capacity(self, items, capacity):
        """Fixed-capacity targets keep the first N elements and zero-fill the rest."""
        target = Annotated[list[int], FixedLength(capacity)]
        result = decode(encode(items), target)

        expected = items[:capacity] + [0] * max(0, capacity - len(items))
        assert result == expected

    @given(st.binary(max_size=64))
    def test_arbitrary_input_never_crashes(self, data):
        """Arbitrary bytes either decode or raise a codec error."""
        from bencodec.utils.exceptions import BencodeDecodeError

        try:
            decode(data, Any)
        except BencodeDecodeError:
            pass
