"""Tests for bencodec.core.decoder."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Optional

import pytest
from pydantic import BaseModel, Field

from bencodec.config.config import init_config, set_config
from bencodec.core.binding import bencode_field
from bencodec.core.decoder import BencodeDecoder, decode, decode_into, decode_stream
from bencodec.core.encoder import encode
from bencodec.core.values import FixedLength, Int8, Int64, RawBencode, UInt8, UInt16, UInt32
from bencodec.models import CodecConfig, Config
from bencodec.utils.exceptions import (
    BencodeDecodeError,
    BencodeIOError,
    DuplicateKeyError,
    InvalidTargetError,
    MalformedInputError,
    NumericOverflowError,
    ShapeMismatchError,
    UnexpectedEndError,
)

pytestmark = [pytest.mark.unit, pytest.mark.core]


@dataclass
class Simple:
    Foo: str = ""
    Bar: int = 0


@dataclass
class Tagged:
    name: str = bencode_field("display-name", default="")
    secret: str = bencode_field(skip=True, default="hidden")
    count: UInt8 = 0
    _cache: int = 0


@dataclass
class Inner:
    value: int = 0


@dataclass
class Outer:
    inner: Optional[Inner] = None
    items: list[Inner] = field(default_factory=list)
    label: bytes = b""


@dataclass
class Required:
    name: str
    size: int


@dataclass
class WithSkippedRequired:
    cache: dict = bencode_field(skip=True)
    name: str = ""


@dataclass(frozen=True)
class Frozen:
    value: int = 0


@dataclass
class Torrent:
    announce: bytes = b""
    info: Optional[RawBencode] = None


class Peer(BaseModel):
    ip: str
    port: UInt16
    peer_id: bytes = Field(default=b"", alias="peer id")
    note: str = Field(default="", exclude=True)


class Session(BaseModel):
    token: str
    secret: str = Field(exclude=True)
    hidden: int = Field(alias="-")


@dataclass
class Digest:
    name: str = ""
    digest: bytes = field(init=False)


class BrokenStream:
    def read(self, size: int = -1) -> bytes:
        raise OSError("device not ready")


class TestDecodeScenarios:
    """Reference decode scenarios."""

    def test_mapping_of_str_to_any(self):
        """Test dict decoded into dict[str, Any] keeps raw byte values."""
        result = decode(b"d3:foo3:bar5:pizza4:coole", dict[str, Any])
        assert result == {"foo": b"bar", "pizza": b"cool"}

    def test_uint64_max_into_any(self):
        """Test integers above int64 fall back to the unsigned range."""
        assert decode(b"i18446744073709551615e", Any) == 18446744073709551615

    def test_fixed_array_zero_filled(self):
        """Test missing fixed slots keep their zero value."""
        target = Annotated[list[int], FixedLength(5)]
        assert decode(b"li1ei2ei3ee", target) == [1, 2, 3, 0, 0]

    def test_truncated_string(self):
        """Test declared length beyond the input is UnexpectedEnd."""
        with pytest.raises(UnexpectedEndError):
            decode(b"9999999:", str)

    def test_non_type_target(self):
        """Test an instance passed as target is rejected before parsing."""
        decoder = BencodeDecoder(b"i1e")
        with pytest.raises(InvalidTargetError):
            decoder.decode(5)
        assert decoder.pos == 0

    def test_integer_dict_key(self):
        """Test dict keys must be byte strings."""
        with pytest.raises(ShapeMismatchError):
            decode(b"di1ei3ee", Any)


class TestValueModel:
    """Test decoding without a schema."""

    def test_plain_types(self):
        """Test the plain value tree uses int, bytes, list and dict."""
        result = decode(b"d4:listli1e1:xe3:numi-7e3:str2:hie")
        assert result == {b"list": [1, b"x"], b"num": -7, b"str": b"hi"}
        assert all(isinstance(k, bytes) for k in result)

    def test_unsorted_keys_accepted(self):
        """Test dict keys need not be sorted on the wire."""
        assert decode(b"d1:bi2e1:ai1ee") == {b"b": 2, b"a": 1}

    def test_int64_min(self):
        """Test the smallest signed 64-bit value."""
        assert decode(b"i-9223372036854775808e") == -(2**63)

    @pytest.mark.parametrize(
        "data",
        [b"i18446744073709551616e", b"i-9223372036854775809e"],
    )
    def test_overflow_into_any(self, data):
        """Test literals outside both 64-bit ranges overflow."""
        with pytest.raises(NumericOverflowError):
            decode(data)

    def test_binary_payload(self):
        """Test byte strings are binary safe."""
        assert decode(b"4:\x00\xff:e") == b"\x00\xff:e"


class TestMalformedInput:
    """Test grammar violations."""

    @pytest.mark.parametrize(
        "data",
        [b"x", b"i1xe", b"i--1e", b"ie", b"i-e", b"i03e", b"i-0e", b"03:abc", b"d1:ai1e", b"3abc"],
    )
    def test_rejected(self, data):
        """Test malformed tokens raise a decode error."""
        with pytest.raises(BencodeDecodeError):
            decode(data)

    @pytest.mark.parametrize("data", [b"", b"l", b"li1e", b"d1:a", b"i12", b"5:abc"])
    def test_unexpected_end(self, data):
        """Test input ending inside a value."""
        with pytest.raises(UnexpectedEndError):
            decode(data)

    def test_unknown_leading_byte(self):
        """Test a byte matching no production is MalformedInput."""
        with pytest.raises(MalformedInputError) as exc_info:
            decode(b"li1ex")
        assert exc_info.value.details["offset"] == 4

    def test_huge_length_does_not_allocate(self):
        """Test a huge declared length fails cleanly."""
        with pytest.raises(UnexpectedEndError) as exc_info:
            decode(b"99999999999999999999:abc")
        assert exc_info.value.details["available"] == 3


class TestTypedTargets:
    """Test binding to typed targets."""

    def test_str_and_bytes(self):
        """Test text and binary targets."""
        assert decode(b"5:hello", str) == "hello"
        assert decode(b"5:hello", bytes) == b"hello"
        assert decode(b"5:hello", bytearray) == bytearray(b"hello")

    def test_invalid_utf8_into_str(self):
        """Test text targets accept arbitrary bytes verbatim."""
        result = decode(b"2:\xff\xfe", str)
        assert result.encode("utf-8", "surrogateescape") == b"\xff\xfe"

    def test_sized_integers(self):
        """Test fixed-width integer targets are range checked."""
        assert decode(b"i127e", Int8) == 127
        assert decode(b"i255e", UInt8) == 255
        with pytest.raises(NumericOverflowError):
            decode(b"i128e", Int8)
        with pytest.raises(NumericOverflowError):
            decode(b"i-1e", UInt32)

    def test_above_int64_into_signed_target(self):
        """Test int64 targets do not fall back to unsigned."""
        assert decode(b"i9223372036854775808e") == 2**63
        with pytest.raises(NumericOverflowError):
            decode(b"i9223372036854775808e", Int64)

    def test_plain_int_is_unbounded(self):
        """Test plain int targets accept any size."""
        assert decode(b"i99999999999999999999999e", int) == 99999999999999999999999

    def test_growable_sequences(self):
        """Test list and tuple targets."""
        assert decode(b"li1ei2ee", list[int]) == [1, 2]
        assert decode(b"l1:a1:be", tuple[str, ...]) == ("a", "b")

    def test_fixed_array_truncates(self):
        """Test extra elements are parsed and discarded."""
        decoder = BencodeDecoder(b"li1eli2eei3ei4ee")
        result = decoder.decode(Annotated[list[Any], FixedLength(2)])
        assert result == [1, [2]]
        assert decoder.pos == 16

    def test_per_slot_tuple(self):
        """Test tuple[A, B, C] binds each slot to its own type."""
        assert decode(b"li1e1:a1:be", tuple[int, bytes, str]) == (1, b"a", "b")
        assert decode(b"li1ee", tuple[int, bytes, str]) == (1, b"", "")
        assert decode(b"li1e1:ai9ee", tuple[int, bytes]) == (1, b"a")

    def test_mapping_key_types(self):
        """Test str and bytes mapping keys."""
        assert decode(b"d1:ai1ee", dict[bytes, int]) == {b"a": 1}
        assert decode(b"d1:ai1ee", dict[str, int]) == {"a": 1}

    def test_non_string_mapping_key(self):
        """Test non-string key types fail before any element is consumed."""
        decoder = BencodeDecoder(b"d1:ai1ee")
        with pytest.raises(ShapeMismatchError):
            decoder.decode(dict[int, int])
        assert decoder.pos == 0

    @pytest.mark.parametrize(
        ("data", "target"),
        [
            (b"i1e", str),
            (b"1:a", int),
            (b"le", dict),
            (b"de", list[int]),
            (b"li1ee", list[str]),
            (b"i1e", float),
            (b"i1e", bool),
            (b"i1e", Simple),
            (b"de", int | str),
        ],
    )
    def test_shape_mismatch(self, data, target):
        """Test wire kinds that do not fit the target."""
        with pytest.raises(ShapeMismatchError):
            decode(data, target)

    def test_optional_unwraps(self):
        """Test optional targets decode into their inner type."""
        assert decode(b"i5e", Optional[int]) == 5
        assert decode(b"d5:valuei3ee", Inner | None) == Inner(3)
        assert decode(b"li1ee", Optional[Optional[list[int]]]) == [1]


class TestRecordTargets:
    """Test binding dicts onto dataclasses and pydantic models."""

    def test_unknown_keys_skipped(self):
        """Test unknown keys are parsed and the whole dict consumed."""
        data = b"d3:Bari1e3:Foo3:ben5:Pizza4:coole"
        decoder = BencodeDecoder(data)
        assert decoder.decode(Simple) == Simple(Foo="ben", Bar=1)
        assert decoder.pos == len(data)

    def test_unknown_nested_value_skipped(self):
        """Test skipped values may be arbitrarily nested."""
        data = b"d5:extrad1:ali1ei2eee3:Fooi0ee"
        with pytest.raises(ShapeMismatchError):
            decode(data, Simple)
        data = b"d5:extrad1:ali1ei2eee3:Foo2:oke"
        assert decode(data, Simple) == Simple(Foo="ok")

    def test_unknown_key_logged(self, caplog):
        """Test skipped keys are logged at debug level."""
        with caplog.at_level(logging.DEBUG, logger="bencodec.core.decoder"):
            decode(b"d5:Pizza4:coole", Simple, config=CodecConfig())
        assert "Skipping unknown key" in caplog.text

    def test_wire_key_overrides(self):
        """Test renamed, skipped and private members."""
        data = b"d12:display-name3:bob6:secret3:yes5:counti3e6:_cachei9ee"
        result = decode(data, Tagged)
        assert result == Tagged(name="bob", secret="hidden", count=3, _cache=0)

    def test_member_name_not_used_when_renamed(self):
        """Test the declared name is not a wire key once overridden."""
        assert decode(b"d4:name3:bobe", Tagged).name == ""

    def test_nested_records(self):
        """Test optional and list-of-record members."""
        data = b"d5:innerd5:valuei1ee5:itemsld5:valuei2eed5:valuei3eee5:label2:abe"
        result = decode(data, Outer)
        assert result == Outer(inner=Inner(1), items=[Inner(2), Inner(3)], label=b"ab")

    def test_absent_members(self):
        """Test members not present on the wire keep defaults or zero values."""
        assert decode(b"de", Outer) == Outer()
        assert decode(b"d4:sizei3ee", Required) == Required(name="", size=3)

    def test_skipped_required_member(self):
        """Test required excluded members are constructed with zero values."""
        result = decode(b"d5:cached1:ai1ee4:name1:xe", WithSkippedRequired)
        assert result == WithSkippedRequired(cache={}, name="x")

    def test_member_overflow(self):
        """Test sized members are range checked."""
        with pytest.raises(NumericOverflowError):
            decode(b"d5:counti300ee", Tagged)

    def test_raw_member(self):
        """Test RawBencode captures the exact wire bytes."""
        data = b"d8:announce3:url4:infod6:lengthi5e4:name1:xee"
        result = decode(data, Torrent)
        assert result.announce == b"url"
        assert result.info == b"d6:lengthi5e4:name1:xe"
        assert isinstance(result.info, RawBencode)

    def test_raw_validates(self):
        """Test raw capture still rejects malformed values."""
        with pytest.raises(UnexpectedEndError):
            decode(b"d4:infod6:lengthi5e", Torrent)

    def test_pydantic_model(self):
        """Test alias keys, excluded members and sized fields on models."""
        data = b"d2:ip9:127.0.0.14:note3:abc7:peer id3:xyz4:porti6881ee"
        peer = decode(data, Peer)
        assert peer.ip == "127.0.0.1"
        assert peer.port == 6881
        assert peer.peer_id == b"xyz"
        assert peer.note == ""

    def test_pydantic_model_zero_fill(self):
        """Test required model fields absent from the wire get zero values."""
        peer = decode(b"de", Peer)
        assert peer.ip == ""
        assert peer.port == 0

    def test_pydantic_port_overflow(self):
        """Test model members annotated with a width are range checked."""
        with pytest.raises(NumericOverflowError):
            decode(b"d2:ip0:4:porti70000ee", Peer)

    def test_required_excluded_model_members(self):
        """Test required members hidden by exclude or the "-" alias get zero values."""
        session = decode(b"d5:token3:abce", Session)
        assert session.token == "abc"
        assert session.secret == ""
        assert session.hidden == 0

    def test_excluded_model_members_ignore_wire(self):
        """Test wire keys matching excluded members are skipped."""
        session = decode(b"d1:-i5e6:secret1:x5:token0:e", Session)
        assert session.secret == ""
        assert session.hidden == 0

    def test_uninitialised_member_zero_filled(self):
        """Test init=False members without a default are still set."""
        result = decode(b"d4:name1:xe", Digest)
        assert result.name == "x"
        assert result.digest == b""
        assert encode(result) == b"d6:digest0:4:name1:xe"

    def test_uninitialised_member_decoded(self):
        """Test init=False members take their wire value."""
        result = decode(b"d6:digest2:ab4:name1:xe", Digest)
        assert result.digest == b"ab"


class TestDecodeInto:
    """Test decoding into existing objects."""

    def test_list_replaced(self):
        """Test list contents are replaced."""
        target = [9, 9, 9]
        decode_into(b"li1ei2ee", target, list[int])
        assert target == [1, 2]

    def test_dict_updated(self):
        """Test dicts are updated in place."""
        target = {"x": 1}
        decode_into(b"d1:yi2ee", target, dict[str, int])
        assert target == {"x": 1, "y": 2}

    def test_bytearray_replaced(self):
        """Test bytearray contents are replaced."""
        target = bytearray(b"zz")
        decode_into(b"3:abc", target)
        assert target == bytearray(b"abc")

    def test_record_instance(self):
        """Test decoded members are assigned onto the instance."""
        target = Simple(Foo="keep")
        decode_into(b"d3:Bari7ee", target)
        assert target == Simple(Foo="keep", Bar=7)

    def test_model_instance(self):
        """Test pydantic instances are filled in place."""
        peer = Peer(ip="a", port=1)
        decode_into(b"d4:porti2ee", peer)
        assert peer.port == 2
        assert peer.ip == "a"

    @pytest.mark.parametrize("target", [5, "text", b"bytes", (1, 2), Frozen(), None])
    def test_immutable_targets(self, target):
        """Test immutable targets are rejected before parsing."""
        decoder = BencodeDecoder(b"i1e")
        with pytest.raises(InvalidTargetError):
            decoder.decode_into(target)
        assert decoder.pos == 0

    def test_target_type_must_fit(self):
        """Test the target type must agree with the object."""
        with pytest.raises(InvalidTargetError):
            decode_into(b"le", [], dict[str, int])

    def test_record_instance_mismatch(self):
        """Test a non-dict token cannot fill a record instance."""
        with pytest.raises(ShapeMismatchError):
            decode_into(b"i1e", Simple())


class TestStreams:
    """Test decoding from binary streams."""

    def test_sequential_values(self):
        """Test the stream is left right after each value."""
        stream = io.BytesIO(b"i42ed1:ali1eee3:end")
        assert decode_stream(stream) == 42
        assert decode_stream(stream, dict[str, list[int]]) == {"a": [1]}
        assert decode_stream(stream, str) == "end"

    def test_large_string(self):
        """Test byte strings spanning several reads."""
        payload = bytes(range(256)) * 1024
        stream = io.BytesIO(b"%d:" % len(payload) + payload)
        assert decode_stream(stream) == payload

    def test_raw_from_stream(self):
        """Test raw capture works on streams."""
        data = b"d8:announce3:url4:infod6:lengthi5eee"
        assert decode_stream(io.BytesIO(data), Torrent).info == b"d6:lengthi5ee"

    def test_truncated_stream(self):
        """Test a stream ending early."""
        with pytest.raises(UnexpectedEndError):
            decode_stream(io.BytesIO(b"l5:abc"))

    def test_read_error(self):
        """Test stream read failures surface as BencodeIOError."""
        with pytest.raises(BencodeIOError) as exc_info:
            decode_stream(BrokenStream())
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_invalid_source(self):
        """Test non-bytes, non-stream sources are rejected."""
        with pytest.raises(BencodeDecodeError):
            BencodeDecoder(12345)


class TestCodecConfig:
    """Test decoder strictness options."""

    def test_lenient_integers(self):
        """Test non-canonical integers when strict mode is off."""
        config = CodecConfig(strict_integers=False)
        assert decode(b"i03e", config=config) == 3
        assert decode(b"i-0e", config=config) == 0
        assert decode(b"03:abc", config=config) == b"abc"
        with pytest.raises(MalformedInputError):
            decode(b"ie", config=config)

    def test_duplicate_keys_overwrite(self, caplog):
        """Test the last duplicate wins by default."""
        with caplog.at_level(logging.DEBUG, logger="bencodec.core.decoder"):
            assert decode(b"d1:ai1e1:ai2ee", config=CodecConfig()) == {b"a": 2}
        assert "Duplicate key" in caplog.text

    def test_duplicate_keys_rejected(self):
        """Test duplicate keys are malformed input in strict mode."""
        config = CodecConfig(reject_duplicate_keys=True)
        with pytest.raises(DuplicateKeyError):
            decode(b"d1:ai1e1:ai2ee", config=config)
        with pytest.raises(MalformedInputError):
            decode(b"d3:Bari1e3:Bari2ee", Simple, config=config)

    def test_trailing_data(self):
        """Test trailing bytes are allowed unless disabled."""
        assert decode(b"i1ei2e") == 1
        config = CodecConfig(allow_trailing_data=False)
        assert decode(b"i1e", config=config) == 1
        with pytest.raises(MalformedInputError):
            decode(b"i1ei2e", config=config)

    def test_max_depth(self):
        """Test nesting beyond the limit is rejected."""
        config = CodecConfig(max_depth=2)
        assert decode(b"llee", config=config) == [[]]
        with pytest.raises(MalformedInputError):
            decode(b"llleee", config=config)

    def test_default_depth_limit(self):
        """Test deeply nested input fails cleanly instead of exhausting the stack."""
        with pytest.raises(MalformedInputError):
            decode(b"l" * 300 + b"e" * 300)

    def test_nesting_beyond_interpreter_stack(self):
        """Test nesting deeper than the interpreter allows is malformed input."""
        config = CodecConfig(max_depth=10000)
        with pytest.raises(MalformedInputError, match="Nesting too deep"):
            decode(b"d1:a" * 5000 + b"i1e" + b"e" * 5000, config=config)
        with pytest.raises(MalformedInputError, match="Nesting too deep"):
            decode_into(b"l" * 5000 + b"e" * 5000, [], config=config)

    def test_decoder_usable_after_deep_nesting(self):
        """Test the interpreter stack is unwound after a depth failure."""
        with pytest.raises(MalformedInputError):
            decode(b"l" * 5000 + b"e" * 5000, config=CodecConfig(max_depth=10000))
        assert decode(b"li1ee", config=CodecConfig()) == [1]


class TestGlobalCodecConfig:
    """Test decoders fall back to the process-wide configuration."""

    @pytest.fixture(autouse=True)
    def isolated(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))

    def test_environment_overrides(self, monkeypatch):
        """Test BENCODEC_* settings reach decoders created without a config."""
        monkeypatch.setenv("BENCODEC_REJECT_DUPLICATE_KEYS", "true")
        init_config()
        with pytest.raises(DuplicateKeyError):
            decode(b"d1:ai1e1:ai2ee")

    def test_config_file(self, tmp_path):
        """Test settings from bencodec.toml apply to decode()."""
        (tmp_path / "bencodec.toml").write_text(
            "[codec]\nmax_depth = 1\n", encoding="utf-8"
        )
        init_config()
        assert decode(b"le") == []
        with pytest.raises(MalformedInputError):
            decode(b"llee")

    def test_set_config(self):
        """Test runtime replacement of the global configuration."""
        set_config(Config(codec=CodecConfig(allow_trailing_data=False)))
        with pytest.raises(MalformedInputError):
            decode(b"i1ei2e")
        assert BencodeDecoder(b"i1e").config.allow_trailing_data is False

    def test_explicit_config_wins(self, monkeypatch):
        """Test a config passed to the decoder overrides the global one."""
        monkeypatch.setenv("BENCODEC_REJECT_DUPLICATE_KEYS", "true")
        init_config()
        assert decode(b"d1:ai1e1:ai2ee", config=CodecConfig()) == {b"a": 2}
