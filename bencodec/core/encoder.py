"""Bencode encoder.

Type-directed traversal of a Python value producing the canonical wire form:
dict keys and record members are always written in ascending order of their
raw key bytes, so equal values always encode to identical bytes.
"""

from __future__ import annotations

import array
import dataclasses
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from pydantic import BaseModel

from bencodec.core.binding import TypeRegistry, default_registry
from bencodec.core.values import RawBencode
from bencodec.utils.exceptions import (
    BencodeEncodeError,
    UnsupportedMapKeyError,
    UnsupportedTypeError,
)

_BYTE_TYPECODES = ("b", "B")


def _key_bytes(key: Any) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8", "surrogateescape")
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    msg = f"Dict key {key!r} has unsupported type {type(key).__name__}, expected str or bytes"
    raise UnsupportedMapKeyError(msg, {"key_type": type(key).__name__})


class BencodeEncoder:
    """Encoder for Python values.

    An encoder holds no per-call state and may be shared between threads.

    Example:
        >>> BencodeEncoder().encode({"foo": 1, "bar": 2})
        b'd3:bari2e3:fooi1ee'

    """

    def __init__(self, registry: TypeRegistry | None = None):
        """Initialize encoder."""
        self.registry = registry or default_registry

    def encode(self, obj: Any) -> bytes:
        """Encode a value to bencoded bytes.

        Raises:
            UnsupportedTypeError: A value has no bencode representation.
            UnsupportedMapKeyError: A dict key is neither str nor bytes.
            BencodeEncodeError: The value contains a reference cycle or keys
                that collide once converted to bytes.

        """
        encode_pass = _EncodePass(self.registry)
        encode_pass.encode(obj)
        return bytes(encode_pass.out)


class _EncodePass:
    """Output buffer and open containers of a single encode call."""

    def __init__(self, registry: TypeRegistry):
        self.registry = registry
        self.out = bytearray()
        self.active: set[int] = set()

    def encode(self, obj: Any) -> None:
        encoder = _DISPATCH.get(type(obj))
        if encoder is not None:
            encoder(self, obj)
        elif isinstance(obj, bool) or obj is None:
            self._unsupported(obj)
        elif isinstance(obj, RawBencode):
            self._encode_raw(obj)
        elif isinstance(obj, int):
            self._encode_int(obj)
        elif isinstance(obj, str):
            self._encode_str(obj)
        elif isinstance(obj, (bytes, bytearray, memoryview)):
            self._encode_bytes(obj)
        elif isinstance(obj, array.array) and obj.typecode in _BYTE_TYPECODES:
            # Byte-element sequences are byte strings, not lists of integers
            self._encode_bytes(obj.tobytes())
        elif isinstance(obj, (list, tuple, array.array)):
            self._encode_list(obj)
        elif isinstance(obj, Mapping):
            self._encode_dict(obj)
        elif isinstance(obj, BaseModel) or (
            dataclasses.is_dataclass(obj) and not isinstance(obj, type)
        ):
            self._encode_record(obj)
        else:
            self._unsupported(obj)

    def _unsupported(self, obj: Any) -> None:
        msg = f"Value {obj!r} has unsupported type {type(obj).__name__}"
        raise UnsupportedTypeError(msg, {"type": type(obj).__name__})

    def _enter(self, obj: Any) -> int:
        marker = id(obj)
        if marker in self.active:
            msg = f"Circular reference detected in {type(obj).__name__}"
            raise BencodeEncodeError(msg, {"type": type(obj).__name__})
        self.active.add(marker)
        return marker

    def _encode_int(self, obj: int) -> None:
        self.out += b"i%de" % obj

    def _encode_bytes(self, obj: bytes | bytearray | memoryview) -> None:
        data = bytes(obj)
        self.out += b"%d:" % len(data)
        self.out += data

    def _encode_str(self, obj: str) -> None:
        try:
            data = obj.encode("utf-8", "surrogateescape")
        except UnicodeEncodeError as e:
            msg = f"String {obj!r} cannot be encoded as UTF-8: {e}"
            raise BencodeEncodeError(msg, {"type": "str"}) from e
        self._encode_bytes(data)

    def _encode_raw(self, obj: RawBencode) -> None:
        self.out += obj

    def _encode_list(self, obj: Sequence[Any]) -> None:
        marker = self._enter(obj)
        self.out += b"l"
        for item in obj:
            self.encode(item)
        self.out += b"e"
        self.active.discard(marker)

    def _encode_dict(self, obj: Mapping[Any, Any]) -> None:
        marker = self._enter(obj)
        items: dict[bytes, Any] = {}
        for key, value in obj.items():
            raw = _key_bytes(key)
            if raw in items:
                msg = f"Dict keys collide as {raw!r} once converted to bytes"
                raise BencodeEncodeError(msg, {"key": repr(raw)})
            items[raw] = value
        self._write_dict(sorted(items.items()))
        self.active.discard(marker)

    def _encode_record(self, obj: Any) -> None:
        marker = self._enter(obj)
        fields = self.registry.fields_for(type(obj))
        # Registry fields are already ordered by wire key
        entries = [
            (spec.wire_key, value)
            for spec in fields.fields
            if (value := getattr(obj, spec.name)) is not None
        ]
        self._write_dict(entries)
        self.active.discard(marker)

    def _write_dict(self, entries: list[tuple[bytes, Any]]) -> None:
        self.out += b"d"
        for key, value in entries:
            self._encode_bytes(key)
            self.encode(value)
        self.out += b"e"


_DISPATCH: dict[type, Callable[[_EncodePass, Any], None]] = {
    int: _EncodePass._encode_int,
    bytes: _EncodePass._encode_bytes,
    bytearray: _EncodePass._encode_bytes,
    str: _EncodePass._encode_str,
    list: _EncodePass._encode_list,
    tuple: _EncodePass._encode_list,
    dict: _EncodePass._encode_dict,
    RawBencode: _EncodePass._encode_raw,
}


def encode(obj: Any, *, registry: TypeRegistry | None = None) -> bytes:
    """Encode a value to canonical bencoded bytes."""
    return BencodeEncoder(registry).encode(obj)
