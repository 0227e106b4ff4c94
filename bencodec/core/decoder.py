"""Bencode decoder.

Single-pass recursive descent with one byte of lookahead. The target
annotation is resolved to a :class:`~bencodec.core.binding.Shape` and every
nested wire value is bound directly onto the shape of its slot; with no
target (``Any``) the result is a plain Value Model tree of ``int``,
``bytes``, ``list`` and ``dict[bytes, ...]``.
"""

from __future__ import annotations

import contextlib
import dataclasses
import logging
import typing
from typing import Any, BinaryIO, Iterator

from pydantic import BaseModel, ValidationError

from bencodec.config.config import get_codec_config
from bencodec.core.binding import (
    MappingShape,
    RecordFields,
    SequenceShape,
    Shape,
    ShapeKind,
    TypeRegistry,
    default_registry,
)
from bencodec.core.source import BufferSource, ByteSource, StreamSource
from bencodec.core.values import (
    DICT_START,
    END,
    INT64_MIN,
    INT_START,
    LENGTH_SEP,
    LIST_START,
    MINUS,
    UINT64_MAX,
    RawBencode,
    WireKind,
)
from bencodec.models import CodecConfig
from bencodec.utils.exceptions import (
    BencodeDecodeError,
    DuplicateKeyError,
    InvalidTargetError,
    MalformedInputError,
    NumericOverflowError,
    ShapeMismatchError,
    UnexpectedEndError,
)

logger = logging.getLogger(__name__)

_ZERO = 0x30
_NINE = 0x39

_CONTAINER_KINDS = {
    list: ShapeKind.SEQUENCE,
    bytearray: ShapeKind.BYTES,
    dict: ShapeKind.MAPPING,
}


def _is_type_like(target: Any) -> bool:
    if target is Any or isinstance(target, type):
        return True
    return typing.get_origin(target) is not None


class BencodeDecoder:
    """Decoder for bencoded data.

    Example:
        >>> BencodeDecoder(b"d3:bari2e3:fooi1ee").decode(dict[str, int])
        {'bar': 2, 'foo': 1}

    """

    def __init__(
        self,
        data: bytes | bytearray | memoryview | BinaryIO,
        *,
        config: CodecConfig | None = None,
        registry: TypeRegistry | None = None,
    ):
        """Initialize decoder over a buffer or a binary stream.

        Without ``config`` the process-wide codec settings from
        :func:`~bencodec.config.config.get_codec_config` apply.
        """
        self._source: ByteSource
        if isinstance(data, (bytes, bytearray, memoryview)):
            self._source = BufferSource(data)
        elif hasattr(data, "read"):
            self._source = StreamSource(data)
        else:
            msg = f"Cannot decode from {type(data).__name__}, expected bytes or a binary stream"
            raise BencodeDecodeError(msg)
        self.config = config or get_codec_config()
        self.registry = registry or default_registry

    @property
    def pos(self) -> int:
        """Number of bytes consumed so far."""
        return self._source.pos

    def decode(self, target: Any = Any) -> Any:
        """Decode one value and bind it to ``target``.

        Args:
            target: Type annotation describing the result (``Any`` for the
                plain Value Model).

        Returns:
            The decoded value.

        Raises:
            InvalidTargetError: ``target`` is not a type annotation.
            BencodeDecodeError: The input is malformed or does not fit ``target``.

        """
        if not _is_type_like(target):
            msg = (
                f"Decode target must be a type, got {type(target).__name__} instance; "
                "use decode_into() to fill an existing object"
            )
            raise InvalidTargetError(msg, {"target": repr(target)})
        shape = self.registry.shape_for(target)
        with self._recursion_guard():
            value = self._decode_value(shape, 0)
        self._check_trailing()
        return value

    def decode_into(self, obj: Any, target_type: Any = None) -> None:
        """Decode one value into an existing mutable object.

        Lists and bytearrays have their contents replaced, dicts are updated,
        dataclass and pydantic model instances get the decoded members
        assigned. ``target_type`` narrows element types, e.g. ``list[int]``.

        Raises:
            InvalidTargetError: ``obj`` is not a mutable target. Raised before
                any input is consumed.

        """
        container = next((t for t in _CONTAINER_KINDS if isinstance(obj, t)), None)
        if container is not None:
            shape = self.registry.shape_for(target_type or container)
            if shape.kind is not _CONTAINER_KINDS[container]:
                msg = f"Target type {shape.description} does not fit a {type(obj).__name__} object"
                raise InvalidTargetError(msg, {"target": shape.description})
            with self._recursion_guard():
                value = self._decode_value(shape, 0)
            if isinstance(obj, dict):
                obj.update(value)
            else:
                obj[:] = value
        elif _is_record_instance(obj):
            fields = self.registry.fields_for(type(obj))
            if not fields.mutable:
                msg = f"Cannot decode into frozen {type(obj).__qualname__} instance"
                raise InvalidTargetError(msg, {"target": type(obj).__qualname__})
            with self._recursion_guard():
                if self._peek_value() != DICT_START:
                    # Any other token mismatches the record shape and raises
                    self._decode_value(self.registry.shape_for(type(obj)), 0)
                self._decode_record(fields, 0, obj)
        else:
            msg = f"Cannot decode into immutable {type(obj).__name__} object"
            raise InvalidTargetError(msg, {"target": repr(obj)})
        self._check_trailing()

    @contextlib.contextmanager
    def _recursion_guard(self) -> Iterator[None]:
        try:
            yield
        except RecursionError as e:
            msg = f"Nesting too deep for the interpreter stack at offset {self.pos}"
            raise MalformedInputError(msg, {"offset": self.pos}) from e

    def _check_trailing(self) -> None:
        if self.config.allow_trailing_data or self._source.peek() is None:
            return
        msg = f"Trailing data after value at offset {self.pos}"
        raise MalformedInputError(msg, {"offset": self.pos})

    def _peek_value(self) -> int:
        byte = self._source.peek()
        if byte is None:
            msg = f"Unexpected end of input at offset {self.pos}, expected a value"
            raise UnexpectedEndError(msg, {"offset": self.pos})
        return byte

    def _mismatch(self, wire_kind: WireKind, target: str) -> ShapeMismatchError:
        msg = f"Cannot decode bencode {wire_kind.value} into {target}"
        return ShapeMismatchError(
            msg,
            {"offset": self.pos, "wire_kind": wire_kind.value, "target": target},
        )

    def _decode_value(self, shape: Shape, depth: int) -> Any:
        while shape.kind is ShapeKind.OPTIONAL:
            shape = shape.inner  # type: ignore[attr-defined]

        byte = self._peek_value()
        if shape.kind is ShapeKind.RAW:
            return self._decode_raw(depth)
        if byte == INT_START:
            return self._decode_int(shape)
        if _ZERO <= byte <= _NINE:
            return self._decode_bytes(shape)
        if byte == LIST_START:
            return self._decode_list(shape, depth)
        if byte == DICT_START:
            return self._decode_dict(shape, depth)

        msg = f"Unexpected byte {bytes((byte,))!r} at offset {self.pos}, expected a value"
        raise MalformedInputError(msg, {"offset": self.pos})

    def _decode_raw(self, depth: int) -> RawBencode:
        self._source.start_capture()
        self._decode_value(self.registry.any_shape, depth)
        return RawBencode(self._source.end_capture())

    def _read_terminator(self, terminator: int, what: str, start: int) -> None:
        byte = self._source.read_byte()
        if byte is None:
            msg = f"Unexpected end of input in {what} starting at offset {start}"
            raise UnexpectedEndError(msg, {"offset": self.pos})
        if byte != terminator:
            msg = f"Invalid {what} at offset {start}: unexpected byte {bytes((byte,))!r}"
            raise MalformedInputError(msg, {"offset": self.pos - 1})

    def _decode_int(self, shape: Shape) -> int:
        start = self.pos
        self._source.read_byte()
        negative = self._source.peek() == MINUS
        if negative:
            self._source.read_byte()
        digits = self._source.read_digits()
        self._read_terminator(END, "integer", start)

        if not digits:
            msg = f"Invalid integer at offset {start}: no digits"
            raise MalformedInputError(msg, {"offset": start})
        if self.config.strict_integers:
            if digits[0] == _ZERO and len(digits) > 1:
                msg = f"Invalid integer at offset {start}: leading zero"
                raise MalformedInputError(msg, {"offset": start})
            if negative and digits == b"0":
                msg = f"Invalid integer at offset {start}: negative zero"
                raise MalformedInputError(msg, {"offset": start})

        try:
            value = int(digits)
        except ValueError as e:
            msg = f"Integer at offset {start} has too many digits ({len(digits)})"
            raise NumericOverflowError(msg, {"offset": start}) from e
        if negative:
            value = -value

        if shape.kind is ShapeKind.ANY:
            # int64 first, then uint64
            if INT64_MIN <= value <= UINT64_MAX:
                return value
            msg = f"Integer {value} at offset {start} overflows 64 bits"
            raise NumericOverflowError(msg, {"offset": start, "target": "Any"})
        if shape.kind is ShapeKind.INTEGER:
            if not shape.fits(value):  # type: ignore[attr-defined]
                msg = f"Integer {value} at offset {start} overflows {shape.description}"
                raise NumericOverflowError(
                    msg, {"offset": start, "target": shape.description}
                )
            return value
        raise self._mismatch(WireKind.INTEGER, shape.description)

    def _decode_bytes(self, shape: Shape) -> bytes | bytearray | str:
        start = self.pos
        digits = self._source.read_digits()
        self._read_terminator(LENGTH_SEP, "byte string length", start)
        if self.config.strict_integers and digits[0] == _ZERO and len(digits) > 1:
            msg = f"Invalid byte string length at offset {start}: leading zero"
            raise MalformedInputError(msg, {"offset": start})

        try:
            length = int(digits)
        except ValueError as e:
            msg = f"Byte string length at offset {start} has too many digits"
            raise MalformedInputError(msg, {"offset": start}) from e
        data = self._source.read_exact(length)
        if len(data) < length:
            msg = (
                f"Byte string at offset {start} declares {length} bytes "
                f"but only {len(data)} remain"
            )
            raise UnexpectedEndError(
                msg, {"offset": start, "declared": length, "available": len(data)}
            )

        if shape.kind is ShapeKind.ANY:
            return data
        if shape.kind is ShapeKind.BYTES:
            return shape.factory(data)  # type: ignore[attr-defined]
        if shape.kind is ShapeKind.TEXT:
            return data.decode("utf-8", "surrogateescape")
        raise self._mismatch(WireKind.BYTESTRING, shape.description)

    def _enter(self, depth: int, start: int) -> None:
        self._source.read_byte()
        if depth >= self.config.max_depth:
            msg = f"Nesting deeper than {self.config.max_depth} levels at offset {start}"
            raise MalformedInputError(msg, {"offset": start, "max_depth": self.config.max_depth})

    def _items(self, what: str, start: int) -> Iterator[None]:
        """Yield once per element until the closing ``e`` is consumed."""
        while True:
            byte = self._source.peek()
            if byte is None:
                msg = f"Unexpected end of input in {what} starting at offset {start}"
                raise UnexpectedEndError(msg, {"offset": self.pos})
            if byte == END:
                self._source.read_byte()
                return
            yield

    def _decode_list(self, shape: Shape, depth: int) -> Any:
        start = self.pos
        items: list[Any] = []
        if shape.kind is ShapeKind.ANY:
            self._enter(depth, start)
            for _ in self._items("list", start):
                items.append(self._decode_value(shape, depth + 1))
            return items
        if not isinstance(shape, SequenceShape):
            raise self._mismatch(WireKind.LIST, shape.description)

        self._enter(depth, start)
        for index, _ in enumerate(self._items("list", start)):
            value = self._decode_value(shape.element_shape(index), depth + 1)
            if shape.keeps(index):
                items.append(value)
        return shape.finish(items)

    def _decode_dict(self, shape: Shape, depth: int) -> Any:
        start = self.pos
        if shape.kind is ShapeKind.ANY:
            return self._decode_mapping(
                self.registry.shape_for(bytes), shape, depth, start
            )
        if isinstance(shape, MappingShape):
            key_shape = shape.key_shape
            if key_shape is None:
                msg = (
                    f"Cannot decode bencode dict into {shape.description}: "
                    "mapping keys must be str or bytes"
                )
                raise ShapeMismatchError(
                    msg, {"offset": start, "wire_kind": "dict", "target": shape.description}
                )
            return self._decode_mapping(key_shape, shape.value_shape, depth, start)
        if shape.kind is ShapeKind.RECORD:
            return self._decode_record(shape.fields, depth)  # type: ignore[attr-defined]
        raise self._mismatch(WireKind.DICT, shape.description)

    def _duplicate(self, key: Any, start: int) -> None:
        if self.config.reject_duplicate_keys:
            msg = f"Duplicate key {key!r} in dict starting at offset {start}"
            raise DuplicateKeyError(msg, {"offset": self.pos, "key": repr(key)})
        logger.debug("Duplicate key %r in dict at offset %d, keeping last value", key, start)

    def _decode_mapping(
        self,
        key_shape: Shape,
        value_shape: Shape,
        depth: int,
        start: int,
    ) -> dict[Any, Any]:
        self._enter(depth, start)
        result: dict[Any, Any] = {}
        for _ in self._items("dict", start):
            key = self._decode_value(key_shape, depth + 1)
            if key in result:
                self._duplicate(key, start)
            result[key] = self._decode_value(value_shape, depth + 1)
        return result

    def _decode_record(
        self,
        fields: RecordFields,
        depth: int,
        instance: Any = None,
    ) -> Any:
        start = self.pos
        self._enter(depth, start)
        key_shape = self.registry.shape_for(bytes)
        values: dict[str, Any] = {}
        seen: set[bytes] = set()
        for _ in self._items("dict", start):
            key = self._decode_value(key_shape, depth + 1)
            if key in seen:
                self._duplicate(key, start)
            seen.add(key)
            spec = fields.lookup(key)
            if spec is None:
                # Unknown keys are still parsed to stay in sync with the stream
                logger.debug(
                    "Skipping unknown key %r for %s",
                    key,
                    fields.record_type.__qualname__,
                )
                self._decode_value(self.registry.any_shape, depth + 1)
                continue
            values[spec.name] = self._decode_value(fields.shape(spec), depth + 1)

        if instance is not None:
            for spec in fields.fields:
                if spec.name in values:
                    fields.assign(instance, spec, values[spec.name])
            return instance
        try:
            return fields.build(values)
        except (ValidationError, TypeError, ValueError) as e:
            target = fields.record_type.__qualname__
            msg = f"Cannot construct {target} from dict at offset {start}: {e}"
            raise ShapeMismatchError(
                msg, {"offset": start, "wire_kind": "dict", "target": target}
            ) from e


def _is_record_instance(obj: Any) -> bool:
    if isinstance(obj, type):
        return False
    return isinstance(obj, BaseModel) or dataclasses.is_dataclass(obj)


def decode(
    data: bytes | bytearray | memoryview,
    target: Any = Any,
    *,
    config: CodecConfig | None = None,
    registry: TypeRegistry | None = None,
) -> Any:
    """Decode bencoded bytes into ``target`` (plain values by default)."""
    return BencodeDecoder(data, config=config, registry=registry).decode(target)


def decode_into(
    data: bytes | bytearray | memoryview,
    obj: Any,
    target_type: Any = None,
    *,
    config: CodecConfig | None = None,
    registry: TypeRegistry | None = None,
) -> None:
    """Decode bencoded bytes into an existing mutable object."""
    BencodeDecoder(data, config=config, registry=registry).decode_into(obj, target_type)


def decode_stream(
    stream: BinaryIO,
    target: Any = Any,
    *,
    config: CodecConfig | None = None,
    registry: TypeRegistry | None = None,
) -> Any:
    """Decode one bencoded value read from a binary stream."""
    return BencodeDecoder(stream, config=config, registry=registry).decode(target)
