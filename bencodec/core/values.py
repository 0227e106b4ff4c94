"""Bencode value model and binding annotations.

A bencoded value is one of four things: an integer, a byte string, a list of
values or a dict keyed by byte strings. Decoding without a schema produces
exactly the Python types named by :data:`BencodeValue`.

The annotation markers in this module (:class:`IntWidth`, :class:`FixedLength`)
are attached with :data:`typing.Annotated` to narrow how a wire token binds to
a target, e.g. ``Annotated[list[int], FixedLength(20)]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Union

# Wire tokens
INT_START = ord("i")
LIST_START = ord("l")
DICT_START = ord("d")
END = ord("e")
LENGTH_SEP = ord(":")
MINUS = ord("-")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1

BencodeValue = Union[int, bytes, "list[BencodeValue]", "dict[bytes, BencodeValue]"]


class WireKind(str, Enum):
    """Structural kind of a bencode token."""

    INTEGER = "integer"
    BYTESTRING = "bytestring"
    LIST = "list"
    DICT = "dict"


class RawBencode(bytes):
    """Bytes holding one complete, already-encoded bencode value.

    As a decode target it captures the exact wire bytes of the value (for
    example to hash an ``info`` dict); the encoder writes it out verbatim.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return f"RawBencode({bytes(self)!r})"


@dataclass(frozen=True)
class IntWidth:
    """Fixed-width integer annotation."""

    bits: int
    signed: bool = True

    def __post_init__(self) -> None:
        if self.bits <= 0:
            msg = f"Integer width must be positive, got {self.bits}"
            raise ValueError(msg)

    @property
    def min_value(self) -> int:
        return -(2 ** (self.bits - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        if self.signed:
            return 2 ** (self.bits - 1) - 1
        return 2**self.bits - 1

    @property
    def type_name(self) -> str:
        return f"{'int' if self.signed else 'uint'}{self.bits}"


@dataclass(frozen=True)
class FixedLength:
    """Fixed-capacity sequence annotation."""

    length: int

    def __post_init__(self) -> None:
        if self.length < 0:
            msg = f"Fixed length must not be negative, got {self.length}"
            raise ValueError(msg)


Int8 = Annotated[int, IntWidth(8)]
Int16 = Annotated[int, IntWidth(16)]
Int32 = Annotated[int, IntWidth(32)]
Int64 = Annotated[int, IntWidth(64)]
UInt8 = Annotated[int, IntWidth(8, signed=False)]
UInt16 = Annotated[int, IntWidth(16, signed=False)]
UInt32 = Annotated[int, IntWidth(32, signed=False)]
UInt64 = Annotated[int, IntWidth(64, signed=False)]

