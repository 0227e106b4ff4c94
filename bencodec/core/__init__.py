"""Core bencode codec.

This module contains the codec components:
- Value model and binding annotations
- Type binding layer (target shapes, field registry)
- Decoder and encoder
"""

from __future__ import annotations

from bencodec.core.binding import (
    SKIP,
    TypeRegistry,
    bencode_field,
    default_registry,
)
from bencodec.core.decoder import BencodeDecoder, decode, decode_into, decode_stream
from bencodec.core.encoder import BencodeEncoder, encode
from bencodec.core.values import (
    BencodeValue,
    FixedLength,
    Int8,
    Int16,
    Int32,
    Int64,
    IntWidth,
    RawBencode,
    UInt8,
    UInt16,
    UInt32,
    UInt64,
)

__all__ = [
    "SKIP",
    # Codec
    "BencodeDecoder",
    "BencodeEncoder",
    # Value model
    "BencodeValue",
    "FixedLength",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "IntWidth",
    "RawBencode",
    # Binding
    "TypeRegistry",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "bencode_field",
    "decode",
    "decode_into",
    "decode_stream",
    "default_registry",
    "encode",
]
