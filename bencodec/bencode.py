"""Bencoding module for BitTorrent metadata.

This module provides a convenient interface to the core bencode functionality.
"""

from __future__ import annotations

from bencodec.core import (
    SKIP,
    BencodeDecoder,
    BencodeEncoder,
    FixedLength,
    IntWidth,
    RawBencode,
    bencode_field,
    decode,
    decode_into,
    decode_stream,
    encode,
)
from bencodec.utils.exceptions import (
    BencodeDecodeError,
    BencodeEncodeError,
    BencodeError,
)

__all__ = [
    "SKIP",
    "BencodeDecodeError",
    "BencodeDecoder",
    "BencodeEncodeError",
    "BencodeEncoder",
    "BencodeError",
    "FixedLength",
    "IntWidth",
    "RawBencode",
    "bencode_field",
    "decode",
    "decode_into",
    "decode_stream",
    "encode",
]
