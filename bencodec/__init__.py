"""bencodec - A typed bencode codec."""

from __future__ import annotations

__version__ = "0.1.0"

from bencodec.config import (
    CodecConfig,
    Config,
    ConfigManager,
    get_codec_config,
    get_config,
    init_config,
    reload_config,
    set_config,
)
from bencodec.core import (
    SKIP,
    BencodeDecoder,
    BencodeEncoder,
    BencodeValue,
    FixedLength,
    Int8,
    Int16,
    Int32,
    Int64,
    IntWidth,
    RawBencode,
    TypeRegistry,
    UInt8,
    UInt16,
    UInt32,
    UInt64,
    bencode_field,
    decode,
    decode_into,
    decode_stream,
    default_registry,
    encode,
)
from bencodec.utils.exceptions import (
    BencodecError,
    BencodeDecodeError,
    BencodeEncodeError,
    BencodeError,
    BencodeIOError,
    ConfigurationError,
    DuplicateKeyError,
    InvalidTargetError,
    MalformedInputError,
    NumericOverflowError,
    ShapeMismatchError,
    UnexpectedEndError,
    UnsupportedMapKeyError,
    UnsupportedTypeError,
)

__all__ = [
    "SKIP",
    "BencodeDecodeError",
    "BencodeDecoder",
    "BencodeEncodeError",
    "BencodeEncoder",
    "BencodeError",
    "BencodeIOError",
    "BencodeValue",
    "BencodecError",
    "CodecConfig",
    "Config",
    "ConfigManager",
    "ConfigurationError",
    "DuplicateKeyError",
    "FixedLength",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "IntWidth",
    "InvalidTargetError",
    "MalformedInputError",
    "NumericOverflowError",
    "RawBencode",
    "ShapeMismatchError",
    "TypeRegistry",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "UnexpectedEndError",
    "UnsupportedMapKeyError",
    "UnsupportedTypeError",
    "__version__",
    "bencode_field",
    "decode",
    "decode_into",
    "decode_stream",
    "default_registry",
    "encode",
    "get_codec_config",
    "get_config",
    "init_config",
    "reload_config",
    "set_config",
]
