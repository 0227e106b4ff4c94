"""Exception hierarchy for bencodec.

Every failure raised by the codec derives from :class:`BencodecError` and
carries a human readable message plus a ``details`` mapping (wire offset,
wire kind, target description) for callers that want to inspect it.
"""

from __future__ import annotations

from typing import Any


class BencodecError(Exception):
    """Base exception for all bencodec errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize bencodec error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(BencodecError):
    """Configuration validation errors."""


class BencodeError(BencodecError):
    """Bencode encoding/decoding errors."""


class BencodeDecodeError(BencodeError):
    """Errors raised while decoding bencoded data."""


class InvalidTargetError(BencodeDecodeError):
    """Decode target is not a type or not a mutable object."""


class MalformedInputError(BencodeDecodeError):
    """Input does not follow the bencode grammar."""


class DuplicateKeyError(MalformedInputError):
    """A dict repeats a key while duplicate keys are rejected."""


class UnexpectedEndError(BencodeDecodeError):
    """Input ended before a token or structure was complete."""


class NumericOverflowError(BencodeDecodeError):
    """Integer does not fit the width of its target."""


class ShapeMismatchError(BencodeDecodeError):
    """Wire token kind cannot be bound to the target shape."""


class BencodeIOError(BencodeDecodeError):
    """Reading from the underlying byte stream failed."""


class BencodeEncodeError(BencodeError):
    """Errors raised while encoding values."""


class UnsupportedMapKeyError(BencodeEncodeError):
    """Mapping key is neither str nor bytes."""


class UnsupportedTypeError(BencodeEncodeError):
    """Value has no bencode representation."""
