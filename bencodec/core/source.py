"""Byte sources consumed by the bencode decoder.

The decoder needs one byte of lookahead, runs of ASCII digits, and exact-length
reads. :class:`BufferSource` serves these from an in-memory buffer,
:class:`StreamSource` from a binary file object.
"""

from __future__ import annotations

import re
from typing import BinaryIO

from bencodec.utils.exceptions import BencodeIOError

_DIGITS = re.compile(rb"[0-9]*")
_CHUNK_SIZE = 64 * 1024


class ByteSource:
    """Cursor over a sequence of bytes."""

    pos: int

    def peek(self) -> int | None:
        """Return the next byte without consuming it, None at end of input."""
        raise NotImplementedError

    def read_byte(self) -> int | None:
        """Consume and return the next byte, None at end of input."""
        raise NotImplementedError

    def read_digits(self) -> bytes:
        """Consume the longest run of ASCII digits."""
        raise NotImplementedError

    def read_exact(self, length: int) -> bytes:
        """Consume up to ``length`` bytes; fewer means the input ended."""
        raise NotImplementedError

    def start_capture(self) -> None:
        """Start recording consumed bytes (captures may nest)."""
        raise NotImplementedError

    def end_capture(self) -> bytes:
        """Stop the innermost capture and return the bytes it recorded."""
        raise NotImplementedError


class BufferSource(ByteSource):
    """Byte source over an in-memory buffer."""

    def __init__(self, data: bytes | bytearray | memoryview):
        self.data = bytes(data)
        self.pos = 0
        self._marks: list[int] = []

    def peek(self) -> int | None:
        if self.pos >= len(self.data):
            return None
        return self.data[self.pos]

    def read_byte(self) -> int | None:
        if self.pos >= len(self.data):
            return None
        byte = self.data[self.pos]
        self.pos += 1
        return byte

    def read_digits(self) -> bytes:
        match = _DIGITS.match(self.data, self.pos)
        end = match.end() if match else self.pos
        digits = self.data[self.pos : end]
        self.pos = end
        return digits

    def read_exact(self, length: int) -> bytes:
        chunk = self.data[self.pos : self.pos + length]
        self.pos += len(chunk)
        return chunk

    def start_capture(self) -> None:
        self._marks.append(self.pos)

    def end_capture(self) -> bytes:
        start = self._marks.pop()
        return self.data[start : self.pos]


class StreamSource(ByteSource):
    """Byte source over a binary file object.

    Keeps a single byte of pushback for lookahead. Errors raised by the
    stream's ``read`` surface as :class:`BencodeIOError`.
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.pos = 0
        self._pending: int | None = None
        self._captured = bytearray()
        self._marks: list[int] = []

    def _read(self, size: int) -> bytes:
        try:
            chunk = self.stream.read(size)
        except OSError as e:
            msg = f"Failed to read from stream: {e}"
            raise BencodeIOError(msg, {"offset": self.pos}) from e
        return chunk or b""

    def _consumed(self, chunk: bytes) -> None:
        self.pos += len(chunk)
        if self._marks:
            self._captured += chunk

    def peek(self) -> int | None:
        if self._pending is None:
            chunk = self._read(1)
            if not chunk:
                return None
            self._pending = chunk[0]
        return self._pending

    def read_byte(self) -> int | None:
        byte = self.peek()
        if byte is not None:
            self._pending = None
            self._consumed(bytes((byte,)))
        return byte

    def read_digits(self) -> bytes:
        digits = bytearray()
        while True:
            byte = self.peek()
            if byte is None or not 0x30 <= byte <= 0x39:
                return bytes(digits)
            self.read_byte()
            digits.append(byte)

    def read_exact(self, length: int) -> bytes:
        parts = bytearray()
        if length > 0 and self._pending is not None:
            parts.append(self._pending)
            self._pending = None
        while len(parts) < length:
            chunk = self._read(min(length - len(parts), _CHUNK_SIZE))
            if not chunk:
                break
            parts += chunk
        data = bytes(parts)
        self._consumed(data)
        return data

    def start_capture(self) -> None:
        self._marks.append(len(self._captured))

    def end_capture(self) -> bytes:
        start = self._marks.pop()
        data = bytes(self._captured[start:])
        if not self._marks:
            self._captured.clear()
        return data
