# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Binary encoding primitives for the Kafka wire protocol.

Binary Format Conventions:
- All multi-byte integers are signed and big-endian
- Short strings are length-prefixed: [2 bytes len][N bytes UTF-8], len -1 = None
- Byte arrays are length-prefixed: [4 bytes len][N bytes data], len -1 = None

Buffers are sized up front from the size_in_bytes of the value being
written and never grow. Writing past the end raises BufferOverflowError,
reading past the end raises MalformedInputError.
"""

from __future__ import annotations

import struct

from .exceptions import BufferOverflowError, EncodingError, MalformedInputError

INT8 = struct.Struct(">b")
INT16 = struct.Struct(">h")
INT32 = struct.Struct(">i")
INT64 = struct.Struct(">q")

SHORT_STRING_MAX_LENGTH: int = 32767
DEFAULT_ENCODING: str = "utf-8"


class ByteBuffer:
    """
    Fixed-capacity byte buffer with a read/write cursor.

    Example:
        >>> buf = ByteBuffer.allocate(6)
        >>> buf.put_int16(1).put_int32(42)
        >>> ByteBuffer.wrap(buf.getvalue()).get_int16()
        1
    """

    __slots__ = ("_data", "_position")

    def __init__(self, data: bytearray) -> None:
        self._data = data
        self._position = 0

    @classmethod
    def allocate(cls, capacity: int) -> ByteBuffer:
        """Create an empty buffer holding exactly capacity bytes."""
        if capacity < 0:
            raise ValueError(f"Negative buffer capacity: {capacity}")
        return cls(bytearray(capacity))

    @classmethod
    def wrap(cls, data: bytes | bytearray | memoryview) -> ByteBuffer:
        """Create a buffer positioned at the start of data for reading."""
        return cls(bytearray(data))

    @property
    def position(self) -> int:
        return self._position

    @property
    def capacity(self) -> int:
        return len(self._data)

    @property
    def remaining(self) -> int:
        return len(self._data) - self._position

    def getvalue(self) -> bytes:
        """Return the whole underlying buffer."""
        return bytes(self._data)

    def _reserve_write(self, size: int) -> int:
        start = self._position
        if size > self.remaining:
            raise BufferOverflowError(
                f"Cannot write {size} bytes at position {start}, "
                f"capacity is {self.capacity}"
            )
        self._position += size
        return start

    def _reserve_read(self, size: int, what: str) -> int:
        start = self._position
        if size > self.remaining:
            raise MalformedInputError(
                f"Buffer underflow reading {what}: need {size} bytes, "
                f"{self.remaining} remaining at position {start}"
            )
        self._position += size
        return start

    def _put(self, fmt: struct.Struct, value: int) -> ByteBuffer:
        start = self._reserve_write(fmt.size)
        try:
            fmt.pack_into(self._data, start, value)
        except struct.error as e:
            self._position = start
            raise EncodingError(f"Value {value} out of range for {fmt.size}-byte integer") from e
        return self

    def _get(self, fmt: struct.Struct, what: str) -> int:
        start = self._reserve_read(fmt.size, what)
        return fmt.unpack_from(self._data, start)[0]

    def put_int8(self, value: int) -> ByteBuffer:
        return self._put(INT8, value)

    def put_int16(self, value: int) -> ByteBuffer:
        return self._put(INT16, value)

    def put_int32(self, value: int) -> ByteBuffer:
        return self._put(INT32, value)

    def put_int64(self, value: int) -> ByteBuffer:
        return self._put(INT64, value)

    def get_int8(self) -> int:
        return self._get(INT8, "int8")

    def get_int16(self) -> int:
        return self._get(INT16, "int16")

    def get_int32(self) -> int:
        return self._get(INT32, "int32")

    def get_int64(self) -> int:
        return self._get(INT64, "int64")

    def put_raw(self, data: bytes) -> ByteBuffer:
        """Write data with no length prefix."""
        start = self._reserve_write(len(data))
        self._data[start:start + len(data)] = data
        return self

    def get_raw(self, size: int) -> bytes:
        """Read exactly size bytes with no length prefix."""
        if size < 0:
            raise MalformedInputError(f"Negative length: {size}")
        start = self._reserve_read(size, "raw bytes")
        return bytes(self._data[start:start + size])

    def put_short_string(self, value: str | None) -> ByteBuffer:
        """
        Write a short string.

        None is written as length -1 with no payload, so it stays distinct
        from the empty string.
        """
        if value is None:
            return self.put_int16(-1)
        encoded = value.encode(DEFAULT_ENCODING)
        if len(encoded) > SHORT_STRING_MAX_LENGTH:
            raise EncodingError(
                f"String of {len(encoded)} bytes exceeds the short string maximum "
                f"of {SHORT_STRING_MAX_LENGTH} bytes"
            )
        self.put_int16(len(encoded))
        return self.put_raw(encoded)

    def get_short_string(self) -> str | None:
        """Read a short string, returning None for length -1."""
        length = self.get_int16()
        if length == -1:
            return None
        if length < 0:
            raise MalformedInputError(f"Invalid short string length: {length}")
        start = self._reserve_read(length, "short string")
        try:
            return self._data[start:start + length].decode(DEFAULT_ENCODING)
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"Invalid UTF-8 in short string: {e}") from e

    def put_bytes(self, value: bytes | None) -> ByteBuffer:
        """Write an int32 length-prefixed byte array, -1 for None."""
        if value is None:
            return self.put_int32(-1)
        self.put_int32(len(value))
        return self.put_raw(value)

    def get_bytes(self) -> bytes | None:
        """Read an int32 length-prefixed byte array."""
        length = self.get_int32()
        if length == -1:
            return None
        if length < 0:
            raise MalformedInputError(f"Invalid byte array length: {length}")
        start = self._reserve_read(length, "byte array")
        return bytes(self._data[start:start + length])

    def __repr__(self) -> str:
        return f"ByteBuffer(position={self._position}, capacity={self.capacity})"


def short_string_length(value: str | None) -> int:
    """Bytes needed to write value as a short string."""
    if value is None:
        return INT16.size
    return INT16.size + len(value.encode(DEFAULT_ENCODING))


def bytes_length(value: bytes | None) -> int:
    """Bytes needed to write value as a length-prefixed byte array."""
    if value is None:
        return INT32.size
    return INT32.size + len(value)


def write_short_string(buffer: ByteBuffer, value: str | None) -> None:
    buffer.put_short_string(value)


def read_short_string(buffer: ByteBuffer) -> str | None:
    return buffer.get_short_string()
