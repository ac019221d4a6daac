# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Kafka request framing.

Request Format:
    +-------+-------+-------+-------+-------+-------+
    | Length (4 bytes, big-endian)  | Type (2 bytes)|
    +-------+-------+-------+-------+-------+-------+
    |              Body (Length - 2 bytes)          |
    +-----------------------------------------------+

Header Fields:
    - Length (4 bytes): Size of everything after the length field
    - Type (2 bytes): Request type id

Responses are framed with the same 4-byte length prefix and no type id.
The framing is identical for every request kind; each request type only
knows how to write its body.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import TYPE_CHECKING, ClassVar

from .codec import INT16, INT32, ByteBuffer
from .exceptions import MalformedInputError

if TYPE_CHECKING:
    from typing import BinaryIO

# Protocol constants
REQUEST_SIZE_SIZE: int = INT32.size
REQUEST_TYPE_SIZE: int = INT16.size
HEADER_SIZE: int = REQUEST_SIZE_SIZE + REQUEST_TYPE_SIZE


class RequestType(IntEnum):
    """Request type ids written after the frame length."""

    PRODUCE = 0
    FETCH = 1
    OFFSETS = 2
    METADATA = 3


class Request(ABC):
    """
    Base class for every request sent to a broker.

    Subclasses provide the request type, the body size and the body
    encoding; framing is done here.
    """

    request_type: ClassVar[RequestType]

    @property
    @abstractmethod
    def size_in_bytes(self) -> int:
        """Size of the body, excluding the frame header."""

    @abstractmethod
    def write_to(self, buffer: ByteBuffer) -> None:
        """Write the body."""

    @property
    def required_size(self) -> int:
        """Size of the complete frame including length and type id."""
        return HEADER_SIZE + self.size_in_bytes

    def to_frame(self) -> bytes:
        """
        Encode the complete frame into a buffer sized exactly required_size.

        Raises:
            BufferOverflowError: If the body is larger than size_in_bytes.
            AssertionError: If the body is smaller than size_in_bytes.
        """
        size = self.required_size
        buffer = ByteBuffer.allocate(size)
        buffer.put_int32(size - REQUEST_SIZE_SIZE)
        buffer.put_int16(self.request_type)
        self.write_to(buffer)
        assert buffer.remaining == 0, (
            f"{type(self).__name__} wrote {buffer.position} bytes, expected {size}"
        )
        return buffer.getvalue()


def parse_frame(frame: bytes) -> tuple[RequestType, ByteBuffer]:
    """
    Split a request frame into its type and a buffer over the body.

    Raises:
        MalformedInputError: If the frame is truncated, its length does
            not match, or the type id is unknown.
    """
    buffer = ByteBuffer.wrap(frame)
    length = buffer.get_int32()
    if length != buffer.remaining:
        raise MalformedInputError(
            f"Frame declares {length} bytes but {buffer.remaining} follow"
        )
    type_id = buffer.get_int16()
    try:
        request_type = RequestType(type_id)
    except ValueError:
        raise MalformedInputError(f"Unknown request type id: {type_id}") from None
    return request_type, ByteBuffer.wrap(frame[HEADER_SIZE:])


def read_frame(reader: BinaryIO) -> bytes:
    """
    Read one length-prefixed frame from a binary stream.

    Args:
        reader: Binary stream to read from.

    Returns:
        The frame payload, without the length prefix.

    Raises:
        EOFError: If the stream is closed before the frame starts.
        MalformedInputError: If the stream ends inside the frame or the
            declared length is negative.
    """
    prefix = reader.read(REQUEST_SIZE_SIZE)
    if len(prefix) == 0:
        raise EOFError("Connection closed")
    if len(prefix) < REQUEST_SIZE_SIZE:
        raise MalformedInputError(
            f"Incomplete length prefix: got {len(prefix)} bytes, expected {REQUEST_SIZE_SIZE}"
        )

    length = INT32.unpack(prefix)[0]
    if length < 0:
        raise MalformedInputError(f"Invalid frame length: {length}")

    payload = b""
    if length > 0:
        payload = reader.read(length)
        if len(payload) < length:
            raise MalformedInputError(
                f"Incomplete frame: got {len(payload)} bytes, expected {length}"
            )
    return payload


def write_frame(writer: BinaryIO, payload: bytes) -> None:
    """
    Write payload to a binary stream as one length-prefixed frame.

    Args:
        writer: Binary stream to write to.
        payload: Frame contents, without the length prefix.
    """
    writer.write(INT32.pack(len(payload)))
    if payload:
        writer.write(payload)
