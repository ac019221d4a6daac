# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Produce request and response encoding.

Request body:
    [2B version][4B correlation_id][2B client_id_len][client_id]
    [2B required_acks][4B ack_timeout_ms]
    [4B topic_count]
      [2B topic_len][topic]
      [4B partition_count]
        [4B partition][4B message_set_size][message_set]

Message set entry:
    [8B offset][4B message_size][4B crc][1B magic][1B attributes]
    [4B key_len][key][4B value_len][value]

Response body:
    [4B correlation_id]
    [4B topic_count]
      [2B topic_len][topic]
      [4B partition_count]
        [4B partition][2B error_code][8B offset]

Topics and partitions are written in sorted order so the same request
always encodes to the same bytes.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from itertools import groupby
from typing import Iterable, Mapping, NamedTuple

from .codec import INT8, INT16, INT32, INT64, ByteBuffer, bytes_length, short_string_length
from .exceptions import ErrorCode, KafkaError, MalformedInputError
from .protocol import Request, RequestType

CURRENT_VERSION: int = 0
MAGIC_VALUE: int = 0
MESSAGE_SET_ENTRY_OVERHEAD: int = INT64.size + INT32.size


class TopicAndPartition(NamedTuple):
    topic: str
    partition: int


@dataclass(frozen=True)
class Message:
    """A single message with an optional key."""

    value: bytes | None
    key: bytes | None = None
    attributes: int = 0

    @property
    def size_in_bytes(self) -> int:
        return INT32.size + INT8.size + INT8.size + bytes_length(self.key) + bytes_length(self.value)

    def _content(self) -> bytes:
        content = ByteBuffer.allocate(self.size_in_bytes - INT32.size)
        content.put_int8(MAGIC_VALUE)
        content.put_int8(self.attributes)
        content.put_bytes(self.key)
        content.put_bytes(self.value)
        return content.getvalue()

    def write_to(self, buffer: ByteBuffer) -> None:
        content = self._content()
        crc = zlib.crc32(content) & 0xFFFFFFFF
        buffer.put_int32(crc - (1 << 32) if crc >= (1 << 31) else crc)
        buffer.put_raw(content)

    @classmethod
    def read_from(cls, buffer: ByteBuffer, size: int) -> Message:
        """
        Read a message of size bytes and verify its checksum.

        Raises:
            MalformedInputError: On truncation or checksum mismatch.
        """
        if size < INT32.size + INT8.size * 2:
            raise MalformedInputError(f"Message size {size} is too small")
        crc = buffer.get_int32() & 0xFFFFFFFF
        content = ByteBuffer.wrap(buffer.get_raw(size - INT32.size))
        actual = zlib.crc32(content.getvalue()) & 0xFFFFFFFF
        if crc != actual:
            raise MalformedInputError(
                f"Message checksum mismatch: stored 0x{crc:08X}, computed 0x{actual:08X}"
            )
        magic = content.get_int8()
        if magic != MAGIC_VALUE:
            raise MalformedInputError(f"Unsupported message magic value: {magic}")
        attributes = content.get_int8()
        key = content.get_bytes()
        value = content.get_bytes()
        if content.remaining:
            raise MalformedInputError(f"{content.remaining} trailing bytes in message")
        return cls(value, key, attributes)


def message_set_size(messages: Iterable[Message]) -> int:
    return sum(MESSAGE_SET_ENTRY_OVERHEAD + m.size_in_bytes for m in messages)


def write_message_set(buffer: ByteBuffer, messages: Iterable[Message]) -> None:
    # Offsets are assigned by the broker; producers send 0.
    for message in messages:
        buffer.put_int64(0)
        buffer.put_int32(message.size_in_bytes)
        message.write_to(buffer)


def read_message_set(buffer: ByteBuffer, size: int) -> tuple[Message, ...]:
    if size < 0:
        raise MalformedInputError(f"Invalid message set size: {size}")
    data = ByteBuffer.wrap(buffer.get_raw(size))
    messages = []
    while data.remaining:
        data.get_int64()
        message_size = data.get_int32()
        messages.append(Message.read_from(data, message_size))
    return tuple(messages)


@dataclass(frozen=True)
class ProducerRequest(Request):
    """
    A batch of messages for one or more topic partitions.

    required_acks of 0 means the broker sends no response.

    Example:
        >>> request = ProducerRequest.create(
        ...     {TopicAndPartition("orders", 0): [Message(b"hello")]},
        ...     client_id="billing",
        ...     required_acks=1,
        ... )
    """

    request_type = RequestType.PRODUCE

    correlation_id: int
    client_id: str
    required_acks: int
    ack_timeout_ms: int
    data: Mapping[TopicAndPartition, tuple[Message, ...]] = field(default_factory=dict)
    version_id: int = CURRENT_VERSION

    # Holds a dict; equal requests compare equal but are not hashable.
    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        normalized = {
            TopicAndPartition(*tp): tuple(messages)
            for tp, messages in sorted(self.data.items(), key=lambda item: tuple(item[0]))
        }
        object.__setattr__(self, "data", normalized)

    @classmethod
    def create(
        cls,
        data: Mapping[TopicAndPartition, Iterable[Message]],
        *,
        client_id: str = "",
        required_acks: int = 1,
        ack_timeout_ms: int = 1500,
        correlation_id: int = 0,
    ) -> ProducerRequest:
        return cls(
            correlation_id=correlation_id,
            client_id=client_id,
            required_acks=required_acks,
            ack_timeout_ms=ack_timeout_ms,
            data={tp: tuple(messages) for tp, messages in data.items()},
        )

    def _topics(self):
        return groupby(self.data.items(), key=lambda item: item[0].topic)

    @property
    def number_of_messages(self) -> int:
        return sum(len(messages) for messages in self.data.values())

    @property
    def size_in_bytes(self) -> int:
        size = (
            INT16.size  # version
            + INT32.size  # correlation id
            + short_string_length(self.client_id)
            + INT16.size  # required acks
            + INT32.size  # ack timeout
            + INT32.size  # topic count
        )
        for topic, partitions in self._topics():
            size += short_string_length(topic) + INT32.size
            for _, messages in partitions:
                size += INT32.size + INT32.size + message_set_size(messages)
        return size

    def write_to(self, buffer: ByteBuffer) -> None:
        buffer.put_int16(self.version_id)
        buffer.put_int32(self.correlation_id)
        buffer.put_short_string(self.client_id)
        buffer.put_int16(self.required_acks)
        buffer.put_int32(self.ack_timeout_ms)
        grouped = [(topic, list(partitions)) for topic, partitions in self._topics()]
        buffer.put_int32(len(grouped))
        for topic, partitions in grouped:
            buffer.put_short_string(topic)
            buffer.put_int32(len(partitions))
            for tp, messages in partitions:
                buffer.put_int32(tp.partition)
                buffer.put_int32(message_set_size(messages))
                write_message_set(buffer, messages)

    @classmethod
    def read_from(cls, buffer: ByteBuffer) -> ProducerRequest:
        version_id = buffer.get_int16()
        correlation_id = buffer.get_int32()
        client_id = buffer.get_short_string()
        required_acks = buffer.get_int16()
        ack_timeout_ms = buffer.get_int32()
        data: dict[TopicAndPartition, tuple[Message, ...]] = {}
        for _ in range(_read_count(buffer, "topic")):
            topic = buffer.get_short_string()
            for _ in range(_read_count(buffer, "partition")):
                partition = buffer.get_int32()
                set_size = buffer.get_int32()
                data[TopicAndPartition(topic, partition)] = read_message_set(buffer, set_size)
        return cls(
            correlation_id=correlation_id,
            client_id=client_id,
            required_acks=required_acks,
            ack_timeout_ms=ack_timeout_ms,
            data=data,
            version_id=version_id,
        )

    def __str__(self) -> str:
        return (
            f"ProducerRequest(version={self.version_id}, correlation_id={self.correlation_id}, "
            f"client_id={self.client_id!r}, required_acks={self.required_acks}, "
            f"ack_timeout_ms={self.ack_timeout_ms}, partitions={len(self.data)}, "
            f"messages={self.number_of_messages})"
        )


@dataclass(frozen=True)
class ProducerResponseStatus:
    error: int
    offset: int


@dataclass(frozen=True)
class ProducerResponse:
    """Acknowledgement for a ProducerRequest, per topic partition."""

    correlation_id: int
    status: Mapping[TopicAndPartition, ProducerResponseStatus] = field(default_factory=dict)

    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", dict(sorted(self.status.items(), key=lambda item: tuple(item[0]))))

    @property
    def has_error(self) -> bool:
        return any(s.error != ErrorCode.NO_ERROR for s in self.status.values())

    def errors(self) -> dict[TopicAndPartition, int]:
        """Error codes of the partitions that failed."""
        return {
            tp: s.error for tp, s in self.status.items() if s.error != ErrorCode.NO_ERROR
        }

    def raise_for_error(self) -> None:
        """Raise KafkaError for the first failed partition, if any."""
        for tp, code in self.errors().items():
            raise KafkaError(
                code, f"Produce to {tp.topic}-{tp.partition} failed: {ErrorCode.describe(code)}"
            )

    @property
    def size_in_bytes(self) -> int:
        size = INT32.size + INT32.size
        for topic, partitions in groupby(self.status.items(), key=lambda item: item[0].topic):
            size += short_string_length(topic) + INT32.size
            size += sum(INT32.size + INT16.size + INT64.size for _ in partitions)
        return size

    def write_to(self, buffer: ByteBuffer) -> None:
        buffer.put_int32(self.correlation_id)
        grouped = [
            (topic, list(partitions))
            for topic, partitions in groupby(self.status.items(), key=lambda item: item[0].topic)
        ]
        buffer.put_int32(len(grouped))
        for topic, partitions in grouped:
            buffer.put_short_string(topic)
            buffer.put_int32(len(partitions))
            for tp, status in partitions:
                buffer.put_int32(tp.partition)
                buffer.put_int16(status.error)
                buffer.put_int64(status.offset)

    @classmethod
    def read_from(cls, buffer: ByteBuffer) -> ProducerResponse:
        correlation_id = buffer.get_int32()
        status: dict[TopicAndPartition, ProducerResponseStatus] = {}
        for _ in range(_read_count(buffer, "topic")):
            topic = buffer.get_short_string()
            for _ in range(_read_count(buffer, "partition")):
                partition = buffer.get_int32()
                error = buffer.get_int16()
                offset = buffer.get_int64()
                status[TopicAndPartition(topic, partition)] = ProducerResponseStatus(error, offset)
        return cls(correlation_id, status)

    @classmethod
    def from_payload(cls, payload: bytes) -> ProducerResponse:
        buffer = ByteBuffer.wrap(payload)
        response = cls.read_from(buffer)
        if buffer.remaining:
            raise MalformedInputError(f"{buffer.remaining} trailing bytes after producer response")
        return response


def _read_count(buffer: ByteBuffer, what: str) -> int:
    count = buffer.get_int32()
    if count < 0:
        raise MalformedInputError(f"Invalid {what} count: {count}")
    return count
