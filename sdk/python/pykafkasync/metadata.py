# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Topic metadata request and response.

Request body:
    [4B topic_count]
      [2B topic_len][topic]
    [2B detail_mode]
    [8B timestamp][4B segment_count]      (only when detail_mode = 1)

Response:
    [4B length][2B error_code]
    [4B topic_count]
      [2B error_code][2B topic_len][topic]
      [4B partition_count]
        [2B error_code][4B partition][4B leader]
        [4B replica_count][4B replica]*
        [4B isr_count][4B isr]*
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Iterable

from .codec import INT16, INT32, INT64, ByteBuffer, short_string_length
from .exceptions import ErrorCode, KafkaError, MalformedInputError
from .protocol import Request, RequestType

if TYPE_CHECKING:
    from .cluster import Broker, Cluster

NO_LEADER: int = -1


class DetailedMetadataRequest(IntEnum):
    """Whether segment-level metadata is requested."""

    NONE = 0
    SEGMENT = 1


@dataclass(frozen=True)
class SegmentMetadata:
    """Segment details requested alongside topic metadata."""

    timestamp: int = 0
    count: int = 0


@dataclass(frozen=True)
class TopicMetadataRequest(Request):
    """
    Request for the metadata of one or more topics.

    Use create() for plain topic metadata or create_with_metadata() to also
    ask for segment details.

    Example:
        >>> request = TopicMetadataRequest.create(["orders"])
        >>> request.to_frame().hex()
        '0000001000030000000100066f72646572730000'
    """

    request_type = RequestType.METADATA

    topics: tuple[str, ...]
    detail: SegmentMetadata | None = None

    def __post_init__(self) -> None:
        if self.topics is None:
            raise ValueError("List of topics cannot be None")
        if isinstance(self.topics, str):
            raise ValueError("Topics must be a sequence of names, not a single string")
        topics = tuple(self.topics)
        if not topics:
            raise ValueError("List of topics cannot be empty")
        object.__setattr__(self, "topics", topics)

    @classmethod
    def create(cls, topics: Iterable[str]) -> TopicMetadataRequest:
        """Request topic metadata with no segment information."""
        return cls(tuple(topics))

    @classmethod
    def create_with_metadata(
        cls, topics: Iterable[str], timestamp: int = 0, count: int = 0
    ) -> TopicMetadataRequest:
        """Request topic metadata including segment information."""
        return cls(tuple(topics), SegmentMetadata(timestamp, count))

    @property
    def detail_mode(self) -> DetailedMetadataRequest:
        if self.detail is None:
            return DetailedMetadataRequest.NONE
        return DetailedMetadataRequest.SEGMENT

    @property
    def size_in_bytes(self) -> int:
        size = INT32.size + sum(short_string_length(t) for t in self.topics) + INT16.size
        if self.detail is not None:
            size += INT64.size + INT32.size
        return size

    def write_to(self, buffer: ByteBuffer) -> None:
        buffer.put_int32(len(self.topics))
        for topic in self.topics:
            buffer.put_short_string(topic)
        buffer.put_int16(self.detail_mode)
        if self.detail is not None:
            buffer.put_int64(self.detail.timestamp)
            buffer.put_int32(self.detail.count)

    @classmethod
    def read_from(cls, buffer: ByteBuffer) -> TopicMetadataRequest:
        topic_count = buffer.get_int32()
        if topic_count < 0:
            raise MalformedInputError(f"Invalid topic count: {topic_count}")
        topics = tuple(buffer.get_short_string() for _ in range(topic_count))
        mode = buffer.get_int16()
        if mode == DetailedMetadataRequest.SEGMENT:
            detail = SegmentMetadata(buffer.get_int64(), buffer.get_int32())
        elif mode == DetailedMetadataRequest.NONE:
            detail = None
        else:
            raise MalformedInputError(f"Unknown detail mode: {mode}")
        try:
            return cls(topics, detail)
        except ValueError as e:
            raise MalformedInputError(str(e)) from e


@dataclass(frozen=True)
class PartitionMetadata:
    """Leader and replica assignment of one partition."""

    partition_id: int
    leader_id: int = NO_LEADER
    replicas: tuple[int, ...] = ()
    isr: tuple[int, ...] = ()
    error_code: int = ErrorCode.NO_ERROR

    def leader(self, cluster: Cluster) -> Broker | None:
        """Resolve the leader against the known brokers."""
        if self.leader_id == NO_LEADER:
            return None
        return cluster.get(self.leader_id)

    @property
    def size_in_bytes(self) -> int:
        return (
            INT16.size
            + INT32.size * 2
            + INT32.size * (1 + len(self.replicas))
            + INT32.size * (1 + len(self.isr))
        )

    def write_to(self, buffer: ByteBuffer) -> None:
        buffer.put_int16(self.error_code)
        buffer.put_int32(self.partition_id)
        buffer.put_int32(self.leader_id)
        buffer.put_int32(len(self.replicas))
        for replica in self.replicas:
            buffer.put_int32(replica)
        buffer.put_int32(len(self.isr))
        for replica in self.isr:
            buffer.put_int32(replica)

    @classmethod
    def read_from(cls, buffer: ByteBuffer) -> PartitionMetadata:
        error_code = buffer.get_int16()
        partition_id = buffer.get_int32()
        leader_id = buffer.get_int32()
        replicas = _read_int32_array(buffer, "replica")
        isr = _read_int32_array(buffer, "isr")
        return cls(partition_id, leader_id, replicas, isr, error_code)


@dataclass(frozen=True)
class TopicMetadata:
    """Partition layout of one topic."""

    topic: str
    partitions: tuple[PartitionMetadata, ...] = ()
    error_code: int = ErrorCode.NO_ERROR

    @property
    def size_in_bytes(self) -> int:
        return (
            INT16.size
            + short_string_length(self.topic)
            + INT32.size
            + sum(p.size_in_bytes for p in self.partitions)
        )

    def write_to(self, buffer: ByteBuffer) -> None:
        buffer.put_int16(self.error_code)
        buffer.put_short_string(self.topic)
        buffer.put_int32(len(self.partitions))
        for partition in self.partitions:
            partition.write_to(buffer)

    @classmethod
    def read_from(cls, buffer: ByteBuffer) -> TopicMetadata:
        error_code = buffer.get_int16()
        topic = buffer.get_short_string()
        partition_count = buffer.get_int32()
        if partition_count < 0:
            raise MalformedInputError(f"Invalid partition count: {partition_count}")
        partitions = tuple(PartitionMetadata.read_from(buffer) for _ in range(partition_count))
        return cls(topic, partitions, error_code)


@dataclass(frozen=True)
class TopicMetadataResponse:
    """
    Response to a TopicMetadataRequest.

    A nonzero error_code does not stop decoding; it is returned as data.
    Call raise_for_error() to turn it into a KafkaError.
    """

    topics: tuple[TopicMetadata, ...] = field(default_factory=tuple)
    error_code: int = ErrorCode.NO_ERROR

    @property
    def size_in_bytes(self) -> int:
        """Size including the leading length field."""
        return INT32.size + INT16.size + INT32.size + sum(t.size_in_bytes for t in self.topics)

    def write_to(self, buffer: ByteBuffer) -> None:
        buffer.put_int32(self.size_in_bytes - INT32.size)
        buffer.put_int16(self.error_code)
        buffer.put_int32(len(self.topics))
        for topic in self.topics:
            topic.write_to(buffer)

    @classmethod
    def read_from(cls, buffer: ByteBuffer) -> TopicMetadataResponse:
        """
        Decode a response that starts with its length field.

        Raises:
            MalformedInputError: On truncation, or when the declared length
                does not match the bytes consumed.
        """
        length = buffer.get_int32()
        start = buffer.position
        response = cls._read_body(buffer)
        consumed = buffer.position - start
        if consumed != length:
            raise MalformedInputError(
                f"Topic metadata response declares {length} bytes but {consumed} were decoded"
            )
        return response

    @classmethod
    def from_payload(cls, payload: bytes) -> TopicMetadataResponse:
        """Decode a response whose length prefix was already consumed."""
        buffer = ByteBuffer.wrap(payload)
        response = cls._read_body(buffer)
        if buffer.remaining:
            raise MalformedInputError(
                f"{buffer.remaining} trailing bytes after topic metadata response"
            )
        return response

    @classmethod
    def _read_body(cls, buffer: ByteBuffer) -> TopicMetadataResponse:
        error_code = buffer.get_int16()
        topic_count = buffer.get_int32()
        if topic_count < 0:
            raise MalformedInputError(f"Invalid topic count: {topic_count}")
        topics = tuple(TopicMetadata.read_from(buffer) for _ in range(topic_count))
        return cls(topics, error_code)

    def raise_for_error(self) -> None:
        """Raise KafkaError if the broker reported an error."""
        error = KafkaError.from_code(self.error_code)
        if error is not None:
            raise error


def _read_int32_array(buffer: ByteBuffer, what: str) -> tuple[int, ...]:
    count = buffer.get_int32()
    if count < 0:
        raise MalformedInputError(f"Invalid {what} count: {count}")
    return tuple(buffer.get_int32() for _ in range(count))
