# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
pykafkasync - Synchronous Kafka wire protocol client.

Encodes and decodes the broker wire protocol, keeps a local view of the
brokers in a cluster, and sends requests to a broker over one persistent
connection.

Topic Metadata:
    >>> from pykafkasync import SyncProducer, SyncProducerConfig, TopicMetadataRequest
    >>>
    >>> with SyncProducer(SyncProducerConfig(host="localhost", port=9092)) as producer:
    ...     response = producer.send_topic_metadata_request(
    ...         TopicMetadataRequest.create(["orders"])
    ...     )
    ...     for topic in response.topics:
    ...         print(topic.topic, len(topic.partitions))

Producing:
    >>> from pykafkasync import Message, ProducerRequest, TopicAndPartition
    >>>
    >>> request = ProducerRequest.create(
    ...     {TopicAndPartition("orders", 0): [Message(b"order-1", key=b"customer-7")]},
    ...     client_id="billing",
    ...     required_acks=1,
    ... )
    >>> ack = producer.send_produce_request(request)
    >>> ack.has_error
    False

Fire and forget (required_acks=0) returns None without reading a response.

Cluster View:
    >>> from pykafkasync import Broker, Cluster
    >>>
    >>> cluster = Cluster([Broker(1, "kafka-1", 9092), Broker(2, "kafka-2", 9092)])
    >>> leader = response.topics[0].partitions[0].leader(cluster)

Failures:
    There is no retry loop. ConnectError and TransportError propagate to
    the caller; after a TransportError the producer has already dropped the
    connection and the next request reconnects.
"""

from .channel import BlockingChannel, ConnectionState
from .cluster import Broker, Cluster
from .codec import ByteBuffer, read_short_string, short_string_length, write_short_string
from .exceptions import (
    BufferOverflowError,
    ClosedError,
    ConnectError,
    EncodingError,
    ErrorCode,
    KafkaClientError,
    KafkaError,
    MalformedInputError,
    TransportError,
)
from .metadata import (
    DetailedMetadataRequest,
    PartitionMetadata,
    SegmentMetadata,
    TopicMetadata,
    TopicMetadataRequest,
    TopicMetadataResponse,
)
from .models import SyncProducerConfig
from .produce import (
    Message,
    ProducerRequest,
    ProducerResponse,
    ProducerResponseStatus,
    TopicAndPartition,
)
from .producer import SyncProducer
from .protocol import Request, RequestType
from .stats import (
    ProducerRequestStats,
    ProducerRequestStatsRegistry,
    RequestMetrics,
    RequestStat,
)

__version__ = "0.8.0"
__author__ = "Firefly Software Solutions Inc."
__license__ = "Apache-2.0"

__all__ = [
    # Producer
    "SyncProducer",
    "SyncProducerConfig",
    # Channel
    "BlockingChannel",
    "ConnectionState",
    # Cluster
    "Broker",
    "Cluster",
    # Codec
    "ByteBuffer",
    "read_short_string",
    "write_short_string",
    "short_string_length",
    # Protocol
    "Request",
    "RequestType",
    "DetailedMetadataRequest",
    "SegmentMetadata",
    "TopicMetadataRequest",
    "TopicMetadataResponse",
    "TopicMetadata",
    "PartitionMetadata",
    "Message",
    "ProducerRequest",
    "ProducerResponse",
    "ProducerResponseStatus",
    "TopicAndPartition",
    # Stats
    "ProducerRequestStats",
    "ProducerRequestStatsRegistry",
    "RequestMetrics",
    "RequestStat",
    # Exceptions
    "KafkaClientError",
    "MalformedInputError",
    "EncodingError",
    "ConnectError",
    "TransportError",
    "ClosedError",
    "KafkaError",
    "ErrorCode",
    "BufferOverflowError",
]
