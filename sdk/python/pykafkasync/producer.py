# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Synchronous producer bound to a single broker.

SyncProducer owns one BlockingChannel and sends one request at a time over
it. The connection carries no request ids, so a request and its response
must never interleave with another caller's; every dispatch holds the
producer lock from connect to the end of the response.

Usage Patterns:

    # Pattern 1: Context manager (recommended)
    from pykafkasync import SyncProducer, SyncProducerConfig
    with SyncProducer(SyncProducerConfig(host="localhost")) as producer:
        metadata = producer.send_topic_metadata_request(
            TopicMetadataRequest.create(["orders"])
        )

    # Pattern 2: Explicit lifecycle management
    producer = SyncProducer(SyncProducerConfig(host="localhost"))
    try:
        ack = producer.send_produce_request(request)
    finally:
        producer.close()

There is no retry loop. After a TransportError the channel is already
disconnected, and the next call reconnects.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

from .channel import BlockingChannel
from .exceptions import ClosedError, MalformedInputError, TransportError
from .metadata import TopicMetadataRequest, TopicMetadataResponse
from .models import SyncProducerConfig
from .produce import ProducerRequest, ProducerResponse
from .protocol import Request, RequestType, parse_frame
from .stats import ProducerRequestStatsRegistry, RequestStatsSink

LOG = logging.getLogger(__name__)


class SyncProducer:
    """
    Blocking request/response client for one broker.

    Thread-safe: concurrent callers are serialized on an internal lock.

    Example:
        >>> producer = SyncProducer(SyncProducerConfig(host="localhost", port=9092))
        >>> response = producer.send_topic_metadata_request(
        ...     TopicMetadataRequest.create(["orders"])
        ... )
        >>> response.error_code
        0
        >>> producer.close()
    """

    def __init__(
        self,
        config: SyncProducerConfig,
        *,
        channel: BlockingChannel | None = None,
        stats: RequestStatsSink | None = None,
    ) -> None:
        """
        Initialize the producer. No connection is made until the first request.

        Args:
            config: Target broker and socket settings.
            channel: Channel to use instead of one built from config.
            stats: Sink for request size and latency. Defaults to the
                registered stats for config.client_id.
        """
        LOG.debug("Instantiating sync producer for %s:%s", config.host, config.port)
        self.config = config
        self.broker_info = config.broker_info
        self._channel = channel or BlockingChannel(
            config.host,
            config.port,
            read_buffer_size=config.receive_buffer_bytes,
            write_buffer_size=config.send_buffer_bytes,
            read_timeout_ms=config.request_timeout_ms,
            connect_timeout_ms=config.connect_timeout_ms,
        )
        self._stats = stats if stats is not None else ProducerRequestStatsRegistry.get(config.client_id)
        self._lock = threading.Lock()
        self._shutdown = False

    @property
    def channel(self) -> BlockingChannel:
        return self._channel

    @property
    def is_closed(self) -> bool:
        return self._shutdown

    def dispatch(self, request: Request, expect_response: bool = True) -> bytes | None:
        """
        Send one request and optionally wait for its response.

        Args:
            request: Request to frame and send.
            expect_response: Whether the broker answers this request.

        Returns:
            Response payload without its length prefix, or None when no
            response is expected.

        Raises:
            ClosedError: If the producer has been closed.
            EncodingError: If the request cannot be encoded.
            ConnectError: If the broker cannot be reached.
            TransportError: If I/O fails; the channel is disconnected first.
            MalformedInputError: If the response frame is truncated; the
                channel is disconnected first.
        """
        with self._lock:
            if self._shutdown:
                raise ClosedError()
            frame = request.to_frame()
            self._get_or_make_connection()
            self._verify_request(frame)

            try:
                self._channel.send(frame)
                if not expect_response:
                    LOG.debug("Skipping reading response")
                    return None
                return self._channel.receive()
            except (TransportError, MalformedInputError):
                # No way to tell whether the write reached the broker.
                self._disconnect()
                raise

    def send_produce_request(self, request: ProducerRequest) -> ProducerResponse | None:
        """
        Send a produce request.

        Returns:
            The broker's acknowledgement, or None when required_acks is 0.
        """
        expect_response = request.required_acks != 0
        start = time.monotonic()
        try:
            payload = self.dispatch(request, expect_response)
        finally:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            self._record_stats(request.size_in_bytes, elapsed_ms)

        if not expect_response:
            return None
        return ProducerResponse.from_payload(payload)

    def send_topic_metadata_request(self, request: TopicMetadataRequest) -> TopicMetadataResponse:
        """Send a topic metadata request and decode the response."""
        payload = self.dispatch(request)
        return TopicMetadataResponse.from_payload(payload)

    def close(self) -> None:
        """Disconnect and refuse further requests. Safe to call repeatedly."""
        with self._lock:
            self._disconnect()
            self._shutdown = True

    def __enter__(self) -> SyncProducer:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _verify_request(self, frame: bytes) -> None:
        # Only decodes when debug logging is on, so it costs nothing otherwise.
        if not LOG.isEnabledFor(logging.DEBUG):
            return
        LOG.debug("Verifying send buffer of size %d", len(frame))
        try:
            request_type, body = parse_frame(frame)
            if request_type == RequestType.PRODUCE:
                LOG.debug("%s", ProducerRequest.read_from(body))
            elif request_type == RequestType.METADATA:
                LOG.debug("%s", TopicMetadataRequest.read_from(body))
        except MalformedInputError:
            LOG.error("Request frame failed verification", exc_info=True)

    def _record_stats(self, request_size: int, elapsed_ms: int) -> None:
        try:
            self._stats.record(self.broker_info, request_size, elapsed_ms)
        except Exception:
            LOG.exception("Failed to record request stats for %s", self.broker_info)

    def _get_or_make_connection(self) -> None:
        if not self._channel.is_connected:
            self._connect()

    def _connect(self) -> None:
        try:
            self._channel.connect()
        except Exception:
            self._disconnect()
            LOG.error(
                "Producer connection to %s:%s unsuccessful", self.config.host, self.config.port, exc_info=True
            )
            raise
        LOG.info("Connected to %s:%s for producing", self.config.host, self.config.port)

    def _disconnect(self) -> None:
        """Best-effort disconnect; failures are logged, never raised."""
        try:
            if self._channel.is_connected:
                LOG.info("Disconnecting from %s:%s", self.config.host, self.config.port)
                self._channel.disconnect()
        except Exception:
            LOG.error("Error on disconnect from %s:%s", self.config.host, self.config.port, exc_info=True)
