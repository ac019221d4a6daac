# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for SyncProducer."""

from __future__ import annotations

import logging
import threading
import time

import pytest

from pykafkasync.channel import ConnectionState
from pykafkasync.codec import ByteBuffer
from pykafkasync.exceptions import ClosedError, ConnectError, EncodingError, MalformedInputError, TransportError
from pykafkasync.metadata import TopicMetadataRequest
from pykafkasync.models import SyncProducerConfig
from pykafkasync.produce import Message, ProducerRequest, TopicAndPartition
from pykafkasync.producer import SyncProducer
from pykafkasync.protocol import HEADER_SIZE, Request, RequestType


class RecordingStats:
    def __init__(self) -> None:
        self.records: list[tuple[str, int, int]] = []

    def record(self, broker_info: str, request_size: int, elapsed_ms: int) -> None:
        self.records.append((broker_info, request_size, elapsed_ms))


class EchoChannel:
    """
    Channel that answers each request with its own body.

    Sleeps between steps so unsynchronized callers would interleave.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.connected = False
        self.connects = 0
        self.frames: list[bytes] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._pending: bytes | None = None
        self._guard = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self.connected

    def connect(self) -> None:
        self.connects += 1
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False

    def send(self, frame: bytes) -> int:
        with self._guard:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        time.sleep(self.delay)
        self.frames.append(frame)
        self._pending = frame[HEADER_SIZE:]
        time.sleep(self.delay)
        return len(frame)

    def receive(self) -> bytes:
        time.sleep(self.delay)
        payload, self._pending = self._pending, None
        with self._guard:
            self.in_flight -= 1
        return payload


class BrokenChannel(EchoChannel):
    """Channel whose sends fail and whose disconnect fails too."""

    def send(self, frame: bytes) -> int:
        raise TransportError("connection reset")

    def disconnect(self) -> None:
        self.connected = False
        raise RuntimeError("socket already gone")


class FailingStats:
    def record(self, broker_info: str, request_size: int, elapsed_ms: int) -> None:
        raise RuntimeError("stats backend down")


class UnencodableRequest(Request):
    """Request whose body cannot be written."""

    request_type = RequestType.METADATA

    @property
    def size_in_bytes(self) -> int:
        return 2

    def write_to(self, buffer: ByteBuffer) -> None:
        raise EncodingError("cannot encode")


def make_producer(port: int = 9092, **kwargs) -> SyncProducer:
    config = SyncProducerConfig(host="127.0.0.1", port=port, request_timeout_ms=2000)
    kwargs.setdefault("stats", RecordingStats())
    return SyncProducer(config, **kwargs)


def produce_request(required_acks: int = 1) -> ProducerRequest:
    return ProducerRequest.create(
        {TopicAndPartition("orders", 0): [Message(b"order-1")]},
        client_id="test",
        required_acks=required_acks,
        correlation_id=5,
    )


class TestSendTopicMetadataRequest:
    """Tests for send_topic_metadata_request."""

    def test_metadata(self, broker) -> None:
        """Test a metadata request is answered and decoded."""
        with make_producer(broker.port) as producer:
            response = producer.send_topic_metadata_request(
                TopicMetadataRequest.create(["orders", "payments"])
            )

        assert response.error_code == 0
        assert [t.topic for t in response.topics] == ["orders", "payments"]
        assert response.topics[0].partitions[0].leader_id == 1

    def test_lazy_connect(self, broker) -> None:
        """Test no connection is made before the first request."""
        producer = make_producer(broker.port)
        assert producer.channel.state == ConnectionState.DISCONNECTED
        producer.send_topic_metadata_request(TopicMetadataRequest.create(["a"]))
        assert producer.channel.state == ConnectionState.CONNECTED
        producer.close()


class TestSendProduceRequest:
    """Tests for send_produce_request."""

    def test_acknowledged(self, broker) -> None:
        """Test a request with acks waits for and decodes the response."""
        stats = RecordingStats()
        with make_producer(broker.port, stats=stats) as producer:
            request = produce_request()
            ack = producer.send_produce_request(request)

        assert ack is not None
        assert ack.correlation_id == 5
        assert not ack.has_error
        assert ack.status[TopicAndPartition("orders", 0)].offset == 100
        assert len(stats.records) == 1
        broker_info, size, elapsed = stats.records[0]
        assert broker_info == f"host_127.0.0.1-port_{broker.port}"
        assert size == request.size_in_bytes
        assert elapsed >= 0

    def test_fire_and_forget(self) -> None:
        """Test acks=0 sends without reading a response."""
        channel = EchoChannel()
        channel.receive = None  # type: ignore[assignment]
        stats = RecordingStats()
        producer = make_producer(channel=channel, stats=stats)

        assert producer.send_produce_request(produce_request(required_acks=0)) is None
        assert len(channel.frames) == 1
        assert len(stats.records) == 1

    def test_fire_and_forget_then_metadata(self, broker) -> None:
        """Test an unanswered request leaves the stream aligned."""
        with make_producer(broker.port) as producer:
            assert producer.send_produce_request(produce_request(required_acks=0)) is None
            response = producer.send_topic_metadata_request(TopicMetadataRequest.create(["a"]))

        assert [t.topic for t in response.topics] == ["a"]

    def test_stats_recorded_on_failure(self) -> None:
        """Test stats are recorded even when the send fails."""
        stats = RecordingStats()
        producer = make_producer(channel=BrokenChannel(), stats=stats)
        with pytest.raises(TransportError):
            producer.send_produce_request(produce_request())
        assert len(stats.records) == 1

    def test_failing_stats_keeps_original_error(self, caplog) -> None:
        """Test a raising stats sink neither hides a send error nor fails a send."""
        producer = make_producer(channel=BrokenChannel(), stats=FailingStats())
        with caplog.at_level(logging.ERROR, logger="pykafkasync.producer"):
            with pytest.raises(TransportError, match="connection reset"):
                producer.send_produce_request(produce_request())
        assert "Failed to record request stats" in caplog.text

        producer = make_producer(channel=EchoChannel(), stats=FailingStats())
        assert producer.send_produce_request(produce_request(required_acks=0)) is None


class TestFailureHandling:
    """Tests for disconnect-on-failure semantics."""

    def test_transport_error_disconnects_then_reconnects(self, broker) -> None:
        """Test the next dispatch after a transport error reconnects."""
        producer = make_producer(broker.port)
        request = TopicMetadataRequest.create(["orders"])
        producer.send_topic_metadata_request(request)

        broker.hang_ups = 1
        with pytest.raises(TransportError):
            producer.send_topic_metadata_request(request)
        assert producer.channel.state == ConnectionState.DISCONNECTED

        response = producer.send_topic_metadata_request(request)
        assert producer.channel.state == ConnectionState.CONNECTED
        assert [t.topic for t in response.topics] == ["orders"]
        producer.close()

    def test_truncated_response_disconnects(self) -> None:
        """Test a truncated response frame also drops the connection."""

        class TruncatingChannel(EchoChannel):
            def receive(self) -> bytes:
                raise MalformedInputError("Incomplete frame: got 3 bytes, expected 16")

        channel = TruncatingChannel()
        producer = make_producer(channel=channel)
        with pytest.raises(MalformedInputError, match="Incomplete frame"):
            producer.dispatch(TopicMetadataRequest.create(["a"]))
        assert not channel.is_connected

        producer.dispatch(TopicMetadataRequest.create(["a"]), expect_response=False)
        assert channel.connects == 2

    def test_garbled_response_keeps_connection(self, broker) -> None:
        """Test a complete but undecodable frame does not drop the connection."""
        broker.responder = lambda frame: b"\x00"
        producer = make_producer(broker.port)
        with pytest.raises(MalformedInputError):
            producer.send_topic_metadata_request(TopicMetadataRequest.create(["a"]))
        assert producer.channel.state == ConnectionState.CONNECTED
        producer.close()

    def test_connect_error(self, unused_port) -> None:
        """Test a failed connect propagates and leaves the channel disconnected."""
        producer = make_producer(unused_port)
        with pytest.raises(ConnectError):
            producer.dispatch(TopicMetadataRequest.create(["a"]))
        assert producer.channel.state == ConnectionState.DISCONNECTED

    def test_teardown_failure_is_logged(self, caplog) -> None:
        """Test a failing disconnect never replaces the original error."""
        channel = BrokenChannel()
        producer = make_producer(channel=channel)

        with caplog.at_level(logging.ERROR, logger="pykafkasync.producer"):
            with pytest.raises(TransportError, match="connection reset"):
                producer.dispatch(TopicMetadataRequest.create(["a"]))

        assert "Error on disconnect" in caplog.text
        assert not channel.is_connected

    def test_invalid_host_raises_connect_error(self) -> None:
        """Test a host name that cannot even be encoded fails as ConnectError."""
        config = SyncProducerConfig(host="a" * 64 + ".example", request_timeout_ms=2000)
        producer = SyncProducer(config, stats=RecordingStats())
        with pytest.raises(ConnectError):
            producer.dispatch(TopicMetadataRequest.create(["a"]))
        assert producer.channel.state == ConnectionState.DISCONNECTED


class TestClose:
    """Tests for close and the context manager."""

    def test_dispatch_after_close(self) -> None:
        """Test a closed producer refuses requests."""
        channel = EchoChannel()
        producer = make_producer(channel=channel)
        producer.close()

        with pytest.raises(ClosedError):
            producer.dispatch(TopicMetadataRequest.create(["a"]))
        assert channel.connects == 0
        assert producer.is_closed

    def test_closed_checked_before_encoding(self) -> None:
        """Test a closed producer refuses a request before encoding it."""
        channel = EchoChannel()
        producer = make_producer(channel=channel)
        with pytest.raises(EncodingError):
            producer.dispatch(UnencodableRequest())
        assert channel.connects == 0

        producer.close()
        with pytest.raises(ClosedError):
            producer.dispatch(UnencodableRequest())

    def test_close_idempotent(self, broker) -> None:
        """Test close can be called repeatedly."""
        producer = make_producer(broker.port)
        producer.send_topic_metadata_request(TopicMetadataRequest.create(["a"]))
        producer.close()
        producer.close()
        assert producer.channel.state == ConnectionState.DISCONNECTED

    def test_context_manager_closes(self) -> None:
        channel = EchoChannel()
        with make_producer(channel=channel) as producer:
            producer.dispatch(TopicMetadataRequest.create(["a"]))
            assert channel.connected
        assert not channel.connected
        assert producer.is_closed


class TestConcurrency:
    """Tests for mutual exclusion across callers."""

    def _run_threads(self, producer: SyncProducer, count: int) -> dict[int, tuple[bytes, bytes]]:
        results: dict[int, tuple[bytes, bytes]] = {}
        errors: list[BaseException] = []

        def worker(i: int) -> None:
            try:
                request = TopicMetadataRequest.create([f"topic-{i}"] * (i % 3 + 1))
                expected = request.to_frame()[HEADER_SIZE:]
                results[i] = (expected, producer.dispatch(request))
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
        assert not errors
        return results

    def test_no_interleaving_with_delays(self) -> None:
        """Test each caller gets its own response despite scheduling delays."""
        channel = EchoChannel(delay=0.002)
        producer = make_producer(channel=channel)

        results = self._run_threads(producer, 16)

        assert len(results) == 16
        for expected, actual in results.values():
            assert actual == expected
        assert channel.max_in_flight == 1
        assert channel.connects == 1

    def test_no_interleaving_over_socket(self, broker) -> None:
        """Test concurrent callers over a real connection."""
        broker.responder = lambda frame: frame[HEADER_SIZE:]
        with make_producer(broker.port) as producer:
            results = self._run_threads(producer, 24)

        for expected, actual in results.values():
            assert actual == expected


class TestVerification:
    """Tests for debug-level request verification."""

    def test_debug_logs_decoded_request(self, caplog) -> None:
        """Test requests are decoded and logged when debug is on."""
        producer = make_producer(channel=EchoChannel())
        with caplog.at_level(logging.DEBUG, logger="pykafkasync.producer"):
            producer.send_produce_request(produce_request(required_acks=0))
        assert "ProducerRequest(" in caplog.text
        assert "Skipping reading response" in caplog.text
