# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Shared fixtures: an in-process broker speaking the request framing."""

from __future__ import annotations

import socketserver
import threading
from typing import Callable, Iterator

import pytest

from pykafkasync.codec import ByteBuffer
from pykafkasync.exceptions import MalformedInputError
from pykafkasync.metadata import (
    PartitionMetadata,
    TopicMetadata,
    TopicMetadataRequest,
    TopicMetadataResponse,
)
from pykafkasync.produce import ProducerRequest, ProducerResponse, ProducerResponseStatus
from pykafkasync.protocol import RequestType, parse_frame, write_frame

Responder = Callable[[bytes], "bytes | None"]


class HangUp(Exception):
    """Raised by a responder to make the broker drop the connection."""


def metadata_payload(request: TopicMetadataRequest) -> bytes:
    response = TopicMetadataResponse(
        topics=tuple(
            TopicMetadata(topic, (PartitionMetadata(0, leader_id=1, replicas=(1, 2), isr=(1,)),))
            for topic in request.topics
        )
    )
    buffer = ByteBuffer.allocate(response.size_in_bytes)
    response.write_to(buffer)
    # Drop the length field; the frame prefix carries it.
    return buffer.getvalue()[4:]


def produce_payload(request: ProducerRequest) -> bytes | None:
    if request.required_acks == 0:
        return None
    response = ProducerResponse(
        request.correlation_id,
        {tp: ProducerResponseStatus(0, 100 + tp.partition) for tp in request.data},
    )
    buffer = ByteBuffer.allocate(response.size_in_bytes)
    response.write_to(buffer)
    return buffer.getvalue()


def default_responder(frame: bytes) -> bytes | None:
    request_type, body = parse_frame(frame)
    if request_type == RequestType.METADATA:
        return metadata_payload(TopicMetadataRequest.read_from(body))
    if request_type == RequestType.PRODUCE:
        return produce_payload(ProducerRequest.read_from(body))
    raise HangUp()


class _BrokerHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        server: FakeBroker = self.server  # type: ignore[assignment]
        while True:
            prefix = self.rfile.read(4)
            if len(prefix) < 4:
                return
            body = self.rfile.read(int.from_bytes(prefix, "big", signed=True))
            frame = prefix + body
            server.frames.append(frame)
            if server.hang_ups > 0:
                server.hang_ups -= 1
                return
            try:
                payload = server.responder(frame)
            except HangUp:
                return
            except MalformedInputError:
                return
            if payload is not None:
                write_frame(self.wfile, payload)
                self.wfile.flush()


class FakeBroker(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), _BrokerHandler)
        self.responder: Responder = default_responder
        self.frames: list[bytes] = []
        # Number of upcoming requests to answer by closing the connection.
        self.hang_ups = 0

    @property
    def port(self) -> int:
        return self.server_address[1]


@pytest.fixture
def broker() -> Iterator[FakeBroker]:
    """A broker listening on an ephemeral localhost port."""
    server = FakeBroker()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def unused_port() -> int:
    """A localhost port with nothing listening on it."""
    import socket

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
