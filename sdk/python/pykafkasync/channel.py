# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
A blocking, length-prefixed channel to a single broker.

The channel has no locking of its own; SyncProducer serializes access.
"""

from __future__ import annotations

import logging
import socket
from enum import Enum
from typing import BinaryIO

from .codec import INT32
from .exceptions import ConnectError, TransportError
from .models import USE_DEFAULT_BUFFER_SIZE
from .protocol import read_frame

LOG = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class BlockingChannel:
    """
    Socket channel that sends one framed request and reads one framed response.

    Example:
        >>> channel = BlockingChannel("localhost", 9092)
        >>> channel.connect()
        >>> channel.send(TopicMetadataRequest.create(["orders"]).to_frame())
        >>> payload = channel.receive()
        >>> channel.disconnect()
    """

    def __init__(
        self,
        host: str,
        port: int,
        read_buffer_size: int = USE_DEFAULT_BUFFER_SIZE,
        write_buffer_size: int = USE_DEFAULT_BUFFER_SIZE,
        read_timeout_ms: int = 10000,
        connect_timeout_ms: int | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.read_buffer_size = read_buffer_size
        self.write_buffer_size = write_buffer_size
        self.read_timeout_ms = read_timeout_ms
        self.connect_timeout_ms = connect_timeout_ms or read_timeout_ms
        self._sock: socket.socket | None = None
        self._reader: BinaryIO | None = None

    @property
    def state(self) -> ConnectionState:
        if self._sock is None:
            return ConnectionState.DISCONNECTED
        return ConnectionState.CONNECTED

    @property
    def is_connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> None:
        """
        Open the socket, trying every address the host resolves to.

        Does nothing if already connected.

        Raises:
            ConnectError: If no address accepts the connection.
        """
        if self._sock is not None:
            return

        try:
            addrs = socket.getaddrinfo(self.host, self.port, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except (OSError, UnicodeError) as e:
            raise ConnectError(f"Failed to resolve {self.host}: {e}", self.host, self.port) from e

        last_error: Exception | None = None
        for family, socktype, proto, _canonname, sockaddr in addrs:
            sock = None
            try:
                sock = socket.socket(family, socktype, proto)
                self._configure(sock)
                sock.settimeout(self.connect_timeout_ms / 1000.0)
                sock.connect(sockaddr)
                sock.settimeout(self.read_timeout_ms / 1000.0)
            except OSError as e:
                last_error = e
                if sock:
                    sock.close()
                continue

            self._sock = sock
            self._reader = sock.makefile("rb")
            LOG.debug("Connected to %s:%s via %s", self.host, self.port, sockaddr)
            return

        raise ConnectError(
            f"Failed to connect to {self.host}:{self.port}: {last_error}", self.host, self.port
        ) from last_error

    def _configure(self, sock: socket.socket) -> None:
        if self.read_buffer_size > 0:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, self.read_buffer_size)
        if self.write_buffer_size > 0:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, self.write_buffer_size)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    def disconnect(self) -> None:
        """Close the socket. Does nothing if already disconnected."""
        sock, reader = self._sock, self._reader
        self._sock = None
        self._reader = None
        if sock is None:
            return
        try:
            if reader is not None:
                reader.close()
        finally:
            sock.close()

    def send(self, frame: bytes) -> int:
        """
        Write one frame that already carries its 4-byte length prefix.

        Returns:
            Number of bytes written.

        Raises:
            ValueError: If the length prefix does not match the frame.
            TransportError: If the channel is not connected or the write fails.
        """
        if len(frame) < INT32.size or INT32.unpack_from(frame)[0] != len(frame) - INT32.size:
            raise ValueError("Frame length prefix does not match frame size")
        sock = self._require_connected()
        try:
            sock.sendall(frame)
        except OSError as e:
            raise TransportError(f"Failed to send to {self.host}:{self.port}: {e}") from e
        return len(frame)

    def receive(self) -> bytes:
        """
        Read one length-prefixed frame and return its payload.

        Raises:
            MalformedInputError: If the stream ends before the frame is complete.
            TransportError: If the channel is not connected or the read fails.
        """
        self._require_connected()
        try:
            return read_frame(self._reader)
        except EOFError as e:
            raise TransportError(f"Connection to {self.host}:{self.port} closed by broker") from e
        except OSError as e:
            raise TransportError(f"Failed to receive from {self.host}:{self.port}: {e}") from e

    def _require_connected(self) -> socket.socket:
        if self._sock is None:
            raise TransportError(f"Channel to {self.host}:{self.port} is not connected")
        return self._sock

    def __repr__(self) -> str:
        return f"BlockingChannel({self.host}:{self.port}, {self.state.value})"
