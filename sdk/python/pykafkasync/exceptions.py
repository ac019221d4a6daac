# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Custom exceptions for the pykafkasync client.

Client-side failures inherit from KafkaClientError, making it easy to catch
every recoverable error raised by the client with a single except clause:

    try:
        producer.send_topic_metadata_request(request)
    except KafkaClientError as e:
        print(f"Request failed: {e}")

For more granular error handling, catch specific exception types:

    try:
        producer.send_produce_request(request)
    except ConnectError as e:
        print(f"Could not reach {e.host}:{e.port}")
    except TransportError:
        # The channel has already been disconnected; retrying reconnects.
        ...

Protocol error codes embedded in responses are returned as data. Use
KafkaError.from_code() (or response.raise_for_error()) to turn them into
exceptions when the caller wants that.
"""

from __future__ import annotations

from enum import IntEnum


class KafkaClientError(Exception):
    """
    Base exception for all client errors.

    All pykafkasync exceptions except BufferOverflowError inherit from this
    class.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        self.hint = hint
        if hint:
            message = f"{message}\n\n  Hint: {hint}"
        super().__init__(message)


class MalformedInputError(KafkaClientError):
    """
    Raised when bytes cannot be decoded.

    Common causes:
    - Buffer ended in the middle of a field
    - Invalid UTF-8 in a short string
    - Inconsistent length prefix
    - Message checksum mismatch
    """


class EncodingError(KafkaClientError):
    """Raised when a value cannot be represented in the wire format."""


class ConnectError(KafkaClientError):
    """
    Raised when a connection to the broker cannot be established.

    Common causes:
    - Broker is not running
    - Wrong host or port
    - Firewall blocking connection
    """

    def __init__(
        self,
        message: str,
        host: str | None = None,
        port: int | None = None,
        *,
        hint: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        if hint is None and host:
            hint = f"Check that a broker is listening on {host}:{port}"
        super().__init__(message, hint=hint)


class TransportError(KafkaClientError):
    """
    Raised when I/O fails on an established connection.

    The producer disconnects before re-raising, so the next request
    opens a fresh connection. The request may or may not have reached
    the broker.
    """


class ClosedError(KafkaClientError):
    """Raised when an operation is attempted after close()."""

    def __init__(self, message: str = "Producer is closed") -> None:
        super().__init__(message, hint="Create a new SyncProducer to keep sending.")


class BufferOverflowError(RuntimeError):
    """
    Raised when writing past the capacity of a pre-sized buffer.

    This is a programming error in a size computation, not a condition
    callers are expected to recover from.
    """


class ErrorCode(IntEnum):
    """Error codes returned by brokers in responses."""

    UNKNOWN = -1
    NO_ERROR = 0
    OFFSET_OUT_OF_RANGE = 1
    INVALID_MESSAGE = 2
    UNKNOWN_TOPIC_OR_PARTITION = 3
    INVALID_MESSAGE_SIZE = 4
    LEADER_NOT_AVAILABLE = 5
    NOT_LEADER_FOR_PARTITION = 6
    REQUEST_TIMED_OUT = 7
    BROKER_NOT_AVAILABLE = 8
    REPLICA_NOT_AVAILABLE = 9
    MESSAGE_SIZE_TOO_LARGE = 10
    STALE_CONTROLLER_EPOCH = 11
    OFFSET_METADATA_TOO_LARGE = 12

    @classmethod
    def describe(cls, code: int) -> str:
        """Human readable name for a raw error code."""
        try:
            return cls(code).name.replace("_", " ").lower()
        except ValueError:
            return f"unrecognized error code {code}"


class KafkaError(KafkaClientError):
    """
    A protocol-level error reported by the broker.

    Carries the raw integer error code alongside the message.
    """

    def __init__(self, error_code: int, message: str | None = None) -> None:
        self.error_code = error_code
        if message is None:
            message = f"Broker returned error {error_code}: {ErrorCode.describe(error_code)}"
        super().__init__(message)

    @classmethod
    def from_code(cls, error_code: int) -> KafkaError | None:
        """Return a KafkaError for a nonzero code, or None for NO_ERROR."""
        if error_code == ErrorCode.NO_ERROR:
            return None
        return cls(error_code)
