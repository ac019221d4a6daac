# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Broker descriptors and the client's local view of the cluster."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from .codec import INT32, ByteBuffer, short_string_length


@dataclass(frozen=True)
class Broker:
    """
    A single broker, identified by id plus host and port.

    Format: [4B id][2B host_len][host][4B port]
    """

    id: int
    host: str
    port: int

    @classmethod
    def from_info_string(cls, broker_id: int, info: str) -> Broker:
        """Build a broker from a "host:port" string."""
        host, sep, port = info.rpartition(":")
        if not sep or not host:
            raise ValueError(f"Invalid broker info string: {info!r}, expected host:port")
        try:
            return cls(broker_id, host, int(port))
        except ValueError:
            raise ValueError(f"Invalid port in broker info string: {info!r}") from None

    @property
    def connection_string(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def size_in_bytes(self) -> int:
        return short_string_length(self.host) + INT32.size + INT32.size

    def write_to(self, buffer: ByteBuffer) -> None:
        buffer.put_int32(self.id)
        buffer.put_short_string(self.host)
        buffer.put_int32(self.port)

    @classmethod
    def read_from(cls, buffer: ByteBuffer) -> Broker:
        broker_id = buffer.get_int32()
        host = buffer.get_short_string()
        port = buffer.get_int32()
        return cls(broker_id, host, port)

    def __str__(self) -> str:
        return f"Id: {self.id}, Host: {self.host}, Port: {self.port}"


class Cluster:
    """
    The set of known brokers, keyed by broker id.

    Adding a broker whose id is already present replaces the old entry.
    A cluster is meant to be rebuilt after each metadata refresh and
    swapped in as a whole rather than edited while readers use it.

    Example:
        >>> cluster = Cluster([Broker(1, "kafka-1", 9092)])
        >>> cluster.get(1).connection_string
        'kafka-1:9092'
        >>> cluster.get(2) is None
        True
    """

    def __init__(self, brokers: Iterable[Broker] = ()) -> None:
        self._brokers: dict[int, Broker] = {}
        for broker in brokers:
            self._brokers[broker.id] = broker

    def get(self, broker_id: int) -> Broker | None:
        return self._brokers.get(broker_id)

    def add(self, broker: Broker) -> None:
        self._brokers[broker.id] = broker

    def remove(self, broker_id: int) -> None:
        self._brokers.pop(broker_id, None)

    @property
    def count(self) -> int:
        return len(self._brokers)

    def __len__(self) -> int:
        return len(self._brokers)

    def __contains__(self, broker_id: object) -> bool:
        return broker_id in self._brokers

    def __iter__(self) -> Iterator[Broker]:
        return iter(list(self._brokers.values()))

    def __str__(self) -> str:
        return "Cluster ({})".format(", ".join(str(b) for b in self._brokers.values()))

    def __repr__(self) -> str:
        return f"Cluster(brokers={list(self._brokers.values())!r})"
