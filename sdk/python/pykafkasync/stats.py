# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Producer request statistics.

Each produce request is published as a RequestStat on an RxPY stream.
Observers are delivered on a scheduler thread, so a slow observer never
holds up the request that produced the stat.

Example:
    >>> stats = ProducerRequestStatsRegistry.get("billing")
    >>> stats.observable().pipe(
    ...     ops.filter(lambda s: s.elapsed_ms > 100),
    ... ).subscribe(on_next=lambda s: print(f"slow request to {s.broker_info}"))
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Protocol

from reactivex import Observable, Subject, abc, operators as ops
from reactivex.scheduler import ThreadPoolScheduler

LOG = logging.getLogger(__name__)

ALL_BROKERS: str = "AllBrokers"


class RequestStatsSink(Protocol):
    """Anything that accepts per-request statistics."""

    def record(self, broker_info: str, request_size: int, elapsed_ms: int) -> None: ...


@dataclass(frozen=True)
class RequestStat:
    """Size and latency of one request to one broker."""

    broker_info: str
    request_size: int
    elapsed_ms: int


@dataclass(frozen=True)
class RequestMetrics:
    """Running totals for the requests sent to one broker."""

    count: int = 0
    total_bytes: int = 0
    max_bytes: int = 0
    total_time_ms: int = 0
    max_time_ms: int = 0

    def update(self, stat: RequestStat) -> RequestMetrics:
        return replace(
            self,
            count=self.count + 1,
            total_bytes=self.total_bytes + stat.request_size,
            max_bytes=max(self.max_bytes, stat.request_size),
            total_time_ms=self.total_time_ms + stat.elapsed_ms,
            max_time_ms=max(self.max_time_ms, stat.elapsed_ms),
        )

    @property
    def mean_bytes(self) -> float:
        return self.total_bytes / self.count if self.count else 0.0

    @property
    def mean_time_ms(self) -> float:
        return self.total_time_ms / self.count if self.count else 0.0


class ProducerRequestStats:
    """
    Request statistics for one client id, per broker and across all brokers.

    record() never raises and never blocks on observers.
    """

    def __init__(self, client_id: str, scheduler: abc.SchedulerBase | None = None) -> None:
        self.client_id = client_id
        self._subject: Subject[RequestStat] = Subject()
        self._scheduler = scheduler or ThreadPoolScheduler(max_workers=1)
        self._lock = threading.Lock()
        self._metrics: dict[str, RequestMetrics] = {}
        self._subscription = self.observable().subscribe(on_next=self._update)

    def observable(self) -> Observable[RequestStat]:
        """Stream of stats, delivered on the stats scheduler."""
        return self._subject.pipe(ops.observe_on(self._scheduler))

    def record(self, broker_info: str, request_size: int, elapsed_ms: int) -> None:
        try:
            self._subject.on_next(RequestStat(broker_info, request_size, elapsed_ms))
        except Exception:
            LOG.exception("Failed to publish request stats for %s", broker_info)

    def _update(self, stat: RequestStat) -> None:
        with self._lock:
            for key in (stat.broker_info, ALL_BROKERS):
                self._metrics[key] = self._metrics.get(key, RequestMetrics()).update(stat)

    def get_broker_stats(self, broker_info: str) -> RequestMetrics:
        with self._lock:
            return self._metrics.get(broker_info, RequestMetrics())

    def get_all_brokers_stats(self) -> RequestMetrics:
        return self.get_broker_stats(ALL_BROKERS)

    def close(self) -> None:
        """Stop accepting stats and release observers."""
        self._subject.on_completed()
        self._subscription.dispose()


class ProducerRequestStatsRegistry:
    """Process-wide ProducerRequestStats, one per client id."""

    _lock = threading.Lock()
    _stats: dict[str, ProducerRequestStats] = {}

    @classmethod
    def get(cls, client_id: str) -> ProducerRequestStats:
        with cls._lock:
            stats = cls._stats.get(client_id)
            if stats is None:
                stats = cls._stats[client_id] = ProducerRequestStats(client_id)
            return stats

    @classmethod
    def remove(cls, client_id: str) -> None:
        with cls._lock:
            stats = cls._stats.pop(client_id, None)
        if stats is not None:
            stats.close()
