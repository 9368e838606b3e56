"""Lightweight in-process metrics for the schema cache.

Registries and resolved schemas report events here so operators (and tests)
can confirm the fetch-once and compute-once behavior without instrumenting
the transport. No external backend is required.

Collected domains:
        * Registry lookups (hits vs. newly created entries, invalidations)
        * Resolution (fetches, failures, cancellations, latency)
        * Derived views (computations vs. memoized reads, resets)

Design principles:
        1. Thread safety via a shared re-entrant lock (`RLock`).
        2. Non-blocking fast path: counters only; ratios are derived on demand.
        3. Serialization ready: :meth:`SchemaCacheMonitor.get_summary` returns a
             primitive-only dictionary.

Example::

        from odata_schema_cache.monitoring import get_monitor
        monitor = get_monitor()
        monitor.record_fetch(duration=0.120)
        print(monitor.get_summary()["resolution"]["fetches"])  # -> 1
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class RegistryMetrics:
    """Counters for registry get-or-create traffic.

    Attributes:
        hits: Lookups that returned an existing instance.
        misses: Lookups that created (or added) a new instance.
        invalidations: Single entries dropped via ``invalidate``.
        clears: Full registry clears.
    """

    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    clears: int = 0


@dataclass
class ResolutionMetrics:
    """Counters for metadata resolution.

    Attributes:
        fetches: Successful fetch strategy executions.
        failures: Fetch/parse attempts that raised.
        cancellations: Attempts cancelled before committing.
        total_fetch_time: Cumulative successful fetch latency (seconds).
    """

    fetches: int = 0
    failures: int = 0
    cancellations: int = 0
    total_fetch_time: float = 0.0


@dataclass
class ViewMetrics:
    """Per-view computation and memoized-read counts."""

    computations: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    hits: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    resets: int = 0


class SchemaCacheMonitor:
    """Central coordinator for recording and querying schema cache metrics."""

    def __init__(self) -> None:
        self.start_time = datetime.now()
        self._lock = threading.RLock()
        self.registry_metrics = RegistryMetrics()
        self.resolution_metrics = ResolutionMetrics()
        self.view_metrics = ViewMetrics()
        self.last_fetch_at: Optional[datetime] = None

    def record_registry_hit(self) -> None:
        with self._lock:
            self.registry_metrics.hits += 1

    def record_registry_miss(self) -> None:
        with self._lock:
            self.registry_metrics.misses += 1

    def record_invalidation(self) -> None:
        with self._lock:
            self.registry_metrics.invalidations += 1

    def record_clear(self) -> None:
        with self._lock:
            self.registry_metrics.clears += 1

    def record_fetch(self, duration: float = 0.0) -> None:
        """Record a successful metadata fetch.

        Args:
            duration: Wall-clock seconds spent in the fetch strategy.
        """
        with self._lock:
            self.resolution_metrics.fetches += 1
            self.resolution_metrics.total_fetch_time += duration
            self.last_fetch_at = datetime.now()

    def record_fetch_failure(self) -> None:
        with self._lock:
            self.resolution_metrics.failures += 1

    def record_cancellation(self) -> None:
        with self._lock:
            self.resolution_metrics.cancellations += 1

    def record_view_computation(self, view: str) -> None:
        with self._lock:
            self.view_metrics.computations[view] += 1

    def record_view_hit(self, view: str) -> None:
        with self._lock:
            self.view_metrics.hits[view] += 1

    def record_reset(self) -> None:
        with self._lock:
            self.view_metrics.resets += 1

    def get_summary(self) -> Dict[str, Any]:
        """Return a JSON-ready snapshot of all counters.

        Returns:
            Dict[str, Any]: ``registry``, ``resolution`` and ``views`` sections
            plus ``uptime_seconds``.
        """
        with self._lock:
            registry_total = self.registry_metrics.hits + self.registry_metrics.misses
            fetches = self.resolution_metrics.fetches
            return {
                "uptime_seconds": (datetime.now() - self.start_time).total_seconds(),
                "registry": {
                    "hits": self.registry_metrics.hits,
                    "misses": self.registry_metrics.misses,
                    "hit_rate_percent": round(
                        self.registry_metrics.hits / registry_total * 100, 2
                    )
                    if registry_total
                    else 0.0,
                    "invalidations": self.registry_metrics.invalidations,
                    "clears": self.registry_metrics.clears,
                },
                "resolution": {
                    "fetches": fetches,
                    "failures": self.resolution_metrics.failures,
                    "cancellations": self.resolution_metrics.cancellations,
                    "average_fetch_time": self.resolution_metrics.total_fetch_time / fetches
                    if fetches
                    else 0.0,
                    "last_fetch_at": self.last_fetch_at.isoformat()
                    if self.last_fetch_at
                    else None,
                },
                "views": {
                    "computations": dict(self.view_metrics.computations),
                    "hits": dict(self.view_metrics.hits),
                    "resets": self.view_metrics.resets,
                },
            }

    def reset_metrics(self) -> None:
        """Reset all counters (useful for tests)."""
        with self._lock:
            self.start_time = datetime.now()
            self.registry_metrics = RegistryMetrics()
            self.resolution_metrics = ResolutionMetrics()
            self.view_metrics = ViewMetrics()
            self.last_fetch_at = None


# Global monitor instance
_monitor: Optional[SchemaCacheMonitor] = None
_monitor_lock = threading.Lock()


def get_monitor() -> SchemaCacheMonitor:
    """Return the process-wide monitor, creating it on first use."""
    global _monitor
    with _monitor_lock:
        if _monitor is None:
            _monitor = SchemaCacheMonitor()
        return _monitor
