"""Tests for schema cache metrics."""

import pytest

from odata_schema_cache.monitoring import SchemaCacheMonitor, get_monitor


def test_empty_summary():
    summary = SchemaCacheMonitor().get_summary()

    assert summary["registry"]["hit_rate_percent"] == 0.0
    assert summary["resolution"]["average_fetch_time"] == 0.0
    assert summary["resolution"]["last_fetch_at"] is None
    assert summary["views"] == {"computations": {}, "hits": {}, "resets": 0}


def test_counters():
    monitor = SchemaCacheMonitor()
    monitor.record_registry_miss()
    monitor.record_registry_hit()
    monitor.record_registry_hit()
    monitor.record_registry_hit()
    monitor.record_invalidation()
    monitor.record_clear()
    monitor.record_fetch(0.2)
    monitor.record_fetch(0.4)
    monitor.record_fetch_failure()
    monitor.record_cancellation()
    monitor.record_view_computation("entity_sets")
    monitor.record_view_hit("entity_sets")
    monitor.record_reset()

    summary = monitor.get_summary()
    assert summary["registry"] == {
        "hits": 3,
        "misses": 1,
        "hit_rate_percent": 75.0,
        "invalidations": 1,
        "clears": 1,
    }
    assert summary["resolution"]["fetches"] == 2
    assert summary["resolution"]["failures"] == 1
    assert summary["resolution"]["cancellations"] == 1
    assert summary["resolution"]["average_fetch_time"] == pytest.approx(0.3)
    assert summary["resolution"]["last_fetch_at"] is not None
    assert summary["views"]["computations"] == {"entity_sets": 1}
    assert summary["views"]["hits"] == {"entity_sets": 1}
    assert summary["views"]["resets"] == 1


def test_reset_metrics():
    monitor = SchemaCacheMonitor()
    monitor.record_fetch(1.0)
    monitor.record_view_computation("metadata")

    monitor.reset_metrics()

    summary = monitor.get_summary()
    assert summary["resolution"]["fetches"] == 0
    assert summary["views"]["computations"] == {}


def test_global_monitor_is_a_singleton():
    assert get_monitor() is get_monitor()
