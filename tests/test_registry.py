"""Tests for the identity-keyed schema registry."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from odata_schema_cache.provider import HttpSchemaProvider, ProviderConfig
from odata_schema_cache.registry import (
    SchemaRegistry,
    add,
    clear_cache,
    from_metadata,
    from_url,
    get_schema_registry,
)
from odata_schema_cache.schema import ResolvedSchema
from odata_schema_cache.sources import ProviderStrategy

SERVICE_URL = "https://example.org/odata/Northwind.svc/"


@pytest.fixture
def registry(monitor):
    return SchemaRegistry(monitor=monitor)


class TestGetOrCreate:
    def test_same_identity_returns_same_instance(self, registry, northwind_metadata):
        factory_calls = []

        def factory():
            factory_calls.append(1)
            return ResolvedSchema.from_string(northwind_metadata)

        first = registry.get_or_create(SERVICE_URL, factory)
        second = registry.get_or_create(SERVICE_URL, factory)

        assert first is second
        assert len(factory_calls) == 1
        assert SERVICE_URL in registry
        assert len(registry) == 1

    def test_distinct_identities_get_distinct_instances(self, registry, northwind_metadata):
        first = registry.get_or_create("a", lambda: ResolvedSchema.from_string(northwind_metadata))
        second = registry.get_or_create("b", lambda: ResolvedSchema.from_string(northwind_metadata))

        assert first is not second
        assert sorted(registry.identities()) == ["a", "b"]

    def test_identity_uses_value_equality(self, registry, northwind_metadata):
        first = registry.get_or_create(("host", 443), lambda: ResolvedSchema.from_string(northwind_metadata))
        assert registry.get(("host", 443)) is first

    def test_concurrent_get_or_create_calls_factory_once(self, registry, northwind_metadata):
        factory_calls = []
        barrier = threading.Barrier(8)

        def factory():
            factory_calls.append(1)
            return ResolvedSchema.from_string(northwind_metadata)

        def worker():
            barrier.wait()
            return registry.get_or_create(SERVICE_URL, factory)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: worker(), range(8)))

        assert len(factory_calls) == 1
        assert all(result is results[0] for result in results)

    def test_hits_and_misses_are_recorded(self, registry, monitor, northwind_metadata):
        for _ in range(3):
            registry.get_or_create(SERVICE_URL, lambda: ResolvedSchema.from_string(northwind_metadata))

        summary = monitor.get_summary()["registry"]
        assert summary["misses"] == 1
        assert summary["hits"] == 2
        assert summary["hit_rate_percent"] == pytest.approx(66.67)


class TestPutAndInvalidate:
    def test_put_does_not_replace_existing(self, registry, northwind_metadata, orders_metadata):
        original = ResolvedSchema.from_string(northwind_metadata)
        replacement = ResolvedSchema.from_string(orders_metadata)

        assert registry.put(SERVICE_URL, original) is original
        assert registry.put(SERVICE_URL, replacement) is original

    def test_get_missing_returns_none(self, registry):
        assert registry.get(SERVICE_URL) is None

    def test_invalidate(self, registry, monitor, northwind_metadata):
        registry.put(SERVICE_URL, ResolvedSchema.from_string(northwind_metadata))

        assert registry.invalidate(SERVICE_URL) is True
        assert registry.invalidate(SERVICE_URL) is False
        assert SERVICE_URL not in registry
        assert monitor.get_summary()["registry"]["invalidations"] == 1

    def test_clear_all_keeps_handed_out_instances_usable(self, registry, northwind_metadata):
        schema = registry.put(SERVICE_URL, ResolvedSchema.from_string(northwind_metadata))

        registry.clear_all()

        assert len(registry) == 0
        assert schema.has_table("Products")
        fresh = registry.put(SERVICE_URL, ResolvedSchema.from_string(northwind_metadata))
        assert fresh is not schema


class TestModuleHelpers:
    def test_from_url_registers_http_backed_schema(self, registry):
        config = ProviderConfig(timeout_seconds=5.0)
        schema = from_url(SERVICE_URL, registry=registry, config=config)

        assert from_url(SERVICE_URL, registry=registry) is schema
        assert not schema.is_resolved
        assert isinstance(schema.strategy, ProviderStrategy)
        provider = schema.strategy.provider
        assert isinstance(provider, HttpSchemaProvider)
        assert provider.config is config
        assert provider.metadata_url == SERVICE_URL + "$metadata"

    def test_from_url_uses_injected_empty_registry(self, registry):
        from_url(SERVICE_URL, registry=registry)

        assert SERVICE_URL in registry

    def test_add_and_clear_cache(self, registry, northwind_metadata):
        schema = from_metadata(northwind_metadata)

        assert add(SERVICE_URL, schema, registry=registry) is schema
        assert from_url(SERVICE_URL, registry=registry) is schema

        clear_cache(registry=registry)
        assert len(registry) == 0

    def test_from_metadata_is_not_registered(self, registry, northwind_metadata):
        schema = from_metadata(northwind_metadata)

        assert schema.is_resolved
        assert len(registry) == 0

    def test_default_registry_is_a_singleton(self):
        assert get_schema_registry() is get_schema_registry()
