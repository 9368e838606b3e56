"""Shared fixtures for schema cache tests."""

import asyncio
from pathlib import Path

import pytest

from odata_schema_cache.csdl_parser import parse_csdl
from odata_schema_cache.models import ProviderMetadata
from odata_schema_cache.monitoring import SchemaCacheMonitor

FIXTURES = Path(__file__).resolve().parent / "fixtures" / "metadata"


class CountingProvider:
    """In-memory SchemaProvider double that counts round trips."""

    def __init__(self, document: str, delay: float = 0.0, failures: int = 0):
        self.document = document
        self.delay = delay
        self.failures = failures
        self.request_count = 0
        self.parse_count = 0

    async def send_schema_request(self):
        self.request_count += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            self.failures -= 1
            raise ConnectionError("metadata endpoint unavailable")
        return {"body": self.document, "headers": {"OData-Version": "4.0"}}

    async def get_schema_as_string(self, response):
        return response["body"]

    async def get_provider_metadata(self, response):
        return ProviderMetadata(
            source_url="memory://northwind/$metadata",
            document=response["body"],
            protocol_version=response["headers"]["OData-Version"],
        )

    async def get_parsed_schema(self, provider_metadata):
        self.parse_count += 1
        return parse_csdl(provider_metadata.document)


@pytest.fixture
def northwind_metadata() -> str:
    return (FIXTURES / "northwind_v4.xml").read_text(encoding="utf-8")


@pytest.fixture
def orders_metadata() -> str:
    return (FIXTURES / "orders_v3.xml").read_text(encoding="utf-8")


@pytest.fixture
def monitor() -> SchemaCacheMonitor:
    """A private monitor so counters are not shared across tests."""
    return SchemaCacheMonitor()


@pytest.fixture
def counting_provider(northwind_metadata) -> CountingProvider:
    return CountingProvider(northwind_metadata)


@pytest.fixture
def slow_provider(northwind_metadata) -> CountingProvider:
    return CountingProvider(northwind_metadata, delay=0.05)


@pytest.fixture
def flaky_provider(northwind_metadata) -> CountingProvider:
    """Fails the first request, succeeds afterwards."""
    return CountingProvider(northwind_metadata, failures=1)


@pytest.fixture
def hanging_provider(northwind_metadata) -> CountingProvider:
    return CountingProvider(northwind_metadata, delay=1.0)
