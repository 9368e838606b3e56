"""Metadata sources: where a schema's raw ``$metadata`` document comes from.

A :class:`~odata_schema_cache.schema.ResolvedSchema` is built around exactly
one fetch strategy, selected when it is constructed:

        * :class:`PreSuppliedString` - the document text is already known.
        * :class:`AsyncFunction` - an awaitable callable returns the text.
        * :class:`ProviderStrategy` - a :class:`SchemaProvider` performs one
            round trip and derives text, provider metadata and parsed schema
            from the same response.

Example::

        from odata_schema_cache.sources import AsyncFunction

        async def load() -> str:
                return Path("metadata.xml").read_text()

        strategy = AsyncFunction(load)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, Union, runtime_checkable

from .models import ParsedSchema, ProviderMetadata

MetadataFunction = Callable[[], Awaitable[str]]
SchemaParserFunction = Callable[[str], ParsedSchema]


@runtime_checkable
class SchemaProvider(Protocol):
    """Port for a live metadata provider.

    ``send_schema_request`` is the only call expected to perform I/O; the
    remaining methods interpret the response it returned.
    """

    async def send_schema_request(self) -> Any:
        ...

    async def get_schema_as_string(self, response: Any) -> str:
        ...

    async def get_provider_metadata(self, response: Any) -> ProviderMetadata:
        ...

    async def get_parsed_schema(self, provider_metadata: ProviderMetadata) -> ParsedSchema:
        ...


@dataclass(frozen=True)
class PreSuppliedString:
    """Metadata text supplied up front."""

    document: str


@dataclass(frozen=True)
class AsyncFunction:
    """Metadata text produced by an awaitable callable."""

    function: MetadataFunction


@dataclass(frozen=True)
class ProviderStrategy:
    """Metadata obtained through a :class:`SchemaProvider` round trip."""

    provider: SchemaProvider


FetchStrategy = Union[PreSuppliedString, AsyncFunction, ProviderStrategy]
