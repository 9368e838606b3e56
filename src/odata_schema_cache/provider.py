"""HTTP metadata provider for live OData services.

:class:`HttpSchemaProvider` implements the
:class:`~odata_schema_cache.sources.SchemaProvider` port with ``httpx``. A
single ``GET <service>/$metadata`` round trip yields the raw document, the
provider metadata (protocol version header, ETag, content type) and, through
the CSDL parser, the structured schema.

Environment variables:
        ODATA_SCHEMA_TIMEOUT             Request timeout in seconds (default: 30).
        ODATA_SCHEMA_METADATA_SUFFIX     Path appended to the service root (default: $metadata).

Example:
        from odata_schema_cache.provider import HttpSchemaProvider

        provider = HttpSchemaProvider("https://services.odata.org/V4/Northwind/Northwind.svc/")
        response = await provider.send_schema_request()
        text = await provider.get_schema_as_string(response)

Notes:
* Retries are intentionally absent; a failed request surfaces as
    :class:`~odata_schema_cache.errors.MetadataFetchError` and the caller
    decides whether to resolve again.
* Passing a pre-configured ``httpx.AsyncClient`` lets callers share
    connection pools or install a mock transport in tests.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from .csdl_parser import ParserConfig, parse_csdl
from .errors import MetadataFetchError
from .models import ParsedSchema, ProviderMetadata

logger = logging.getLogger(__name__)

DEFAULT_METADATA_SUFFIX = "$metadata"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class ProviderConfig:
    """Configuration for HTTP metadata requests.

    Args:
        timeout_seconds: Total request timeout passed to ``httpx``.
        metadata_suffix: Path segment appended to the service root URL.
        headers: Extra request headers (``Accept`` defaults to XML).
    """

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    metadata_suffix: str = DEFAULT_METADATA_SUFFIX
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Build a config from ``ODATA_SCHEMA_*`` environment variables."""
        return cls(
            timeout_seconds=float(
                os.getenv("ODATA_SCHEMA_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))
            ),
            metadata_suffix=os.getenv(
                "ODATA_SCHEMA_METADATA_SUFFIX", DEFAULT_METADATA_SUFFIX
            ),
        )


class HttpSchemaProvider:
    """Fetch ``$metadata`` documents over HTTP."""

    def __init__(
        self,
        service_url: str,
        config: Optional[ProviderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        parser_config: Optional[ParserConfig] = None,
    ) -> None:
        self.service_url = service_url
        self.config = config or ProviderConfig.from_env()
        self.parser_config = parser_config
        self._client = client

    @property
    def metadata_url(self) -> str:
        suffix = self.config.metadata_suffix
        if self.service_url.rstrip("/").endswith(suffix):
            return self.service_url
        return f"{self.service_url.rstrip('/')}/{suffix}"

    async def send_schema_request(self) -> httpx.Response:
        """Issue the metadata request and return the fully-read response.

        Raises:
            MetadataFetchError: On transport errors or a non-2xx status.
        """
        url = self.metadata_url
        headers = {"Accept": "application/xml", **self.config.headers}
        logger.info(f"Requesting OData metadata from {url}")
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(
                    timeout=self.config.timeout_seconds, follow_redirects=True
                ) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.error(f"Failed to fetch metadata from {url}: {exc}")
            raise MetadataFetchError(
                f"Failed to fetch metadata from {url}: {exc}", url=url
            ) from exc

        if not response.is_success:
            logger.error(f"Metadata request to {url} returned HTTP {response.status_code}")
            raise MetadataFetchError(
                f"Metadata request to {url} returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return response

    async def get_schema_as_string(self, response: httpx.Response) -> str:
        return response.text

    async def get_provider_metadata(self, response: httpx.Response) -> ProviderMetadata:
        headers = response.headers
        return ProviderMetadata(
            source_url=self.metadata_url,
            document=response.text,
            status_code=response.status_code,
            content_type=headers.get("content-type"),
            protocol_version=headers.get("odata-version")
            or headers.get("dataserviceversion"),
            etag=headers.get("etag"),
        )

    async def get_parsed_schema(self, provider_metadata: ProviderMetadata) -> ParsedSchema:
        return parse_csdl(provider_metadata.document, config=self.parser_config)
