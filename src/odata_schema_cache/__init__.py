"""OData Schema Cache
==================

Per-endpoint cache of OData service schemas derived from ``$metadata``
documents. A schema is fetched at most once per endpoint, parsed into an
immutable structure, and exposed through memoized views that query builders
and entity mappers can read without re-fetching or re-parsing.

Key capabilities
----------------
- Identity-keyed :class:`~odata_schema_cache.registry.SchemaRegistry` with
  atomic get-or-create semantics.
- Async, single-flight resolution through a pluggable fetch strategy
  (pre-supplied text, async function, or a live provider such as
  :class:`~odata_schema_cache.provider.HttpSchemaProvider`).
- Lazily computed entity sets, entity types and complex types, memoized per
  cache epoch and reset atomically.
- Entity set path lookups including derived sets (``"Products/Discontinued"``).
- Lightweight metrics, a FastAPI inspection app and an ``odata-schema`` CLI.

Design principles
-----------------
1. **Fetch once** - resolution commits raw text and parsed schema together,
   only after the fetch succeeded; failures and cancellations can be retried.
2. **Explicit resolution** - derived views raise
   :class:`~odata_schema_cache.errors.UnresolvedSchemaError` until
   ``resolve()`` has completed.
3. **Injected state** - registries are ordinary objects; the process-wide
   default is a convenience, not a requirement.

Docstring style
---------------
Public functions and classes follow the Google docstring convention (Args,
Returns, Raises, Examples).

Minimal quick start
-------------------
>>> from odata_schema_cache import SchemaRegistry, from_url
>>> registry = SchemaRegistry()
>>> schema = await from_url("https://services.odata.org/V4/Northwind/Northwind.svc/", registry=registry).resolve()
>>> [es.name for es in schema.entity_sets][:3]
"""

__version__ = "0.1.0"

from .errors import (
    EntitySetNotFoundError,
    InvalidEntitySetPathError,
    MetadataFetchError,
    SchemaCacheError,
    SchemaParseError,
    UnresolvedSchemaError,
    UnsupportedOperationError,
)
from .models import EntitySet, ParsedSchema, ProviderMetadata
from .registry import SchemaRegistry, from_metadata, from_url, get_schema_registry
from .schema import ResolvedSchema

__all__ = [
    "EntitySet",
    "EntitySetNotFoundError",
    "InvalidEntitySetPathError",
    "MetadataFetchError",
    "ParsedSchema",
    "ProviderMetadata",
    "ResolvedSchema",
    "SchemaCacheError",
    "SchemaParseError",
    "SchemaRegistry",
    "UnresolvedSchemaError",
    "UnsupportedOperationError",
    "from_metadata",
    "from_url",
    "get_schema_registry",
]
