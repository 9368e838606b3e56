"""Exception types raised by the schema cache.

All errors derive from :class:`SchemaCacheError` so callers can catch the
whole family at an API boundary. Lookup and argument errors additionally
derive from the matching builtin (``LookupError`` / ``ValueError``) so generic
handlers keep working.
"""

from __future__ import annotations

from typing import Optional


class SchemaCacheError(Exception):
    """Base class for schema cache failures."""


class UnresolvedSchemaError(SchemaCacheError):
    """Raised when a derived view is read before the schema was resolved."""


class UnsupportedOperationError(SchemaCacheError):
    """Raised when a view is not available for the schema's fetch strategy."""


class EntitySetNotFoundError(SchemaCacheError, LookupError):
    """Raised when an entity set (or derived entity set) cannot be located."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Entity set '{name}' not found")
        self.name = name


class InvalidEntitySetPathError(SchemaCacheError, ValueError):
    """Raised for malformed entity set paths (e.g. an empty base segment)."""


class MetadataFetchError(SchemaCacheError):
    """Raised when the metadata document cannot be retrieved."""

    def __init__(self, message: str, *, url: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class SchemaParseError(SchemaCacheError, ValueError):
    """Raised when a metadata document is not a readable EDMX/CSDL document."""
