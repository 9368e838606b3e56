"""Identity-keyed registry of resolved schemas.

The registry maps an endpoint identity (normally the service root URL) to
the single :class:`~odata_schema_cache.schema.ResolvedSchema` shared by every
caller that asks for it. Registries are plain objects so applications and
tests can hold isolated instances; :func:`get_schema_registry` returns a
lazily created process-wide default for callers that do not inject one.

Example::

        from odata_schema_cache.registry import SchemaRegistry, from_url

        registry = SchemaRegistry()
        schema = await from_url("https://example.org/odata/", registry=registry).resolve()
        assert from_url("https://example.org/odata/", registry=registry) is schema

Concurrency:
        ``get_or_create`` runs the factory while holding the registry lock, so
        concurrent callers for an absent identity observe exactly one instance.
        Factories only construct unresolved schemas (no I/O), which keeps the
        critical section short.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Hashable, List, Optional

from .monitoring import SchemaCacheMonitor, get_monitor
from .provider import HttpSchemaProvider, ProviderConfig
from .schema import ResolvedSchema

logger = logging.getLogger(__name__)

SchemaFactory = Callable[[], ResolvedSchema]


class SchemaRegistry:
    """Thread-safe map from endpoint identity to :class:`ResolvedSchema`."""

    def __init__(self, monitor: Optional[SchemaCacheMonitor] = None) -> None:
        self._schemas: Dict[Hashable, ResolvedSchema] = {}
        self._lock = threading.Lock()
        self._monitor = monitor or get_monitor()

    def get_or_create(self, identity: Hashable, factory: SchemaFactory) -> ResolvedSchema:
        """Return the schema registered for ``identity``, creating it if absent.

        Args:
            identity: Endpoint key (value equality).
            factory: Zero-argument callable invoked at most once per absent identity.

        Returns:
            The canonical instance for ``identity``.
        """
        with self._lock:
            schema = self._schemas.get(identity)
            if schema is not None:
                self._monitor.record_registry_hit()
                return schema
            schema = factory()
            self._schemas[identity] = schema
        self._monitor.record_registry_miss()
        logger.debug(f"Registered schema for {identity!r}")
        return schema

    def put(self, identity: Hashable, schema: ResolvedSchema) -> ResolvedSchema:
        """Register ``schema`` unless ``identity`` already has one.

        Returns:
            The canonical instance, which is the existing one if present.
        """
        return self.get_or_create(identity, lambda: schema)

    def get(self, identity: Hashable) -> Optional[ResolvedSchema]:
        with self._lock:
            return self._schemas.get(identity)

    def invalidate(self, identity: Hashable) -> bool:
        """Drop the entry for ``identity``. Returns True if one was removed."""
        with self._lock:
            removed = self._schemas.pop(identity, None) is not None
        if removed:
            self._monitor.record_invalidation()
            logger.info(f"Invalidated schema for {identity!r}")
        return removed

    def clear_all(self) -> None:
        """Empty the registry. Instances already handed out stay usable."""
        with self._lock:
            count = len(self._schemas)
            self._schemas.clear()
        self._monitor.record_clear()
        logger.info(f"Cleared schema registry ({count} entries)")

    def identities(self) -> List[Hashable]:
        with self._lock:
            return list(self._schemas)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._schemas

    def __len__(self) -> int:
        with self._lock:
            return len(self._schemas)


# Global registry instance
_schema_registry: Optional[SchemaRegistry] = None
_registry_lock = threading.Lock()


def get_schema_registry() -> SchemaRegistry:
    """Return the process-wide default :class:`SchemaRegistry`."""
    global _schema_registry
    with _registry_lock:
        if _schema_registry is None:
            _schema_registry = SchemaRegistry()
        return _schema_registry


def from_url(
    url: str,
    registry: Optional[SchemaRegistry] = None,
    config: Optional[ProviderConfig] = None,
) -> ResolvedSchema:
    """Get or create the HTTP-backed schema registered under ``url``.

    The returned schema may still be unresolved; await :meth:`ResolvedSchema.resolve`.
    """
    if registry is None:
        registry = get_schema_registry()
    return registry.get_or_create(
        url, lambda: ResolvedSchema.from_provider(HttpSchemaProvider(url, config=config))
    )


def from_metadata(document: str) -> ResolvedSchema:
    """Create an unregistered schema from known metadata text."""
    return ResolvedSchema.from_string(document)


def add(url: str, schema: ResolvedSchema, registry: Optional[SchemaRegistry] = None) -> ResolvedSchema:
    """Register ``schema`` under ``url`` unless one is already present."""
    if registry is None:
        registry = get_schema_registry()
    return registry.put(url, schema)


def clear_cache(registry: Optional[SchemaRegistry] = None) -> None:
    """Clear the given registry (default: the process-wide one)."""
    if registry is None:
        registry = get_schema_registry()
    registry.clear_all()
