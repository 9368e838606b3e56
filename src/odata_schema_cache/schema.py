"""Resolved OData schema with lazily derived, memoized views.

:class:`ResolvedSchema` is the unit of work of the cache. It owns one
endpoint's raw ``$metadata`` document, the parsed schema and the derived
collections callers query (entity sets, entity types, complex types).

Lifecycle:
        1. Constructed with exactly one fetch strategy (see
             :mod:`odata_schema_cache.sources`). String-backed schemas start
             resolved; the other strategies start unresolved.
        2. ``await schema.resolve()`` performs the fetch at most once. Concurrent
             callers await the single in-flight fetch. Raw text, parsed schema and
             provider metadata are committed together only after every await
             succeeded, so failures and cancellations leave the schema unresolved.
        3. Derived views are computed on first read and memoized for the rest of
             the cache epoch. Reading any view while unresolved raises
             :class:`~odata_schema_cache.errors.UnresolvedSchemaError`.
        4. ``reset_cache()`` swaps in a fresh, empty epoch: raw metadata and every
             memoized view are discarded in one step.

Example::

        schema = ResolvedSchema.from_provider(HttpSchemaProvider(url))
        await schema.resolve()
        products = schema.find_entity_set("Products")
        discontinued = schema.find_concrete_entity_set("Products/DiscontinuedProduct")

Design notes:
        * Resolving an already-resolved schema is a no-op; use :meth:`refresh`
            to re-fetch.
        * Views are computed while holding the instance lock. The derivations are
            pure and cheap relative to the fetch, so compute-once-under-lock keeps
            the counts exact without measurable contention.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .csdl_parser import parse_csdl
from .errors import (
    EntitySetNotFoundError,
    InvalidEntitySetPathError,
    UnresolvedSchemaError,
    UnsupportedOperationError,
)
from .models import (
    ComplexTypeDef,
    EntitySet,
    EntityTypeDef,
    ParsedSchema,
    ProviderMetadata,
)
from .monitoring import SchemaCacheMonitor, get_monitor
from .sources import (
    AsyncFunction,
    FetchStrategy,
    MetadataFunction,
    PreSuppliedString,
    ProviderStrategy,
    SchemaParserFunction,
    SchemaProvider,
)

logger = logging.getLogger(__name__)

METADATA_VIEW = "metadata"
PROVIDER_METADATA_VIEW = "provider_metadata"
ENTITY_SETS_VIEW = "entity_sets"
ENTITY_TYPES_VIEW = "entity_types"
COMPLEX_TYPES_VIEW = "complex_types"


class _CacheEpoch:
    """State valid between two resets. Replaced wholesale, never cleared in place."""

    __slots__ = ("raw", "parsed", "provider_metadata", "views")

    def __init__(self) -> None:
        self.raw: Optional[str] = None
        self.parsed: Optional[ParsedSchema] = None
        self.provider_metadata: Optional[ProviderMetadata] = None
        self.views: Dict[str, Any] = {}


class EntitySetCollection:
    """Name-indexed entity sets. Exact name match wins over case-insensitive."""

    def __init__(self, entity_sets: Iterable[EntitySet]) -> None:
        self._items: Tuple[EntitySet, ...] = tuple(entity_sets)
        self._by_name: Dict[str, EntitySet] = {}
        self._by_lower_name: Dict[str, EntitySet] = {}
        for entity_set in self._items:
            self._by_name.setdefault(entity_set.name, entity_set)
            self._by_lower_name.setdefault(entity_set.name.lower(), entity_set)

    def __iter__(self) -> Iterator[EntitySet]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def find(self, name: str) -> Optional[EntitySet]:
        match = self._by_name.get(name)
        if match is None:
            match = self._by_lower_name.get(name.lower())
        return match

    def contains(self, name: str) -> bool:
        return self.find(name) is not None


class ResolvedSchema:
    """One endpoint's metadata plus its memoized derived views."""

    def __init__(
        self,
        strategy: FetchStrategy,
        parser: SchemaParserFunction = parse_csdl,
        monitor: Optional[SchemaCacheMonitor] = None,
    ) -> None:
        self._strategy = strategy
        self._parser = parser
        self._monitor = monitor or get_monitor()
        self._lock = threading.RLock()
        self._in_flight: Optional[concurrent.futures.Future] = None
        self._epoch = _CacheEpoch()
        if isinstance(strategy, PreSuppliedString):
            self._epoch.raw = strategy.document

    # ---------------- Construction ---------------- #

    @classmethod
    def from_string(
        cls,
        document: str,
        parser: SchemaParserFunction = parse_csdl,
        monitor: Optional[SchemaCacheMonitor] = None,
    ) -> "ResolvedSchema":
        """Create a resolved schema around known metadata text (parsed on first read)."""
        return cls(PreSuppliedString(document), parser=parser, monitor=monitor)

    @classmethod
    def from_async_function(
        cls,
        function: MetadataFunction,
        parser: SchemaParserFunction = parse_csdl,
        monitor: Optional[SchemaCacheMonitor] = None,
    ) -> "ResolvedSchema":
        """Create an unresolved schema whose text comes from ``await function()``."""
        return cls(AsyncFunction(function), parser=parser, monitor=monitor)

    @classmethod
    def from_provider(
        cls, provider: SchemaProvider, monitor: Optional[SchemaCacheMonitor] = None
    ) -> "ResolvedSchema":
        """Create an unresolved schema backed by a live :class:`SchemaProvider`."""
        return cls(ProviderStrategy(provider), monitor=monitor)

    @property
    def strategy(self) -> FetchStrategy:
        return self._strategy

    # ---------------- Resolution ---------------- #

    @property
    def is_resolved(self) -> bool:
        return self._epoch.raw is not None

    @property
    def metadata_as_string(self) -> Optional[str]:
        """Raw metadata text, or ``None`` while unresolved."""
        return self._epoch.raw

    async def resolve(self) -> "ResolvedSchema":
        """Fetch and commit the metadata if it has not been fetched yet.

        The first caller performs the fetch; callers arriving while it is in
        flight (from any task, thread or event loop) await the same attempt.

        Returns:
            ResolvedSchema: ``self``, to allow ``schema = await schema.resolve()``.

        Raises:
            Exception: Whatever the fetch strategy or parser raised, unchanged.
                The schema stays unresolved so a later call retries.
            asyncio.CancelledError: If the awaiting task is cancelled mid-fetch.
        """
        while not self.is_resolved:
            with self._lock:
                if self.is_resolved:
                    break
                in_flight = self._in_flight
                if in_flight is None:
                    in_flight = self._in_flight = concurrent.futures.Future()
                    in_flight.set_running_or_notify_cancel()
                    owner = True
                else:
                    owner = False

            if owner:
                await self._run_fetch(in_flight)
                break

            # False means the owning caller was cancelled; try again.
            if await asyncio.shield(asyncio.wrap_future(in_flight)):
                break
        return self

    async def _run_fetch(self, in_flight: concurrent.futures.Future) -> None:
        start_time = time.time()
        try:
            raw, parsed, provider_metadata = await self._fetch()
        except asyncio.CancelledError:
            self._monitor.record_cancellation()
            logger.warning("Metadata resolution cancelled; schema left unresolved")
            self._finish(in_flight, result=False)
            raise
        except Exception as exc:
            self._monitor.record_fetch_failure()
            logger.error(f"Metadata resolution failed: {exc}")
            self._finish(in_flight, error=exc)
            raise

        self._monitor.record_fetch(time.time() - start_time)
        self._commit(raw, parsed, provider_metadata)
        self._finish(in_flight, result=True)
        logger.info(
            f"Resolved metadata ({len(raw)} chars, {len(parsed.entity_types)} entity types)"
        )

    def _finish(
        self,
        in_flight: concurrent.futures.Future,
        result: bool = False,
        error: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            if self._in_flight is in_flight:
                self._in_flight = None
        if error is not None:
            in_flight.set_exception(error)
        else:
            in_flight.set_result(result)

    async def refresh(self) -> "ResolvedSchema":
        """Discard everything cached and fetch the metadata again."""
        self.reset_cache()
        return await self.resolve()

    async def _fetch(self) -> Tuple[str, ParsedSchema, Optional[ProviderMetadata]]:
        strategy = self._strategy
        if isinstance(strategy, ProviderStrategy):
            provider = strategy.provider
            response = await provider.send_schema_request()
            raw = await provider.get_schema_as_string(response)
            provider_metadata = await provider.get_provider_metadata(response)
            parsed = await provider.get_parsed_schema(provider_metadata)
            return raw, parsed, provider_metadata
        if isinstance(strategy, AsyncFunction):
            raw = await strategy.function()
            return raw, self._parser(raw), None
        return strategy.document, self._parser(strategy.document), None

    def _commit(
        self,
        raw: str,
        parsed: ParsedSchema,
        provider_metadata: Optional[ProviderMetadata],
    ) -> None:
        with self._lock:
            epoch = self._epoch
            epoch.raw = raw
            epoch.parsed = parsed
            epoch.provider_metadata = provider_metadata

    def reset_cache(self) -> None:
        """Return to the unresolved state, discarding raw metadata and all views."""
        with self._lock:
            self._epoch = _CacheEpoch()
        self._monitor.record_reset()
        logger.debug("Schema cache reset")

    # ---------------- Derived views ---------------- #

    def _view(self, name: str, compute: Callable[[_CacheEpoch], Any]) -> Any:
        with self._lock:
            epoch = self._epoch
            if epoch.raw is None:
                raise UnresolvedSchemaError(
                    f"Schema metadata is not resolved; await resolve() before reading '{name}'"
                )
            if name in epoch.views:
                self._monitor.record_view_hit(name)
                return epoch.views[name]
            value = compute(epoch)
            epoch.views[name] = value
            self._monitor.record_view_computation(name)
            return value

    @property
    def metadata(self) -> ParsedSchema:
        """The parsed schema of the current epoch."""
        return self._view(METADATA_VIEW, self._create_metadata)

    @property
    def provider_metadata(self) -> ProviderMetadata:
        """Transport metadata; only available for provider-backed schemas.

        Raises:
            UnsupportedOperationError: For string- or function-backed schemas.
            UnresolvedSchemaError: Before resolution.
        """
        if not isinstance(self._strategy, ProviderStrategy):
            raise UnsupportedOperationError(
                "Provider metadata is only available for provider-backed schemas"
            )
        return self._view(PROVIDER_METADATA_VIEW, lambda epoch: epoch.provider_metadata)

    @property
    def entity_sets(self) -> Tuple[EntitySet, ...]:
        return tuple(self._tables())

    @property
    def entity_types(self) -> Tuple[EntityTypeDef, ...]:
        return self._view(ENTITY_TYPES_VIEW, lambda epoch: tuple(self.metadata.entity_types))

    @property
    def complex_types(self) -> Tuple[ComplexTypeDef, ...]:
        return self._view(
            COMPLEX_TYPES_VIEW, lambda epoch: tuple(self.metadata.complex_types)
        )

    @property
    def types_namespace(self) -> str:
        """Namespace of the first schema declaring entity or complex types."""
        metadata = self.metadata
        for item in (*metadata.entity_types, *metadata.complex_types):
            return item.namespace
        return ""

    @property
    def containers_namespace(self) -> str:
        """Namespace of the default (or first) entity container."""
        containers = sorted(self.metadata.entity_containers, key=lambda c: not c.is_default)
        return containers[0].namespace if containers else ""

    def _create_metadata(self, epoch: _CacheEpoch) -> ParsedSchema:
        if epoch.parsed is not None:
            return epoch.parsed
        return self._parser(epoch.raw)

    def _create_tables(self, epoch: _CacheEpoch) -> EntitySetCollection:
        metadata = self.metadata
        return EntitySetCollection(
            EntitySet(
                name=entity_set.name,
                entity_type=entity_type,
                schema=self,
                metadata=metadata,
            )
            for entity_set, entity_type in metadata.iter_entity_sets()
        )

    def _tables(self) -> EntitySetCollection:
        return self._view(ENTITY_SETS_VIEW, self._create_tables)

    # ---------------- Lookups ---------------- #

    def has_table(self, entity_set_name: str) -> bool:
        return self._tables().contains(entity_set_name)

    def find_entity_set(self, entity_set_name: str) -> Optional[EntitySet]:
        """Return the top-level entity set with this name, or ``None``."""
        return self._tables().find(entity_set_name)

    def find_base_entity_set(self, entity_set_path: str) -> Optional[EntitySet]:
        """Look up the first ``/`` segment of ``entity_set_path``; the rest is ignored."""
        return self.find_entity_set(_split_path(entity_set_path)[0])

    def find_concrete_entity_set(self, entity_set_path: str) -> Optional[EntitySet]:
        """Resolve ``"Base"``, ``"Base/"`` or ``"Base/Derived"`` to an entity set.

        Returns:
            The derived entity set for ``"Base/Derived"``, the base set when the
            second segment is empty or absent, ``None`` when either lookup misses.

        Raises:
            InvalidEntitySetPathError: If the base segment is empty.
        """
        segments = _split_path(entity_set_path)
        if len(segments) > 1:
            base = self.find_entity_set(segments[0])
            if base is None or not segments[1]:
                return base
            return base.find_derived_entity_set(segments[1])
        return self.find_entity_set(entity_set_path)

    def get_entity_set(self, entity_set_path: str) -> EntitySet:
        """Like :meth:`find_concrete_entity_set` but raise on a miss.

        Raises:
            EntitySetNotFoundError: If no matching entity set exists.
        """
        entity_set = self.find_concrete_entity_set(entity_set_path)
        if entity_set is None:
            raise EntitySetNotFoundError(entity_set_path)
        return entity_set

    def find_entity_type(self, type_name: str) -> Optional[EntityTypeDef]:
        return self.metadata.find_entity_type(type_name)

    def find_complex_type(self, type_name: str) -> Optional[ComplexTypeDef]:
        return self.metadata.find_complex_type(type_name)

    def summary(self) -> Dict[str, Any]:
        """JSON-ready overview used by the CLI and the inspection API."""
        return {
            "resolved": self.is_resolved,
            "types_namespace": self.types_namespace,
            "containers_namespace": self.containers_namespace,
            "entity_sets": [entity_set.name for entity_set in self.entity_sets],
            "entity_types": [entity_type.full_name for entity_type in self.entity_types],
            "complex_types": [
                complex_type.full_name for complex_type in self.complex_types
            ],
        }


def _split_path(entity_set_path: str) -> List[str]:
    segments = entity_set_path.split("/")
    if not segments[0]:
        raise InvalidEntitySetPathError(
            f"Entity set path '{entity_set_path}' has an empty base segment"
        )
    return segments
