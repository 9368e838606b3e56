"""Core data structures describing an OData service schema.

These dataclasses are produced by the CSDL parser and the metadata providers
and consumed by :class:`~odata_schema_cache.schema.ResolvedSchema` and the
layers above it (query builders, entity mappers, the inspection API). They
avoid framework dependencies so they can be cached and serialized freely.

Overview:
        * ``ParsedSchema`` is the immutable structured form of one ``$metadata``
            document: namespaces, entity types, complex types and containers.
        * ``ProviderMetadata`` captures what the transport learned while fetching
            the document (protocol version header, ETag, content type).
        * ``EntitySet`` is the queryable view handed to callers. It is bound to
            the owning schema so derived (polymorphic) sets can be located lazily.

Typical construction (simplified)::

        from odata_schema_cache.models import EntityTypeDef, PropertyDef

        product = EntityTypeDef(
                name="Product",
                namespace="NorthwindModel",
                key=("ProductID",),
                properties=(PropertyDef(name="ProductID", type_name="Edm.Int32", nullable=False),),
        )
        product.full_name  # 'NorthwindModel.Product'
        payload = product.to_dict()

Design notes:
        * All schema dataclasses are frozen and hold tuples, so a parsed schema
            can be shared between threads without copying.
        * ``to_dict`` produces stable keys to simplify client-side caching.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from .schema import ResolvedSchema


@dataclass(frozen=True)
class PropertyDef:
    """A structural property of an entity or complex type.

    Attributes:
        name: Property name as declared in the CSDL.
        type_name: EDM type string (``Edm.String``, ``NS.Address``, ``Collection(Edm.Int32)``).
        nullable: ``False`` when the CSDL declares ``Nullable="false"``.
    """

    name: str
    type_name: str
    nullable: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type_name, "nullable": self.nullable}


@dataclass(frozen=True)
class NavigationPropertyDef:
    """A navigation property (association end) of an entity type.

    Attributes:
        name: Navigation property name.
        target: Target type (V4 ``Type``) or target role (V1-V3 ``ToRole``).
    """

    name: str
    target: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "target": self.target}


@dataclass(frozen=True)
class EntityTypeDef:
    """Structural description of an entity type.

    Attributes:
        name: Unqualified type name.
        namespace: Namespace of the declaring schema.
        base_type: Qualified name of the base type, if the type derives from one.
        key: Names of the key properties (empty for derived types that inherit the key).
        properties: Declared structural properties.
        navigation_properties: Declared navigation properties.
        abstract: ``True`` for abstract entity types.
        open_type: ``True`` for open entity types.
    """

    name: str
    namespace: str
    base_type: Optional[str] = None
    key: Tuple[str, ...] = ()
    properties: Tuple[PropertyDef, ...] = ()
    navigation_properties: Tuple[NavigationPropertyDef, ...] = ()
    abstract: bool = False
    open_type: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "full_name": self.full_name,
            "base_type": self.base_type,
            "key": list(self.key),
            "properties": [prop.to_dict() for prop in self.properties],
            "navigation_properties": [nav.to_dict() for nav in self.navigation_properties],
            "abstract": self.abstract,
            "open_type": self.open_type,
        }


@dataclass(frozen=True)
class ComplexTypeDef:
    """Structural description of a complex (value) type."""

    name: str
    namespace: str
    base_type: Optional[str] = None
    properties: Tuple[PropertyDef, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "namespace": self.namespace,
            "full_name": self.full_name,
            "base_type": self.base_type,
            "properties": [prop.to_dict() for prop in self.properties],
        }


@dataclass(frozen=True)
class EntitySetDef:
    """An ``EntitySet`` element of an entity container (type name as written)."""

    name: str
    entity_type: str


@dataclass(frozen=True)
class EntityContainerDef:
    name: str
    namespace: str
    entity_sets: Tuple[EntitySetDef, ...] = ()
    is_default: bool = False


@dataclass(frozen=True)
class SchemaNamespace:
    namespace: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class ParsedSchema:
    """Immutable structured form of a ``$metadata`` document.

    Attributes:
        edmx_version: ``Version`` attribute of the ``Edmx`` root (``1.0``, ``4.0``...).
        namespaces: Declared schema namespaces with optional aliases.
        entity_types: Entity types across all schemas, in document order.
        complex_types: Complex types across all schemas, in document order.
        entity_containers: Entity containers across all schemas.

    Example:
        >>> schema = ParsedSchema(edmx_version="4.0")
        >>> schema.iter_entity_sets()
        []
    """

    edmx_version: Optional[str] = None
    namespaces: Tuple[SchemaNamespace, ...] = ()
    entity_types: Tuple[EntityTypeDef, ...] = ()
    complex_types: Tuple[ComplexTypeDef, ...] = ()
    entity_containers: Tuple[EntityContainerDef, ...] = ()

    def qualify(self, type_name: str) -> str:
        """Replace a leading schema alias with the namespace it stands for."""
        for ns in self.namespaces:
            if ns.alias and type_name.startswith(ns.alias + "."):
                return ns.namespace + type_name[len(ns.alias) :]
        return type_name

    def find_entity_type(self, type_name: str) -> Optional[EntityTypeDef]:
        """Locate an entity type by qualified, alias-qualified or bare name."""
        qualified = self.qualify(type_name)
        for entity_type in self.entity_types:
            if entity_type.full_name == qualified:
                return entity_type
        if "." not in type_name:
            for entity_type in self.entity_types:
                if entity_type.name == type_name:
                    return entity_type
        return None

    def find_complex_type(self, type_name: str) -> Optional[ComplexTypeDef]:
        """Locate a complex type by qualified, alias-qualified or bare name."""
        qualified = self.qualify(type_name)
        for complex_type in self.complex_types:
            if complex_type.full_name == qualified:
                return complex_type
        if "." not in type_name:
            for complex_type in self.complex_types:
                if complex_type.name == type_name:
                    return complex_type
        return None

    def iter_entity_sets(self) -> List[Tuple[EntitySetDef, EntityTypeDef]]:
        """Return every container entity set paired with its entity type.

        Entity sets whose type cannot be located are skipped; the default
        container (if flagged) is listed first.
        """
        containers = sorted(self.entity_containers, key=lambda c: not c.is_default)
        pairs: List[Tuple[EntitySetDef, EntityTypeDef]] = []
        for container in containers:
            for entity_set in container.entity_sets:
                entity_type = self.find_entity_type(entity_set.entity_type)
                if entity_type is not None:
                    pairs.append((entity_set, entity_type))
        return pairs

    def derived_entity_types(self, base: EntityTypeDef) -> List[EntityTypeDef]:
        """Return all entity types deriving (directly or transitively) from ``base``."""
        derived: List[EntityTypeDef] = []
        frontier = [base.full_name]
        seen = {base.full_name}
        while frontier:
            parent_name = frontier.pop(0)
            for entity_type in self.entity_types:
                if entity_type.base_type is None:
                    continue
                if self.qualify(entity_type.base_type) != parent_name:
                    continue
                if entity_type.full_name in seen:
                    continue
                seen.add(entity_type.full_name)
                derived.append(entity_type)
                frontier.append(entity_type.full_name)
        return derived


@dataclass(frozen=True)
class ProviderMetadata:
    """Transport-level facts gathered from a single ``$metadata`` round trip.

    Attributes:
        source_url: URL the document was requested from.
        document: The raw document text.
        status_code: HTTP status of the response.
        content_type: ``Content-Type`` response header.
        protocol_version: ``OData-Version`` (V4) or ``DataServiceVersion`` (V1-V3) header.
        etag: ``ETag`` response header, if any.
    """

    source_url: str
    document: str
    status_code: int = 200
    content_type: Optional[str] = None
    protocol_version: Optional[str] = None
    etag: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_url": self.source_url,
            "status_code": self.status_code,
            "content_type": self.content_type,
            "protocol_version": self.protocol_version,
            "etag": self.etag,
        }


@dataclass(frozen=True)
class EntitySet:
    """A named, queryable collection bound to an entity type.

    Derived entity sets (``"Products/DiscontinuedProduct"``) carry the base set
    as ``parent``. ``metadata`` is the parsed schema the set was built from, so
    derived lookups keep answering from that document after the owning schema
    is reset or refreshed. Equality ignores both schema references.
    """

    name: str
    entity_type: EntityTypeDef
    parent: Optional["EntitySet"] = None
    schema: Optional["ResolvedSchema"] = field(default=None, compare=False, repr=False)
    metadata: Optional[ParsedSchema] = field(default=None, compare=False, repr=False)

    @property
    def path(self) -> str:
        return f"{self.parent.path}/{self.name}" if self.parent else self.name

    def find_derived_entity_set(self, name: str) -> Optional["EntitySet"]:
        """Return the derived entity set named after a subtype of this set's type.

        Matching is exact first, then case-insensitive. Returns ``None`` when no
        derived type of that name exists (or the set carries no parsed schema).
        """
        if self.metadata is None:
            return None
        candidates = self.metadata.derived_entity_types(self.entity_type)
        match = next((t for t in candidates if t.name == name or t.full_name == name), None)
        if match is None:
            lowered = name.lower()
            match = next(
                (
                    t
                    for t in candidates
                    if t.name.lower() == lowered or t.full_name.lower() == lowered
                ),
                None,
            )
        if match is None:
            return None
        return EntitySet(
            name=match.name,
            entity_type=match,
            parent=self,
            schema=self.schema,
            metadata=self.metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "entity_type": self.entity_type.full_name,
            "parent": self.parent.name if self.parent else None,
        }
