"""Utilities to parse OData ``$metadata`` (EDMX/CSDL) documents.

This module converts an EDMX document into an immutable
:class:`~odata_schema_cache.models.ParsedSchema`. It is the default schema
parser used by :class:`~odata_schema_cache.schema.ResolvedSchema` when the
metadata text is supplied directly or obtained from an async function.

Supported dialects:
* OData V1-V3 (``http://schemas.microsoft.com/ado/2007/06/edmx`` with any of
    the Microsoft EDM namespaces)
* OData V4 (``http://docs.oasis-open.org/odata/ns/edmx``)

Elements are matched by local name so the parser does not need to track the
many EDM namespace revisions. Only the structural subset needed by the schema
cache is extracted: schemas, entity types (keys, properties, navigation
properties, inheritance), complex types and entity containers.

Typical usage:
        from odata_schema_cache.csdl_parser import parse_csdl, ParserConfig

        schema = parse_csdl(metadata_text)
        print([t.name for t in schema.entity_types])

        strict = parse_csdl(metadata_text, config=ParserConfig(require_keys=True))

Notes:
* Annotations, functions/actions and enum types are ignored.
* V1-V3 navigation properties report their ``ToRole`` as target; V4 reports ``Type``.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import SchemaParseError
from .models import (
    ComplexTypeDef,
    EntityContainerDef,
    EntitySetDef,
    EntityTypeDef,
    NavigationPropertyDef,
    ParsedSchema,
    PropertyDef,
    SchemaNamespace,
)


@dataclass
class ParserConfig:
    """Configuration for CSDL parsing behavior.

    Args:
        include_navigation_properties: When False, navigation properties are
            not collected (smaller schema objects for large services).
        require_keys: When True, an entity type without a key and without a
            base type to inherit one from raises :class:`SchemaParseError`.
    """

    include_navigation_properties: bool = True
    require_keys: bool = False


class CSDLParser:
    """Parse one EDMX document into a :class:`ParsedSchema`.

    Example:
        parser = CSDLParser(metadata_text)
        schema = parser.parse()
        print(schema.edmx_version, len(schema.entity_types))
    """

    def __init__(self, document: str, config: Optional[ParserConfig] = None) -> None:
        self.config = config or ParserConfig()
        try:
            self.root = ET.fromstring(document.lstrip("\ufeff"))
        except ET.ParseError as exc:
            raise SchemaParseError(f"Metadata document is not well-formed XML: {exc}") from exc

    def parse(self) -> ParsedSchema:
        """Return the structured schema for the document.

        Raises:
            SchemaParseError: If the root is neither ``Edmx`` nor ``Schema``.
        """
        root_name = _local_name(self.root.tag)
        if root_name == "Edmx":
            edmx_version = self.root.get("Version")
            schema_elements = [
                schema
                for data_services in _children(self.root, "DataServices")
                for schema in _children(data_services, "Schema")
            ]
        elif root_name == "Schema":
            edmx_version = None
            schema_elements = [self.root]
        else:
            raise SchemaParseError(
                f"Unexpected metadata root element '{root_name}' (expected Edmx)"
            )

        namespaces: List[SchemaNamespace] = []
        entity_types: List[EntityTypeDef] = []
        complex_types: List[ComplexTypeDef] = []
        containers: List[EntityContainerDef] = []

        for schema_elem in schema_elements:
            namespace = schema_elem.get("Namespace", "")
            namespaces.append(
                SchemaNamespace(namespace=namespace, alias=schema_elem.get("Alias"))
            )
            for node in _children(schema_elem, "EntityType"):
                entity_types.append(self._build_entity_type(node, namespace))
            for node in _children(schema_elem, "ComplexType"):
                complex_types.append(self._build_complex_type(node, namespace))
            for node in _children(schema_elem, "EntityContainer"):
                containers.append(self._build_container(node, namespace, edmx_version))

        return ParsedSchema(
            edmx_version=edmx_version,
            namespaces=tuple(namespaces),
            entity_types=tuple(entity_types),
            complex_types=tuple(complex_types),
            entity_containers=tuple(containers),
        )

    # ---------------- Internal helpers ---------------- #

    def _build_entity_type(self, node: ET.Element, namespace: str) -> EntityTypeDef:
        name = node.get("Name")
        if not name:
            raise SchemaParseError("Encountered EntityType without a Name")

        key: Tuple[str, ...] = ()
        key_elem = _first_child(node, "Key")
        if key_elem is not None:
            key = tuple(
                ref.get("Name", "") for ref in _children(key_elem, "PropertyRef")
            )
        base_type = node.get("BaseType")
        if self.config.require_keys and not key and base_type is None:
            raise SchemaParseError(f"Entity type '{namespace}.{name}' declares no key")

        navigation: Tuple[NavigationPropertyDef, ...] = ()
        if self.config.include_navigation_properties:
            navigation = tuple(
                NavigationPropertyDef(
                    name=nav.get("Name", ""),
                    target=nav.get("Type") or nav.get("ToRole"),
                )
                for nav in _children(node, "NavigationProperty")
            )

        return EntityTypeDef(
            name=name,
            namespace=namespace,
            base_type=base_type,
            key=key,
            properties=self._build_properties(node),
            navigation_properties=navigation,
            abstract=_parse_bool(node.get("Abstract")),
            open_type=_parse_bool(node.get("OpenType")),
        )

    def _build_complex_type(self, node: ET.Element, namespace: str) -> ComplexTypeDef:
        name = node.get("Name")
        if not name:
            raise SchemaParseError("Encountered ComplexType without a Name")
        return ComplexTypeDef(
            name=name,
            namespace=namespace,
            base_type=node.get("BaseType"),
            properties=self._build_properties(node),
        )

    def _build_properties(self, node: ET.Element) -> Tuple[PropertyDef, ...]:
        return tuple(
            PropertyDef(
                name=prop.get("Name", ""),
                type_name=prop.get("Type", ""),
                nullable=prop.get("Nullable", "true").lower() != "false",
            )
            for prop in _children(node, "Property")
        )

    def _build_container(
        self, node: ET.Element, namespace: str, edmx_version: Optional[str]
    ) -> EntityContainerDef:
        # V4 allows a single container per service, so it is always the default.
        is_default = edmx_version == "4.0" or any(
            _local_name(attr) == "IsDefaultEntityContainer" and _parse_bool(value)
            for attr, value in node.attrib.items()
        )
        return EntityContainerDef(
            name=node.get("Name", ""),
            namespace=namespace,
            entity_sets=tuple(
                EntitySetDef(name=es.get("Name", ""), entity_type=es.get("EntityType", ""))
                for es in _children(node, "EntitySet")
            ),
            is_default=is_default,
        )


def _local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _children(node: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in node if _local_name(child.tag) == name]


def _first_child(node: ET.Element, name: str) -> Optional[ET.Element]:
    for child in node:
        if _local_name(child.tag) == name:
            return child
    return None


def _parse_bool(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() == "true"


def parse_csdl(document: str, config: Optional[ParserConfig] = None) -> ParsedSchema:
    """Parse a ``$metadata`` document and return its structured schema.

    This is a convenience wrapper around :class:`CSDLParser` and the default
    schema parser of :class:`~odata_schema_cache.schema.ResolvedSchema`.

    Args:
        document: EDMX document text.
        config: Optional :class:`ParserConfig` instance.

    Returns:
        The immutable :class:`ParsedSchema`.

    Raises:
        SchemaParseError: If the document is malformed or not an EDMX document.
    """
    return CSDLParser(document, config=config).parse()
