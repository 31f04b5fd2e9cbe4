"""
odata_inspector.metadata.parser - EDMX/CSDL schema parser
==========================================================

Parses OData V2, V3 and V4 ``$metadata`` documents into one normalized
:class:`~odata_inspector.metadata.model.Schema`.

Parsing is deliberately tolerant. Production services routinely publish
slightly non-conformant metadata, so missing attributes fall back to
defaults and unresolvable references degrade to empty values. The only
fatal condition is a document without any ``Schema`` element.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from typing import Dict, List, Optional, Set, Union
import xml.etree.ElementTree as ET

from odata_inspector.metadata.associations import AssociationIndex, AssociationResolver
from odata_inspector.metadata.model import (
    EntitySet,
    EntityType,
    NavigationProperty,
    PropertyDefinition,
    ReferentialConstraint,
    Schema,
    unqualify,
)
from odata_inspector.metadata.xmlutil import attr, children, descendants, first_child, strip_ns

logger = logging.getLogger("odata_inspector.metadata")

_CSDL_NAMESPACE_VERSIONS = {
    "http://schemas.microsoft.com/ado/2006/04/edm": "V2",
    "http://schemas.microsoft.com/ado/2007/05/edm": "V2",
    "http://schemas.microsoft.com/ado/2008/09/edm": "V2",
    "http://schemas.microsoft.com/ado/2009/11/edm": "V3",
    "http://docs.oasis-open.org/odata/ns/edm": "V4",
}


class MetadataParseError(ValueError):
    """Raised when a document contains no recognizable ``Schema`` element."""


def _load(xml_text: Union[str, bytes]) -> ET.Element:
    if isinstance(xml_text, str):
        xml_text = xml_text.lstrip("\ufeff").strip()
    try:
        return ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise MetadataParseError(f"Metadata is not well-formed XML: {e}") from e


def _version_from_root(root: ET.Element) -> str:
    if strip_ns(root.tag) == "Edmx":
        edmx_version = attr(root, "Version") or ""
        if edmx_version.startswith("4."):
            return "V4"
        ds = first_child(root, "DataServices")
        if ds is not None:
            versions = [attr(ds, "DataServiceVersion"), attr(ds, "MaxDataServiceVersion")]
            best = max((v for v in versions if v), default="")
            if best.startswith("3."):
                return "V3"
            if best.startswith(("1.", "2.")):
                return "V2"
    for schema in [root] + list(descendants(root, "Schema")):
        if strip_ns(schema.tag) != "Schema" or "}" not in schema.tag:
            continue
        ns_uri = schema.tag[1:].split("}", 1)[0]
        if ns_uri in _CSDL_NAMESPACE_VERSIONS:
            return _CSDL_NAMESPACE_VERSIONS[ns_uri]
    return "Unknown"


def _version_from_text(text: str) -> str:
    if 'Version="4.0"' in text:
        return "V4"
    if 'Version="2.0"' in text:
        return "V2"
    if 'Version="3.0"' in text:
        return "V3"
    return "Unknown"


def detect_odata_version(xml_text: Union[str, bytes]) -> str:
    """
    Detect the OData protocol version of a metadata document.

    Parameters
    ----------
    xml_text : str or bytes
        Raw ``$metadata`` content

    Returns
    -------
    str
        "V2", "V3", "V4" or "Unknown"
    """
    text = xml_text.decode("utf-8", "replace") if isinstance(xml_text, bytes) else xml_text
    try:
        version = _version_from_root(_load(xml_text))
    except MetadataParseError:
        version = "Unknown"
    if version == "Unknown":
        version = _version_from_text(text)
    return version


def _int_attr(node: ET.Element, name: str) -> Optional[int]:
    raw = attr(node, name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        # e.g. MaxLength="Max"
        return None


def _read_property(node: ET.Element) -> PropertyDefinition:
    return PropertyDefinition(
        name=attr(node, "Name") or "",
        edm_type=attr(node, "Type") or "",
        nullable=attr(node, "Nullable") != "false",
        max_length=_int_attr(node, "MaxLength"),
        fixed_length=attr(node, "FixedLength") == "true",
        precision=_int_attr(node, "Precision"),
        scale=_int_attr(node, "Scale"),
        unicode=attr(node, "Unicode") != "false",
        default_value=attr(node, "DefaultValue") or None,
        concurrency_mode=attr(node, "ConcurrencyMode") or None,
    )


@dataclass
class _RawEntity:
    name: str
    base_type: Optional[str]
    is_abstract: bool
    keys: List[str] = field(default_factory=list)
    properties: Dict[str, PropertyDefinition] = field(default_factory=dict)
    navigations: Dict[str, NavigationProperty] = field(default_factory=dict)


class SchemaParser:
    """
    EDMX/CSDL parser for all OData dialects.

    Parameters
    ----------
    associations : AssociationResolver, optional
        Resolver used for V2/V3 navigation properties

    Examples
    --------
    >>> schema = SchemaParser().parse(xml_text)
    >>> schema.entity("Order").keys
    ['OrderID']
    """

    def __init__(self, associations: Optional[AssociationResolver] = None) -> None:
        self.associations = associations or AssociationResolver()

    def parse(self, xml_text: Union[str, bytes]) -> Schema:
        """
        Parse a metadata document.

        Raises
        ------
        MetadataParseError
            If the document holds no ``Schema`` element.
        """
        root = _load(xml_text)
        if strip_ns(root.tag) == "Schema":
            schemas = [root]
        else:
            schemas = list(descendants(root, "Schema"))
        if not schemas:
            raise MetadataParseError("No Schema element found in metadata document")

        # multi-Schema documents are qualified with the first namespace only
        namespace = attr(schemas[0], "Namespace") or ""
        index = self.associations.index(schemas, namespace)

        raw: Dict[str, _RawEntity] = {}
        for schema in schemas:
            for node in children(schema, "EntityType"):
                entity = self._read_entity(node, index)
                raw.setdefault(entity.name, entity)

        entities = self._finalize(raw)
        entity_sets = self._read_entity_sets(root)

        version = _version_from_root(root)
        if version == "Unknown" and isinstance(xml_text, str):
            version = _version_from_text(xml_text)

        logger.info(
            "parsed metadata: namespace=%r, version=%s, entities=%d, entity_sets=%d, associations=%d",
            namespace, version, len(entities), len(entity_sets), len(index),
        )
        return Schema(
            namespace=namespace,
            entities=entities,
            entity_sets=entity_sets,
            version=version,
        )

    # ---------------- entity types ----------------

    def _read_entity(self, node: ET.Element, index: AssociationIndex) -> _RawEntity:
        entity = _RawEntity(
            name=attr(node, "Name") or "Unknown",
            base_type=attr(node, "BaseType") or None,
            is_abstract=attr(node, "Abstract") == "true",
        )

        key_node = first_child(node, "Key")
        if key_node is not None:
            for ref in children(key_node, "PropertyRef"):
                name = attr(ref, "Name")
                if name:
                    entity.keys.append(name)

        for p in children(node, "Property"):
            prop = _read_property(p)
            if prop.name:
                entity.properties[prop.name] = prop

        for n in children(node, "NavigationProperty"):
            nav = self._read_navigation(n, index, entity.name)
            entity.navigations[nav.name] = nav

        return entity

    def _read_navigation(
        self,
        node: ET.Element,
        index: AssociationIndex,
        owner: str,
    ) -> NavigationProperty:
        name = attr(node, "Name") or "Unknown"
        v4_type = attr(node, "Type")

        if v4_type:
            multiplicity = "*" if v4_type.strip().startswith("Collection(") else "1"
            constraints = []
            for rc in children(node, "ReferentialConstraint"):
                prop = attr(rc, "Property")
                ref_prop = attr(rc, "ReferencedProperty")
                if prop and ref_prop:
                    constraints.append(ReferentialConstraint(prop, ref_prop))
            return NavigationProperty(
                name=name,
                target_entity_type_name=unqualify(v4_type),
                target_multiplicity=multiplicity,
                referential_constraints=tuple(constraints),
                partner=attr(node, "Partner") or None,
            )

        relationship = attr(node, "Relationship")
        from_role = attr(node, "FromRole")
        to_role = attr(node, "ToRole")

        assoc = index.lookup(relationship) if relationship and from_role and to_role else None
        if assoc is None:
            if relationship:
                logger.debug("unresolved relationship %r on %s.%s", relationship, owner, name)
            return NavigationProperty(
                name=name,
                target_entity_type_name=None,
                relationship=relationship,
            )

        to_end = assoc.end(to_role)
        from_end = assoc.end(from_role)
        constraints = []
        c = assoc.constraint
        if c is not None:
            if c.principal.role == from_role and c.dependent.role == to_role:
                constraints.append(ReferentialConstraint(c.principal.property_ref, c.dependent.property_ref))
            elif c.dependent.role == from_role and c.principal.role == to_role:
                constraints.append(ReferentialConstraint(c.dependent.property_ref, c.principal.property_ref))

        return NavigationProperty(
            name=name,
            target_entity_type_name=unqualify(to_end.type) if to_end else None,
            source_multiplicity=from_end.multiplicity if from_end else None,
            target_multiplicity=to_end.multiplicity if to_end else None,
            referential_constraints=tuple(constraints),
            relationship=relationship,
        )

    # ---------------- finalization ----------------

    def _inherit(
        self,
        name: str,
        raw: Dict[str, _RawEntity],
        done: Dict[str, _RawEntity],
        visiting: Set[str],
    ) -> _RawEntity:
        if name in done:
            return done[name]
        entity = raw[name]
        base_name = unqualify(entity.base_type)
        if not base_name or base_name not in raw or base_name in visiting:
            done[name] = entity
            return entity

        visiting.add(name)
        base = self._inherit(base_name, raw, done, visiting)
        visiting.discard(name)

        merged = _RawEntity(
            name=entity.name,
            base_type=entity.base_type,
            is_abstract=entity.is_abstract,
            keys=list(entity.keys or base.keys),
            properties={**base.properties, **entity.properties},
            navigations={**base.navigations, **entity.navigations},
        )
        done[name] = merged
        return merged

    def _finalize(self, raw: Dict[str, _RawEntity]) -> Dict[str, EntityType]:
        done: Dict[str, _RawEntity] = {}
        for name in raw:
            self._inherit(name, raw, done, set())

        # V4 declares source multiplicity and principal-side constraints
        # only through the partner on the target type
        for entity in done.values():
            for nav_name, nav in list(entity.navigations.items()):
                if not nav.partner or nav.source_multiplicity is not None:
                    continue
                target = done.get(nav.target_entity_type_name or "")
                partner = target.navigations.get(nav.partner) if target else None
                if partner is None:
                    continue
                constraints = nav.referential_constraints or tuple(
                    ReferentialConstraint(c.target_property, c.source_property)
                    for c in partner.referential_constraints
                )
                entity.navigations[nav_name] = replace(
                    nav,
                    source_multiplicity=partner.target_multiplicity,
                    referential_constraints=constraints,
                )

        out: Dict[str, EntityType] = {}
        for name in raw:
            entity = done[name]
            keys = [k for k in entity.keys if k in entity.properties]
            if len(keys) != len(entity.keys):
                dangling = [k for k in entity.keys if k not in entity.properties]
                logger.warning("entity %s: dropping key(s) without property: %s", name, dangling)
            out[name] = EntityType(
                name=entity.name,
                keys=keys,
                properties=dict(entity.properties),
                navigation_properties=dict(entity.navigations),
                base_type=entity.base_type,
                is_abstract=entity.is_abstract,
            )
        return out

    # ---------------- entity sets ----------------

    def _read_entity_sets(self, root: ET.Element) -> Dict[str, EntitySet]:
        out: Dict[str, EntitySet] = {}
        for container in descendants(root, "EntityContainer"):
            for node in children(container, "EntitySet"):
                name = attr(node, "Name")
                type_name = attr(node, "EntityType")
                if not name or not type_name:
                    continue
                out.setdefault(name, EntitySet(name=name, entity_type_name=type_name))
        return out
