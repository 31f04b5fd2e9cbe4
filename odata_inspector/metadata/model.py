"""
odata_inspector.metadata.model - Normalized schema graph
=========================================================

Dialect-independent representation of an OData service model. Instances
are produced by :class:`~odata_inspector.metadata.parser.SchemaParser`
and are read-only for the rest of the session.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple


def unqualify(type_name: Optional[str]) -> Optional[str]:
    """
    Reduce a type reference to its bare name.

    Drops a ``Collection(...)`` wrapper and any namespace or alias prefix.

    Examples
    --------
    >>> unqualify("Collection(NorthwindModel.Order_Detail)")
    'Order_Detail'
    """
    if not type_name:
        return None
    name = type_name.strip()
    if name.startswith("Collection(") and name.endswith(")"):
        name = name[len("Collection("):-1]
    return name.rsplit(".", 1)[-1] or None


@dataclass(frozen=True)
class PropertyDefinition:
    """A structural property declared on an entity type."""
    name: str
    edm_type: str
    nullable: bool = True
    max_length: Optional[int] = None
    fixed_length: bool = False
    precision: Optional[int] = None
    scale: Optional[int] = None
    unicode: bool = True
    default_value: Optional[str] = None
    concurrency_mode: Optional[str] = None


@dataclass(frozen=True)
class ReferentialConstraint:
    """Maps a property of the declaring type to one on the target type."""
    source_property: str
    target_property: str


@dataclass(frozen=True)
class NavigationProperty:
    """
    A relationship from one entity type to another.

    ``target_entity_type_name`` is always unqualified, or None when the
    relationship could not be resolved.
    """
    name: str
    target_entity_type_name: Optional[str]
    source_multiplicity: Optional[str] = None
    target_multiplicity: Optional[str] = None
    referential_constraints: Tuple[ReferentialConstraint, ...] = ()
    relationship: Optional[str] = None
    partner: Optional[str] = None

    @property
    def is_collection(self) -> bool:
        return self.target_multiplicity == "*"


@dataclass(frozen=True)
class EntityType:
    """
    A named record shape with an ordered key.

    ``keys`` order is the order key values appear in predicates.
    """
    name: str
    keys: List[str] = field(default_factory=list)
    properties: Dict[str, PropertyDefinition] = field(default_factory=dict)
    navigation_properties: Dict[str, NavigationProperty] = field(default_factory=dict)
    base_type: Optional[str] = None
    is_abstract: bool = False

    def key_properties(self) -> List[PropertyDefinition]:
        return [self.properties[k] for k in self.keys if k in self.properties]

    def navigation(self, name: str) -> Optional[NavigationProperty]:
        return self.navigation_properties.get(name)


@dataclass(frozen=True)
class EntitySet:
    """An addressable collection; ``entity_type_name`` stays qualified."""
    name: str
    entity_type_name: str


@dataclass(frozen=True)
class Schema:
    """
    Parsed metadata document.

    Attributes
    ----------
    namespace : str
        Namespace of the first ``Schema`` element in the document
    entities : dict
        Entity type name -> EntityType, in document order
    entity_sets : dict
        Entity set name -> EntitySet, in document order
    version : str
        Detected OData version: "V2", "V3", "V4" or "Unknown"
    """
    namespace: str
    entities: Dict[str, EntityType] = field(default_factory=dict)
    entity_sets: Dict[str, EntitySet] = field(default_factory=dict)
    version: str = "Unknown"

    def entity(self, name: Optional[str]) -> Optional[EntityType]:
        """Look up an entity type by bare or qualified name."""
        bare = unqualify(name)
        if bare is None:
            return None
        return self.entities.get(bare)

    def entity_set(self, name: Optional[str]) -> Optional[EntitySet]:
        if not name:
            return None
        return self.entity_sets.get(name)

    def entity_type_for_set(self, set_name: Optional[str]) -> Optional[EntityType]:
        """Resolve an entity set to its entity type, if both are known."""
        es = self.entity_set(set_name)
        if es is None:
            return None
        return self.entity(es.entity_type_name)

    def entity_set_for_type(self, type_name: Optional[str]) -> Optional[EntitySet]:
        """Return the first entity set whose type matches ``type_name``."""
        bare = unqualify(type_name)
        if bare is None:
            return None
        for es in self.entity_sets.values():
            if unqualify(es.entity_type_name) == bare:
                return es
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
