"""
odata_inspector.metadata - OData metadata model
================================================

- SchemaParser: EDMX/CSDL (V2, V3, V4) -> normalized Schema
- AssociationResolver: V2/V3 Association index used during parsing
- Schema, EntityType, EntitySet, NavigationProperty, PropertyDefinition
- edm: primitive type catalog and key-literal formatting

"""

from odata_inspector.metadata.model import (
    EntitySet,
    EntityType,
    NavigationProperty,
    PropertyDefinition,
    ReferentialConstraint,
    Schema,
    unqualify,
)
from odata_inspector.metadata.associations import AssociationIndex, AssociationResolver
from odata_inspector.metadata.parser import MetadataParseError, SchemaParser, detect_odata_version

__all__ = [
    "AssociationIndex",
    "AssociationResolver",
    "EntitySet",
    "EntityType",
    "MetadataParseError",
    "NavigationProperty",
    "PropertyDefinition",
    "ReferentialConstraint",
    "Schema",
    "SchemaParser",
    "detect_odata_version",
    "unqualify",
]
