"""
odata_inspector.api.models - Pydantic models for API requests/responses
========================================================================
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Example defaults (public Northwind V2 service)
# ---------------------------------------------------------------------------

EXAMPLE_SERVICE_URL = "https://services.odata.org/V2/Northwind/Northwind.svc/"
EXAMPLE_ENTITY_SET = "Orders"
EXAMPLE_ITEM = {"OrderID": 10248, "CustomerID": "VINET", "__selected": True}


class ParseRequest(BaseModel):
    """Raw $metadata document to parse."""

    xml: str = Field(description="EDMX/CSDL document (OData V2, V3 or V4)")


class SchemaResponse(BaseModel):
    """Normalized schema graph."""

    namespace: str
    version: str
    entities: Dict[str, Any]
    entity_sets: Dict[str, Any]


class ResolveRequest(BaseModel):
    """Request to compute the address of a single record."""

    item: Dict[str, Any] = Field(
        description="Result record as returned by the service",
        json_schema_extra={"example": EXAMPLE_ITEM},
    )
    base_url: str = Field(
        default=EXAMPLE_SERVICE_URL,
        description="Service root URL",
    )
    entity_set: Optional[str] = Field(
        default=EXAMPLE_ENTITY_SET,
        description="Entity set the record belongs to",
    )
    metadata_xml: Optional[str] = Field(
        default=None,
        description="$metadata document; enables schema-based key predicates",
    )
    version: Optional[str] = Field(
        default=None,
        description="V2, V3 or V4; defaults to the version detected from metadata_xml",
    )


class ResolveResponse(BaseModel):
    uri: Optional[str] = None
    predicate: Optional[str] = None
    addressable: bool


class PlanRequest(BaseModel):
    """Request to preview a batch action on selected records."""

    data: List[Dict[str, Any]] = Field(
        description="Top-level result records; selected ones carry the selection mark",
        json_schema_extra={"example": [EXAMPLE_ITEM]},
    )
    entity_set: str = Field(default=EXAMPLE_ENTITY_SET)
    action: Literal["delete", "update"] = Field(default="delete")
    base_url: str = Field(default=EXAMPLE_SERVICE_URL)
    metadata_xml: Optional[str] = Field(default=None)
    selection_key: str = Field(
        default="__selected",
        description="Record field whose value True marks a selection",
    )


class PlanResponse(BaseModel):
    action: str
    entity_set: str
    count: int
    skipped: int
    lines: List[str]
    predicates: List[str]


class ExecuteRequest(BaseModel):
    """Request to run a batch action against the configured service."""

    data: List[Dict[str, Any]]
    entity_set: str = Field(default=EXAMPLE_ENTITY_SET)
    action: Literal["delete", "update"] = Field(default="delete")
    payload: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Properties to merge (update only)",
    )
    selection_key: str = Field(default="__selected")


class ExecuteResponse(BaseModel):
    succeeded: int
    failed: int
    skipped: int
    lines: List[str]
    report: str
