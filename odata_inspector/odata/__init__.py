"""
odata_inspector.odata - Service access
=======================================

- ODataService: entity-set reads with paging and schema discovery
- MetadataLoader: $metadata retrieval and parsing
- EntityActions: batch DELETE/PATCH of selected result records

"""

from odata_inspector.odata.actions import ActionPlan, BatchReport, EntityActions, PlannedRequest
from odata_inspector.odata.metadata import MetadataLoader
from odata_inspector.odata.service import ODataService

__all__ = [
    "ActionPlan",
    "BatchReport",
    "EntityActions",
    "MetadataLoader",
    "ODataService",
    "PlannedRequest",
]
