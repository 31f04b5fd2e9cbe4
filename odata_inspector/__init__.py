"""
OData Inspector (odata_inspector)
=================================

Metadata model and resource-addressing engine for OData V2, V3 and V4
services.

Usage
-----
>>> from odata_inspector import SchemaParser, collect, resolve
>>>
>>> schema = SchemaParser().parse(metadata_xml)
>>> order = schema.entity_type_for_set("Orders")
>>> for task in collect(rows, "Orders", order, schema):
...     address = resolve(task.item, service_url, task.entity_set, task.entity_type)
...     print(address.uri)

Subpackages
-----------
- odata_inspector.metadata: $metadata parsing into a normalized schema graph
- odata_inspector.addressing: selected-record collection and URI resolution
- odata_inspector.core: HTTP session, authentication and configuration
- odata_inspector.odata: metadata loading, reads and batch entity actions
- odata_inspector.api: Optional FastAPI REST gateway

"""

__version__ = "0.1.0"

from odata_inspector.metadata import (
    EntitySet,
    EntityType,
    MetadataParseError,
    NavigationProperty,
    PropertyDefinition,
    Schema,
    SchemaParser,
    detect_odata_version,
)
from odata_inspector.addressing import (
    EntityContextCollector,
    EntityContextTask,
    ResourceAddress,
    ResourceAddressResolver,
    collect,
    resolve,
)
from odata_inspector.core import (
    ConnectionContext,
    ODataAuth,
    ODataConfig,
    ODataSession,
    ODataUpstreamError,
)
from odata_inspector.odata import EntityActions, MetadataLoader, ODataService

__all__ = [
    "__version__",
    # Metadata
    "EntitySet",
    "EntityType",
    "MetadataParseError",
    "NavigationProperty",
    "PropertyDefinition",
    "Schema",
    "SchemaParser",
    "detect_odata_version",
    # Addressing
    "EntityContextCollector",
    "EntityContextTask",
    "ResourceAddress",
    "ResourceAddressResolver",
    "collect",
    "resolve",
    # Core
    "ConnectionContext",
    "ODataAuth",
    "ODataConfig",
    "ODataSession",
    "ODataUpstreamError",
    # Service access
    "EntityActions",
    "MetadataLoader",
    "ODataService",
]
