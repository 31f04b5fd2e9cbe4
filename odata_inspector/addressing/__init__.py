"""
odata_inspector.addressing - Record addressing
===============================================

- EntityContextCollector: selected records with entity set/type context
- ResourceAddressResolver / resolve: URI and key predicate per record
- envelope: V2/V3/V4 response envelope detection

"""

from odata_inspector.addressing.envelope import (
    Envelope,
    EnvelopeKind,
    detect_envelope,
    envelope_etag,
    envelope_type_name,
    envelope_uri,
    is_expandable,
    unwrap_results,
)
from odata_inspector.addressing.resolver import (
    ResourceAddress,
    ResourceAddressResolver,
    build_predicate,
    resolve,
)
from odata_inspector.addressing.collector import (
    SELECTION_KEY,
    EntityContextCollector,
    EntityContextTask,
    collect,
)

__all__ = [
    "Envelope",
    "EnvelopeKind",
    "EntityContextCollector",
    "EntityContextTask",
    "ResourceAddress",
    "ResourceAddressResolver",
    "SELECTION_KEY",
    "build_predicate",
    "collect",
    "detect_envelope",
    "envelope_etag",
    "envelope_type_name",
    "envelope_uri",
    "is_expandable",
    "resolve",
    "unwrap_results",
]
