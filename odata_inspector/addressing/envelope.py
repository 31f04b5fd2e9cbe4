"""
odata_inspector.addressing.envelope - Response envelope detection
==================================================================

OData responses embed self-describing metadata next to the data:

- V2/V3 verbose JSON: ``__metadata`` object (``uri``, ``type``, ``etag``)
- V3 JSON light: ``odata.editLink``, ``odata.id``, ``odata.type``
- V4 JSON: ``@odata.editLink``, ``@odata.id``, ``@odata.type``

The shape is detected once per record and exposed as an :class:`Envelope`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from odata_inspector.metadata.model import unqualify

METADATA_KEY = "__metadata"
DEFERRED_KEY = "__deferred"


class EnvelopeKind(Enum):
    V2_VERBOSE = "v2-verbose"
    V2_LIGHT = "v2-light"
    V4 = "v4"
    NONE = "none"


@dataclass(frozen=True)
class Envelope:
    """Identity information carried by a record."""
    kind: EnvelopeKind
    link: Optional[str] = None
    etag: Optional[str] = None
    type_name: Optional[str] = None


def _first(source: Dict[str, Any], *keys: str) -> Optional[str]:
    for k in keys:
        v = source.get(k)
        if isinstance(v, str) and v:
            return v
    return None


def _is_verbose(record: Dict[str, Any]) -> bool:
    meta = record.get(METADATA_KEY)
    return isinstance(meta, dict) and any(meta.get(k) for k in ("uri", "id", "type"))


def _read_verbose(record: Dict[str, Any]) -> Envelope:
    meta = record[METADATA_KEY]
    return Envelope(
        kind=EnvelopeKind.V2_VERBOSE,
        link=_first(meta, "uri", "id"),
        etag=_first(meta, "etag"),
        type_name=unqualify(_first(meta, "type")),
    )


def _is_light(record: Dict[str, Any]) -> bool:
    return any(k in record for k in ("odata.editLink", "odata.id", "odata.type"))


def _read_light(record: Dict[str, Any]) -> Envelope:
    return Envelope(
        kind=EnvelopeKind.V2_LIGHT,
        link=_first(record, "odata.editLink", "odata.id"),
        etag=_first(record, "odata.etag"),
        type_name=unqualify(_first(record, "odata.type")),
    )


def _is_v4(record: Dict[str, Any]) -> bool:
    return any(k in record for k in ("@odata.editLink", "@odata.id", "@odata.type"))


def _read_v4(record: Dict[str, Any]) -> Envelope:
    type_name = _first(record, "@odata.type")
    return Envelope(
        kind=EnvelopeKind.V4,
        link=_first(record, "@odata.editLink", "@odata.id"),
        etag=_first(record, "@odata.etag"),
        type_name=unqualify(type_name.lstrip("#")) if type_name else None,
    )


# checked in order, first match wins
_DETECTORS: List[Tuple[Callable[[Dict[str, Any]], bool], Callable[[Dict[str, Any]], Envelope]]] = [
    (_is_verbose, _read_verbose),
    (_is_light, _read_light),
    (_is_v4, _read_v4),
]

_NO_ENVELOPE = Envelope(kind=EnvelopeKind.NONE)


def detect_envelope(record: Any) -> Envelope:
    """Classify the envelope metadata carried by ``record``."""
    if not isinstance(record, dict):
        return _NO_ENVELOPE
    for matches, read in _DETECTORS:
        if matches(record):
            return read(record)
    return _NO_ENVELOPE


def envelope_uri(record: Any, base_url: Optional[str] = None) -> Optional[str]:
    """
    Absolute edit URI carried by a record, if any.

    Absolute links are returned unchanged. Relative links (V4 and JSON light
    edit links are usually relative) are joined onto ``base_url``.
    """
    link = detect_envelope(record).link
    if not link:
        return None
    if urlparse(link).scheme or not base_url:
        return link
    root = base_url if base_url.endswith("/") else base_url + "/"
    return urljoin(root, link)


def envelope_etag(record: Any) -> Optional[str]:
    return detect_envelope(record).etag


def envelope_type_name(record: Any) -> Optional[str]:
    """Unqualified entity type name announced by the record itself."""
    return detect_envelope(record).type_name


def is_annotation_key(key: str, selection_key: Optional[str] = None) -> bool:
    """Keys that carry protocol metadata rather than data."""
    if key in (METADATA_KEY, DEFERRED_KEY) or key == selection_key:
        return True
    return key.startswith("odata.") or "@" in key


def is_expandable(value: Any) -> bool:
    """
    Whether ``value`` holds inlined ($expand) entity data.

    Non-empty lists, ``{"results": [...]}`` wrappers and nested objects
    count. Deferred links and objects holding nothing but ``__metadata`` do
    not.
    """
    if not value:
        return False
    if isinstance(value, list):
        return len(value) > 0
    if isinstance(value, dict):
        if METADATA_KEY in value and len(value) == 1:
            return False
        if DEFERRED_KEY in value:
            return False
        return True
    return False


def expanded_records(value: Any) -> List[Any]:
    """Records inside an expandable value, in payload order."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        results = value.get("results")
        if isinstance(results, list):
            return results
        return [value]
    return []


def unwrap_results(payload: Any) -> List[Any]:
    """
    Extract the record list from a query response body.

    Handles V2 ``{"d": {"results": [...]}}``, V2 single entity ``{"d": {...}}``,
    V1 ``{"d": [...]}``, V4 ``{"value": [...]}``, bare lists and single
    V4 entities.
    """
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    d = payload.get("d")
    if isinstance(d, list):
        return d
    if isinstance(d, dict):
        results = d.get("results")
        return results if isinstance(results, list) else [d]
    value = payload.get("value")
    if isinstance(value, list):
        return value
    return [payload]
