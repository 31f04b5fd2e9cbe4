"""
odata_inspector.addressing.resolver - Resource URI and key predicates
======================================================================

Computes the canonical URI of a result record so it can be updated or
deleted. Three strategies are tried in order:

1. identity carried in the response envelope (``__metadata.uri``,
   ``@odata.editLink``, ...)
2. key predicate built from the entity type's declared keys
3. a conventional identifier field when no schema is available

When none applies the address is left empty and the caller skips the
record.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

from odata_inspector.addressing.envelope import envelope_uri
from odata_inspector.metadata.edm import format_key_literal
from odata_inspector.metadata.model import EntityType

logger = logging.getLogger("odata_inspector.addressing")

# Field names tried, in order, when no schema describes the record
HEURISTIC_KEY_FIELDS = ("ID", "Id", "id", "Key", "key", "UUID", "Uuid", "GUID", "Guid")

# left intact when a predicate is placed into a URI path
_PREDICATE_SAFE = "()',=:+"


@dataclass(frozen=True)
class ResourceAddress:
    """Result of :func:`resolve`; both fields are None when unaddressable."""
    uri: Optional[str] = None
    predicate: Optional[str] = None

    @property
    def addressable(self) -> bool:
        return self.uri is not None


UNRESOLVED = ResourceAddress()


def build_predicate(pairs: Sequence[Tuple[str, str]]) -> str:
    """
    Join formatted key literals into a predicate.

    A single key renders as ``(Key=Value)``; composite keys keep the given
    order: ``(K1=V1,K2=V2)``.
    """
    return "(" + ",".join(f"{name}={literal}" for name, literal in pairs) + ")"


def _join(base_url: str, entity_set: str, predicate: str) -> str:
    root = base_url if base_url.endswith("/") else base_url + "/"
    return f"{root}{entity_set}{quote(predicate, safe=_PREDICATE_SAFE)}"


def predicate_from_uri(uri: str, entity_set: Optional[str]) -> Optional[str]:
    """
    Extract ``(…)`` from the last path segment when it names ``entity_set``.

    Examples
    --------
    >>> predicate_from_uri("https://h/svc/Orders(7)", "Orders")
    '(7)'
    """
    if not entity_set:
        return None
    segment = uri.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    prefix = entity_set + "("
    if segment.startswith(prefix) and segment.endswith(")"):
        return segment[len(entity_set):]
    return None


def schema_predicate(
    item: Mapping[str, Any],
    entity_type: EntityType,
    version: Optional[str] = None,
) -> Optional[str]:
    """
    Key predicate from declared keys, or None if a key value is missing.
    """
    pairs: List[Tuple[str, str]] = []
    for key in entity_type.keys:
        if item.get(key) is None:
            return None
        prop = entity_type.properties.get(key)
        pairs.append((key, format_key_literal(item[key], prop.edm_type if prop else None, version)))
    return build_predicate(pairs)


def heuristic_predicate(item: Mapping[str, Any]) -> Optional[str]:
    """Single-key predicate from the first conventional identifier field."""
    for name in HEURISTIC_KEY_FIELDS:
        value = item.get(name)
        if value is None or isinstance(value, (dict, list)):
            continue
        return build_predicate([(name, format_key_literal(value))])
    return None


def resolve(
    item: Mapping[str, Any],
    base_url: str,
    entity_set_name: Optional[str],
    entity_type: Optional[EntityType],
    *,
    version: Optional[str] = None,
) -> ResourceAddress:
    """
    Compute the URI and key predicate addressing ``item``.

    Parameters
    ----------
    item : mapping
        Raw result record; never modified
    base_url : str
        Service root URL
    entity_set_name : str, optional
        Entity set the record belongs to
    entity_type : EntityType, optional
        Schema type of the record
    version : str, optional
        OData version, selects V2 or V4 literal forms

    Returns
    -------
    ResourceAddress
        ``uri`` is None when the record cannot be addressed

    Examples
    --------
    >>> resolve({"A": 1, "B": "x"}, "https://h/svc/", "Pairs", pair_type).predicate
    "(A=1,B='x')"
    """
    uri = envelope_uri(item, base_url)
    if uri:
        return ResourceAddress(uri=uri, predicate=predicate_from_uri(uri, entity_set_name))

    if entity_type is not None and entity_type.keys:
        predicate = schema_predicate(item, entity_type, version)
    elif entity_type is None:
        predicate = heuristic_predicate(item)
    else:
        predicate = None

    if predicate is None:
        logger.debug("cannot address record in %r: no key values", entity_set_name)
        return UNRESOLVED
    if not entity_set_name:
        return ResourceAddress(uri=None, predicate=predicate)
    return ResourceAddress(uri=_join(base_url, entity_set_name, predicate), predicate=predicate)


class ResourceAddressResolver:
    """
    Resolver bound to a service root and protocol version.

    Parameters
    ----------
    base_url : str
        Service root URL
    version : str, optional
        "V2", "V3", "V4"; controls key literal forms
    """

    def __init__(self, base_url: str, version: Optional[str] = None) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.version = version

    def resolve(
        self,
        item: Mapping[str, Any],
        entity_set_name: Optional[str],
        entity_type: Optional[EntityType],
    ) -> ResourceAddress:
        return resolve(item, self.base_url, entity_set_name, entity_type, version=self.version)

