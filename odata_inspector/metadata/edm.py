"""
odata_inspector.metadata.edm - Primitive EDM type catalog
==========================================================

Static knowledge about OData primitive types: categories, integer bounds
and key-literal quoting rules for V2/V3 and V4 services.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import re
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class EdmPrimitive:
    """
    Description of a primitive EDM type.

    Attributes
    ----------
    name : str
        Namespaced type name, e.g. "Edm.Int32"
    category : str
        One of "string", "integer", "decimal", "boolean", "guid",
        "temporal", "binary"
    minimum, maximum : int, optional
        Inclusive bounds for integer types
    v2_prefix : str, optional
        Literal prefix used by V2/V3 key predicates, e.g. "guid"
    v4_quoted : bool
        Whether V4 wraps the literal in single quotes
    """
    name: str
    category: str
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    v2_prefix: Optional[str] = None
    v4_quoted: bool = False

    @property
    def is_numeric(self) -> bool:
        return self.category in ("integer", "decimal")


EDM_TYPES: Dict[str, EdmPrimitive] = {
    p.name: p
    for p in (
        EdmPrimitive("Edm.String", "string", v4_quoted=True),
        EdmPrimitive("Edm.Boolean", "boolean"),
        EdmPrimitive("Edm.Byte", "integer", 0, 255),
        EdmPrimitive("Edm.SByte", "integer", -128, 127),
        EdmPrimitive("Edm.Int16", "integer", -32768, 32767),
        EdmPrimitive("Edm.Int32", "integer", -2147483648, 2147483647),
        EdmPrimitive("Edm.Int64", "integer", -9223372036854775808, 9223372036854775807),
        EdmPrimitive("Edm.Single", "decimal"),
        EdmPrimitive("Edm.Double", "decimal"),
        EdmPrimitive("Edm.Decimal", "decimal"),
        EdmPrimitive("Edm.Guid", "guid", v2_prefix="guid"),
        EdmPrimitive("Edm.DateTime", "temporal", v2_prefix="datetime"),
        EdmPrimitive("Edm.DateTimeOffset", "temporal", v2_prefix="datetimeoffset"),
        EdmPrimitive("Edm.Time", "temporal", v2_prefix="time"),
        EdmPrimitive("Edm.TimeOfDay", "temporal"),
        EdmPrimitive("Edm.Date", "temporal"),
        EdmPrimitive("Edm.Duration", "temporal", v2_prefix="time", v4_quoted=True),
        EdmPrimitive("Edm.Binary", "binary", v2_prefix="binary", v4_quoted=True),
        EdmPrimitive("Edm.Stream", "binary"),
    )
}


def escape_odata_literal(value: str) -> str:
    """
    Escape a string value for use inside a quoted OData literal.

    Examples
    --------
    >>> escape_odata_literal("O'Brien")
    "O''Brien"
    """
    return value.replace("'", "''")


def lookup(edm_type: Optional[str]) -> Optional[EdmPrimitive]:
    """Return the catalog entry for a type name, or None for non-primitives."""
    if not edm_type:
        return None
    return EDM_TYPES.get(edm_type)


def is_quoted(edm_type: Optional[str], version: Optional[str] = None) -> bool:
    """
    Whether key literals of this type are wrapped in single quotes.

    Strings, GUIDs and temporal values are quoted for V2/V3 (and when the
    version is unknown). V4 only quotes strings, durations and binaries.
    """
    prim = lookup(edm_type)
    if prim is None:
        return False
    if version == "V4":
        return prim.v4_quoted
    return prim.category in ("string", "guid", "temporal", "binary")


def within_bounds(edm_type: Optional[str], value: Any) -> bool:
    """Check an integer value against the declared range of its type."""
    prim = lookup(edm_type)
    if prim is None or prim.minimum is None or prim.maximum is None:
        return True
    try:
        num = int(value)
    except (TypeError, ValueError):
        return False
    return prim.minimum <= num <= prim.maximum


def _quote(text: str, prefix: Optional[str] = None) -> str:
    quoted = f"'{escape_odata_literal(text)}'"
    return f"{prefix}{quoted}" if prefix else quoted


# V2 JSON wire form: /Date(<ms since epoch, UTC>[+-<offset minutes>])/
_WIRE_DATE = re.compile(r"^\/Date\((-?\d+)([+-]\d{1,4})?\)\/$")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def wire_date_to_iso(text: str, with_offset: bool = False) -> str:
    """
    Convert a V2 JSON ``/Date(ms[+offset])/`` value to ISO 8601.

    Text in any other form is returned unchanged.

    Parameters
    ----------
    text : str
        Value as delivered by the service
    with_offset : bool
        Keep the UTC offset (``Edm.DateTimeOffset``). Otherwise the UTC
        wall-clock time is returned without a zone (``Edm.DateTime``).

    Examples
    --------
    >>> wire_date_to_iso("/Date(1577836800000)/")
    '2020-01-01T00:00:00'
    >>> wire_date_to_iso("/Date(1577836800000+0060)/", with_offset=True)
    '2020-01-01T01:00:00+01:00'
    """
    m = _WIRE_DATE.match(text)
    if m is None:
        return text
    moment = _EPOCH + timedelta(milliseconds=int(m.group(1)))
    timespec = "milliseconds" if moment.microsecond else "seconds"
    if not with_offset:
        return moment.replace(tzinfo=None).isoformat(timespec=timespec)
    minutes = int(m.group(2) or 0)
    if minutes == 0:
        return moment.replace(tzinfo=None).isoformat(timespec=timespec) + "Z"
    local = moment.astimezone(timezone(timedelta(minutes=minutes)))
    return local.isoformat(timespec=timespec)


def _untyped_literal(value: Any) -> str:
    # no type information: decide from the Python value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return _quote(value)
    return str(value)


def format_key_literal(
    value: Any,
    edm_type: Optional[str] = None,
    version: Optional[str] = None,
) -> str:
    """
    Format a single key value as it appears inside a key predicate.

    Parameters
    ----------
    value : any
        Raw value read from a result record
    edm_type : str, optional
        Declared EDM type of the key property
    version : str, optional
        "V2", "V3", "V4" or None. Anything but "V4" uses V2 literal forms.

    Returns
    -------
    str
        The literal, e.g. ``5``, ``'abc'``, ``guid'0000-...'``

    Examples
    --------
    >>> format_key_literal(7, "Edm.Int32")
    '7'
    >>> format_key_literal("x", "Edm.String")
    "'x'"
    """
    if value is None:
        return "null"
    if isinstance(value, (dict, list, tuple, set)):
        return str(value)

    prim = lookup(edm_type)
    if prim is None:
        return _untyped_literal(value)

    if prim.category == "boolean":
        if isinstance(value, str):
            return value.lower()
        return "true" if value else "false"
    if prim.is_numeric:
        # V2 services deliver Int64/Decimal as JSON strings
        return str(value)

    if isinstance(value, datetime):
        text = value.isoformat()
    else:
        text = value if isinstance(value, str) else str(value)
    if edm_type in ("Edm.DateTime", "Edm.DateTimeOffset"):
        text = wire_date_to_iso(text, with_offset=edm_type == "Edm.DateTimeOffset")
    if version == "V4":
        return _quote(text) if prim.v4_quoted else text
    if prim.category == "string":
        return _quote(text)
    return _quote(text, prim.v2_prefix)
