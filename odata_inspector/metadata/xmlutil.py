"""
odata_inspector.metadata.xmlutil - Namespace-agnostic element helpers
======================================================================

EDMX documents use a different CSDL namespace per OData version. These
helpers match elements by local name only so one parser serves all of them.
"""

from __future__ import annotations

from typing import Iterator, Optional
import xml.etree.ElementTree as ET


def strip_ns(tag: str) -> str:
    """Strip XML namespace from a tag or attribute name."""
    return tag.split("}", 1)[-1] if "}" in tag else tag


def children(node: ET.Element, local_name: str) -> Iterator[ET.Element]:
    """Direct children of ``node`` with the given local name."""
    for c in node:
        if isinstance(c.tag, str) and strip_ns(c.tag) == local_name:
            yield c


def descendants(node: ET.Element, local_name: str) -> Iterator[ET.Element]:
    """All descendants of ``node`` (document order) with the given local name."""
    for c in node.iter():
        if c is not node and isinstance(c.tag, str) and strip_ns(c.tag) == local_name:
            yield c


def first_child(node: ET.Element, local_name: str) -> Optional[ET.Element]:
    return next(children(node, local_name), None)


def attr(node: ET.Element, local_name: str) -> Optional[str]:
    """
    Read an attribute by local name.

    Unprefixed attributes are tried first, then namespaced ones such as
    ``m:DataServiceVersion``.
    """
    if local_name in node.attrib:
        return node.attrib[local_name]
    for key, value in node.attrib.items():
        if strip_ns(key) == local_name:
            return value
    return None
