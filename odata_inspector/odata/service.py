"""
odata_inspector.odata.service - OData Service Client
=====================================================

Service-scoped reader for OData V2/V3/V4 services.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Generator, List, Optional

from odata_inspector.addressing.envelope import unwrap_results
from odata_inspector.core.session import ODataSession, version_headers
from odata_inspector.metadata.model import EntityType
from odata_inspector.odata.actions import EntityActions
from odata_inspector.odata.metadata import MetadataLoader

logger = logging.getLogger("odata_inspector.odata")

_KNOWN_VERSIONS = ("V2", "V3", "V4")


def _next_link(payload: Dict[str, Any]) -> Optional[str]:
    d = payload.get("d")
    if isinstance(d, dict) and d.get("__next"):
        return d["__next"]
    return payload.get("@odata.nextLink") or payload.get("odata.nextLink")


class ODataService:
    """
    Service-scoped OData client.

    Provides schema discovery, entity-set reads with paging, and batch
    entity actions on selected result records.

    Parameters
    ----------
    sess : ODataSession
        Active OData session
    version : str, optional
        Protocol version. Detected from ``$metadata`` when omitted and
        applied to the session's request headers.

    Examples
    --------
    >>> with ODataSession(cfg) as sess:
    ...     api = ODataService(sess)
    ...     print(api.list_entity_sets())
    ...     orders = api.read_all("Orders", **{"$expand": "Order_Details", "$top": "20"})
    """

    def __init__(self, sess: ODataSession, *, version: Optional[str] = None) -> None:
        self.sess = sess
        self.meta = MetadataLoader(sess)
        self._version = version
        if version is not None:
            self.sess.session.headers.update(version_headers(version))

    @property
    def version(self) -> str:
        return self.negotiate_version()

    def negotiate_version(self) -> str:
        """Protocol version, detected once from the service metadata."""
        if self._version is None:
            detected = self.meta.schema.version
            self._version = detected if detected in _KNOWN_VERSIONS else "V2"
            self.sess.session.headers.update(version_headers(self._version))
            logger.debug("using OData %s headers for %s", self._version, self.sess.base)
        return self._version

    # ---------------- core reads ----------------

    def read(self, entity_set: str, **query: str) -> List[Dict[str, Any]]:
        """
        Read a single page of results from an entity set.

        Parameters
        ----------
        entity_set : str
            Entity set name or resource path
        **query
            Raw OData query options, e.g. ``**{"$top": "10"}``

        Returns
        -------
        list of dict
            List of entity records
        """
        self.negotiate_version()
        payload = self.sess.get(entity_set, params=query or None)
        return unwrap_results(payload)

    def iterate(
        self,
        entity_set: str,
        *,
        max_pages: Optional[int] = None,
        **query: str,
    ) -> Generator[List[Dict[str, Any]], None, None]:
        """
        Iterate through pages of results.

        Yields each page as a list of records, following ``__next`` (V2) or
        ``@odata.nextLink`` (V4) links.

        Parameters
        ----------
        entity_set : str
            Entity set name
        max_pages : int, optional
            Maximum number of pages to fetch
        **query
            Raw OData query options

        Yields
        ------
        list of dict
            Each page of entity records
        """
        self.negotiate_version()
        p = self.sess.get(entity_set, params=query or None)

        yielded = 0
        first = unwrap_results(p)
        if first:
            yield first
            yielded += 1
            if max_pages is not None and yielded >= int(max_pages):
                return

        next_link = _next_link(p)
        seen = set()

        while next_link:
            if next_link in seen:
                return
            seen.add(next_link)

            p = self.sess.get_url(next_link)
            chunk = unwrap_results(p)
            if chunk:
                yield chunk
                yielded += 1
                if max_pages is not None and yielded >= int(max_pages):
                    return

            next_link = _next_link(p)

    def read_all(
        self,
        entity_set: str,
        *,
        max_pages: Optional[int] = None,
        **query: str,
    ) -> List[Dict[str, Any]]:
        """
        Read all pages of results into a single list.

        Returns
        -------
        list of dict
            All entity records across pages
        """
        out: List[Dict[str, Any]] = []
        for page in self.iterate(entity_set, max_pages=max_pages, **query):
            out.extend(page)
        return out

    # ---------------- discovery helpers ----------------

    def list_entity_sets(self) -> List[str]:
        """List all entity sets available in this service."""
        return self.meta.entity_sets()

    def list_fields(self, entity_set: str) -> List[str]:
        """List all properties of an entity set's type."""
        return self.meta.properties(entity_set)

    def entity_type(self, entity_set: str) -> Optional[EntityType]:
        return self.meta.entity_type(entity_set)

    # ---------------- entity actions ----------------

    def actions(self) -> EntityActions:
        """Batch delete/update helper bound to this service's schema."""
        return EntityActions(self.sess, self.meta.schema, version=self.version)
