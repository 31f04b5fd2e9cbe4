"""
odata_inspector.odata.metadata - $metadata retrieval
=====================================================

Fetches a service's ``$metadata`` document and keeps the parsed schema for
the session.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from odata_inspector.core.session import ODataSession
from odata_inspector.metadata.model import EntityType, Schema
from odata_inspector.metadata.parser import SchemaParser

logger = logging.getLogger("odata_inspector.odata")


class MetadataLoader:
    """
    Lazily loaded schema of one OData service.

    The schema is parsed once and replaced as a whole by :meth:`refresh`;
    it is never updated in place.

    Parameters
    ----------
    sess : ODataSession
        Active OData session
    parser : SchemaParser, optional
        Parser to use (a default one is created)

    Examples
    --------
    >>> meta = MetadataLoader(sess)
    >>> meta.entity_sets()
    ['Categories', 'Customers', 'Orders', ...]
    >>> meta.properties("Orders")
    ['OrderID', 'CustomerID', ...]
    """

    def __init__(self, sess: ODataSession, parser: Optional[SchemaParser] = None) -> None:
        self.sess = sess
        self.parser = parser or SchemaParser()
        self._schema: Optional[Schema] = None

    def refresh(self) -> Schema:
        """
        Fetch and parse ``$metadata`` from the service.

        Called automatically on first access to :attr:`schema`.

        Raises
        ------
        MetadataParseError
            If the document holds no schema
        ODataUpstreamError
            If the service answers with an error status
        """
        xml_text = self.sess.get_text("$metadata")
        schema = self.parser.parse(xml_text)
        logger.info("loaded metadata from %s: %d entity types", self.sess.base, len(schema.entities))
        self._schema = schema
        return schema

    @property
    def schema(self) -> Schema:
        if self._schema is None:
            return self.refresh()
        return self._schema

    def entity_sets(self) -> List[str]:
        """
        Get list of entity set names in the service.

        Returns
        -------
        list of str
            Sorted list of entity set names
        """
        return sorted(self.schema.entity_sets.keys())

    def entity_type(self, entity_set: str) -> Optional[EntityType]:
        """Entity type behind an entity set, or None if unknown."""
        return self.schema.entity_type_for_set(entity_set)

    def properties(self, entity_set: str) -> List[str]:
        """
        Get list of properties for an entity set.

        Returns
        -------
        list of str
            Property names in declaration order
        """
        et = self.entity_type(entity_set)
        return list(et.properties) if et else []
