"""
odata_inspector.addressing.collector - Selected records with context
=====================================================================

Walks a query result tree, including ``$expand``-ed sub-collections at any
depth, and returns every record the user marked for an action together
with the entity set and entity type it belongs to.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, Iterable, List, Optional

from odata_inspector.addressing.envelope import expanded_records, is_annotation_key, is_expandable
from odata_inspector.metadata.model import EntityType, Schema

logger = logging.getLogger("odata_inspector.addressing")

SELECTION_KEY = "__selected"


@dataclass(frozen=True)
class EntityContextTask:
    """A selected record and the addressing context it was found in."""
    item: Dict[str, Any]
    entity_set: Optional[str]
    entity_type: Optional[EntityType]


class EntityContextCollector:
    """
    Depth-first collector of selected records.

    Parameters
    ----------
    schema : Schema, optional
        Parsed metadata used to resolve child types through navigation
        properties
    selection_key : str
        Record field holding the caller's selection mark (``True`` selects)

    Notes
    -----
    Only records explicitly marked are collected; selecting a parent does
    not select its children. The walk follows the data, which is finite,
    so cyclic navigation in the schema needs no guard.
    """

    def __init__(self, schema: Optional[Schema] = None, selection_key: str = SELECTION_KEY) -> None:
        self.schema = schema
        self.selection_key = selection_key

    def collect(
        self,
        root_data: Iterable[Any],
        root_entity_set: Optional[str],
        root_entity_type: Optional[EntityType],
    ) -> List[EntityContextTask]:
        """
        Collect selected records from ``root_data`` and everything nested in it.

        Parameters
        ----------
        root_data : iterable of dict
            Top-level result records
        root_entity_set : str
            Entity set the query was issued against
        root_entity_type : EntityType, optional
            Type of the top-level records

        Returns
        -------
        list of EntityContextTask
            In depth-first document order
        """
        tasks: List[EntityContextTask] = []
        self._walk(root_data, root_entity_set, root_entity_type, tasks)
        logger.debug("collected %d selected record(s) under %r", len(tasks), root_entity_set)
        return tasks

    def _walk(
        self,
        records: Iterable[Any],
        entity_set: Optional[str],
        entity_type: Optional[EntityType],
        out: List[EntityContextTask],
    ) -> None:
        for record in records:
            if not isinstance(record, dict):
                continue
            if record.get(self.selection_key) is True:
                out.append(EntityContextTask(item=record, entity_set=entity_set, entity_type=entity_type))

            for field_name, value in record.items():
                if is_annotation_key(field_name, self.selection_key) or not is_expandable(value):
                    continue
                child_set, child_type = self._child_context(entity_type, field_name)
                self._walk(expanded_records(value), child_set, child_type, out)

    def _child_context(self, entity_type: Optional[EntityType], field_name: str):
        """Entity set and type reached by following ``field_name``."""
        if entity_type is None or self.schema is None:
            return None, None
        nav = entity_type.navigation(field_name)
        if nav is None or not nav.target_entity_type_name:
            return None, None
        child_type = self.schema.entity(nav.target_entity_type_name)
        child_set = self.schema.entity_set_for_type(nav.target_entity_type_name)
        return (child_set.name if child_set else None), child_type


def collect(
    root_data: Iterable[Any],
    root_entity_set: Optional[str],
    root_entity_type: Optional[EntityType],
    schema: Optional[Schema],
    *,
    selection_key: str = SELECTION_KEY,
) -> List[EntityContextTask]:
    """Functional form of :meth:`EntityContextCollector.collect`."""
    return EntityContextCollector(schema, selection_key).collect(root_data, root_entity_set, root_entity_type)
