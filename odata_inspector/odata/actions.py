"""
odata_inspector.odata.actions - Batch entity actions
=====================================================

Turns the records a user selected in a (possibly expanded) result tree
into DELETE or PATCH requests, previews them, and executes them one by one.
Records that cannot be addressed are reported as skipped; a failing
request does not stop the rest of the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from odata_inspector.addressing.collector import SELECTION_KEY, EntityContextCollector, EntityContextTask
from odata_inspector.addressing.envelope import envelope_etag
from odata_inspector.addressing.resolver import ResourceAddress, ResourceAddressResolver
from odata_inspector.core.session import ODataSession, ODataUpstreamError
from odata_inspector.metadata.model import EntityType, Schema

logger = logging.getLogger("odata_inspector.odata")

ACTION_METHODS = {
    "delete": "DELETE",
    "update": "PATCH",
}


@dataclass(frozen=True)
class PlannedRequest:
    """One selected record and the request that would act on it."""
    task: EntityContextTask
    address: ResourceAddress
    method: str

    @property
    def skipped(self) -> bool:
        return not self.address.addressable

    def line(self) -> str:
        if self.skipped:
            return f"// SKIP: Cannot determine URL for item in {self.task.entity_set or 'unknown entity set'}"
        return f"{self.method} {self.address.uri}"


@dataclass
class ActionPlan:
    """Preview of a batch action."""
    action: str
    entity_set: str
    requests: List[PlannedRequest] = field(default_factory=list)

    @property
    def method(self) -> str:
        return ACTION_METHODS[self.action]

    @property
    def addressable(self) -> List[PlannedRequest]:
        return [r for r in self.requests if not r.skipped]

    @property
    def skipped(self) -> List[PlannedRequest]:
        return [r for r in self.requests if r.skipped]

    def predicates(self) -> List[str]:
        """Key predicates of addressable requests, for code previews."""
        return [r.address.predicate or "(Unknown Key)" for r in self.addressable]

    def lines(self) -> List[str]:
        return [r.line() for r in self.requests]


@dataclass
class BatchReport:
    """Outcome of :meth:`EntityActions.execute`."""
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    lines: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.skipped

    def render(self) -> str:
        header = (
            "// Batch Operation Report\n"
            f"// Succeeded: {self.succeeded}, Failed: {self.failed}, Skipped: {self.skipped}"
        )
        return header + "\n\n" + "\n".join(self.lines)


class EntityActions:
    """
    Plans and executes DELETE/PATCH requests for selected records.

    Parameters
    ----------
    sess : ODataSession, optional
        Session used to issue requests; its base URL is the service root.
        Planning works without one when ``base_url`` is given.
    schema : Schema, optional
        Parsed metadata. Without it only envelope and heuristic addressing
        are available.
    base_url : str, optional
        Service root; overrides the session's
    version : str, optional
        Protocol version for key literals (defaults to the schema's)
    selection_key : str
        Record field holding the selection mark

    Examples
    --------
    >>> actions = EntityActions(sess, schema)
    >>> plan = actions.plan(rows, "Orders", "delete")
    >>> print("\\n".join(plan.lines()))
    >>> report = actions.execute(plan)
    """

    def __init__(
        self,
        sess: Optional[ODataSession],
        schema: Optional[Schema],
        *,
        base_url: Optional[str] = None,
        version: Optional[str] = None,
        selection_key: str = SELECTION_KEY,
    ) -> None:
        if base_url is None and sess is None:
            raise ValueError("EntityActions needs a session or a base_url")
        self.sess = sess
        self.schema = schema
        self.resolver = ResourceAddressResolver(
            base_url or sess.base, version or (schema.version if schema else None)
        )
        self.collector = EntityContextCollector(schema, selection_key)

    def plan(
        self,
        root_data: Iterable[Dict[str, Any]],
        entity_set: str,
        action: str = "delete",
        *,
        root_entity_type: Optional[EntityType] = None,
    ) -> ActionPlan:
        """
        Collect selected records and resolve their addresses.

        Parameters
        ----------
        root_data : iterable of dict
            Top-level records of the query result
        entity_set : str
            Entity set the query was issued against
        action : str
            "delete" or "update"
        root_entity_type : EntityType, optional
            Defaults to the type behind ``entity_set`` in the schema

        Returns
        -------
        ActionPlan
        """
        if action not in ACTION_METHODS:
            raise ValueError(f"action must be one of {sorted(ACTION_METHODS)}, got {action!r}")
        if root_entity_type is None and self.schema is not None:
            root_entity_type = self.schema.entity_type_for_set(entity_set)

        method = ACTION_METHODS[action]
        tasks = self.collector.collect(root_data, entity_set, root_entity_type)
        plan = ActionPlan(action=action, entity_set=entity_set)
        for task in tasks:
            address = self.resolver.resolve(task.item, task.entity_set, task.entity_type)
            plan.requests.append(PlannedRequest(task=task, address=address, method=method))

        if plan.skipped:
            logger.warning("%d of %d selected record(s) cannot be addressed", len(plan.skipped), len(tasks))
        return plan

    def execute(self, plan: ActionPlan, payload: Optional[Dict[str, Any]] = None) -> BatchReport:
        """
        Issue every addressable request of ``plan``.

        Parameters
        ----------
        plan : ActionPlan
            Result of :meth:`plan`
        payload : dict, optional
            Properties to merge; required for "update"

        Returns
        -------
        BatchReport
            Per-request outcome lines and counters
        """
        if self.sess is None:
            raise RuntimeError("EntityActions was created without a session")
        if plan.action == "update" and not payload:
            raise ValueError("update requires a payload")

        report = BatchReport()
        for req in plan.requests:
            if req.skipped:
                report.skipped += 1
                report.lines.append(f"SKIP: Unable to determine URL for item in {req.task.entity_set}")
                continue

            uri = req.address.uri
            etag = envelope_etag(req.task.item)
            try:
                if req.method == "DELETE":
                    self.sess.delete(uri, etag=etag)
                else:
                    self.sess.patch(uri, payload or {}, etag=etag)
            except ODataUpstreamError as e:
                report.failed += 1
                report.lines.append(f"FAILED ({e.status}): {uri} - {e.body}")
            except requests.RequestException as e:
                report.failed += 1
                report.lines.append(f"ERROR: {uri} - {e}")
            else:
                report.succeeded += 1
                report.lines.append(f"SUCCESS ({req.method}): {uri}")

        logger.info(
            "%s batch on %s: %d succeeded, %d failed, %d skipped",
            plan.action, plan.entity_set, report.succeeded, report.failed, report.skipped,
        )
        return report
