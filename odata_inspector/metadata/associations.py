"""
odata_inspector.metadata.associations - V2/V3 association index
================================================================

V2/V3 navigation properties do not name their target type. They point at
an ``Association`` through ``Relationship`` and select an end with
``FromRole``/``ToRole``. This module indexes those associations so the
schema parser can resolve navigations to the same shape V4 declares inline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, Iterable, Optional
import xml.etree.ElementTree as ET

from odata_inspector.metadata.xmlutil import attr, children, first_child

logger = logging.getLogger("odata_inspector.metadata")


@dataclass(frozen=True)
class AssociationEnd:
    role: str
    type: str
    multiplicity: str


@dataclass(frozen=True)
class ConstraintRole:
    role: str
    property_ref: str


@dataclass(frozen=True)
class AssociationConstraint:
    principal: ConstraintRole
    dependent: ConstraintRole


@dataclass(frozen=True)
class Association:
    """An association with its ends keyed by role name."""
    name: str
    ends: Dict[str, AssociationEnd]
    constraint: Optional[AssociationConstraint] = None

    def end(self, role: Optional[str]) -> Optional[AssociationEnd]:
        if not role:
            return None
        return self.ends.get(role)


@dataclass
class AssociationIndex:
    """
    Associations registered under both qualified and bare names.

    Built at the start of a parse and discarded when it returns.
    """
    entries: Dict[str, Association] = field(default_factory=dict)

    def register(self, namespace: str, association: Association) -> None:
        if namespace:
            self.entries[f"{namespace}.{association.name}"] = association
        self.entries[association.name] = association

    def lookup(self, relationship: Optional[str]) -> Optional[Association]:
        """Find by the exact reference first, then by its bare name."""
        if not relationship:
            return None
        found = self.entries.get(relationship)
        if found is None:
            found = self.entries.get(relationship.rsplit(".", 1)[-1])
        return found

    def __len__(self) -> int:
        return len({id(a) for a in self.entries.values()})


def _constraint_role(node: Optional[ET.Element]) -> Optional[ConstraintRole]:
    if node is None:
        return None
    role = attr(node, "Role")
    ref = first_child(node, "PropertyRef")
    prop = attr(ref, "Name") if ref is not None else None
    if not role or not prop:
        return None
    return ConstraintRole(role=role, property_ref=prop)


def _read_constraint(assoc: ET.Element) -> Optional[AssociationConstraint]:
    rc = first_child(assoc, "ReferentialConstraint")
    if rc is None:
        return None
    principal = _constraint_role(first_child(rc, "Principal"))
    dependent = _constraint_role(first_child(rc, "Dependent"))
    if principal is None or dependent is None:
        return None
    return AssociationConstraint(principal=principal, dependent=dependent)


class AssociationResolver:
    """
    Builds an :class:`AssociationIndex` from ``Schema`` elements.

    Associations that do not have two usable ends are dropped without error;
    producers often emit half-declared associations for unused relationships.
    """

    def index(self, schemas: Iterable[ET.Element], namespace: str) -> AssociationIndex:
        """
        Index every ``Association`` found in ``schemas``.

        Parameters
        ----------
        schemas : iterable of Element
            ``Schema`` elements of one document
        namespace : str
            Namespace used for the qualified registration

        Returns
        -------
        AssociationIndex
        """
        out = AssociationIndex()
        dropped = 0
        for schema in schemas:
            for node in children(schema, "Association"):
                assoc = self._read(node)
                if assoc is None:
                    dropped += 1
                    continue
                out.register(namespace, assoc)
        if dropped:
            logger.debug("dropped %d association(s) without two ends", dropped)
        return out

    def _read(self, node: ET.Element) -> Optional[Association]:
        name = attr(node, "Name")
        if not name:
            return None
        ends: Dict[str, AssociationEnd] = {}
        for end in children(node, "End"):
            role = attr(end, "Role")
            if not role:
                continue
            ends[role] = AssociationEnd(
                role=role,
                type=attr(end, "Type") or "",
                multiplicity=attr(end, "Multiplicity") or "1",
            )
        if len(ends) < 2:
            return None
        return Association(name=name, ends=ends, constraint=_read_constraint(node))
