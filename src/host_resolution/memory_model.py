"""
In-memory document model implementing the host/entity collaborator interface.

Used by the scene loader, the command-line runner and the tests. Mutations
made through ``MemoryTransaction`` are journaled and only reach the entities
when the transaction commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence

import numpy as np
import trimesh

from host_resolution.contracts import AttributeValue
from host_resolution.errors import HostLinkUnsupported, TransactionScopeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineCurve:
    """Straight centerline segment."""

    start: np.ndarray
    end: np.ndarray

    @classmethod
    def from_points(cls, start: Sequence[float], end: Sequence[float]) -> "LineCurve":
        return cls(
            start=np.asarray(start, dtype=np.float64),
            end=np.asarray(end, dtype=np.float64),
        )


@dataclass
class MemoryHost:
    """A volumetric host. ``geometry_error`` simulates a failing extraction."""

    element_id: Hashable
    geometry: Optional[List[Any]] = None
    attributes: Dict[str, AttributeValue] = field(default_factory=dict)
    geometry_error: Optional[str] = None

    def get_geometry(self) -> Optional[List[Any]]:
        if self.geometry_error:
            raise RuntimeError(self.geometry_error)
        return self.geometry

    def lookup_attribute(self, name: str) -> Optional[AttributeValue]:
        return self.attributes.get(name)


class MemoryAttribute:
    """Named attribute slot on a linear entity."""

    def __init__(self, owner: "MemoryLinearEntity", name: str, value: Any = None):
        self.owner = owner
        self.name = name
        self.value = value

    def set(self, scope: "MemoryTransaction", value: Any) -> None:
        scope.record(lambda: setattr(self, "value", value))


class MemoryLinearEntity:
    """A linear entity. Grouped entities reject direct host links."""

    def __init__(
        self,
        element_id: Hashable,
        curves: Optional[Sequence[LineCurve]] = None,
        attributes: Optional[Dict[str, Any]] = None,
        grouped: bool = False,
        host_id: Optional[Hashable] = None,
    ):
        self.element_id = element_id
        self.curves = list(curves or [])
        self.grouped = grouped
        self.host_id = host_id
        self._attributes = {
            name: MemoryAttribute(self, name, value)
            for name, value in (attributes or {}).items()
        }

    def get_centerline_curves(self) -> List[LineCurve]:
        return list(self.curves)

    def set_host_id(self, scope: "MemoryTransaction", host_id: Hashable) -> None:
        if self.grouped:
            raise HostLinkUnsupported(
                f"Entity {self.element_id} is in a group; host cannot be changed"
            )
        scope.record(lambda: setattr(self, "host_id", host_id))

    def lookup_attribute(self, name: str) -> Optional[MemoryAttribute]:
        return self._attributes.get(name)

    def attribute_value(self, name: str) -> Any:
        slot = self._attributes.get(name)
        return None if slot is None else slot.value


class MemoryTransaction:
    """Named all-or-nothing scope.

    Use as a context manager: the journal is applied on a clean exit and
    discarded if the block raises.
    """

    def __init__(self, name: str):
        self.name = name
        self.status = "pending"
        self._journal: List[Callable[[], None]] = []

    @property
    def is_active(self) -> bool:
        return self.status == "started"

    @property
    def pending_count(self) -> int:
        return len(self._journal)

    def start(self) -> None:
        if self.status != "pending":
            raise TransactionScopeError(f"Transaction {self.name!r} already {self.status}")
        self.status = "started"

    def record(self, mutation: Callable[[], None]) -> None:
        if not self.is_active:
            raise TransactionScopeError(f"Transaction {self.name!r} is not active")
        self._journal.append(mutation)

    def commit(self) -> int:
        if not self.is_active:
            raise TransactionScopeError(f"Transaction {self.name!r} is not active")
        applied = 0
        for mutation in self._journal:
            mutation()
            applied += 1
        self._journal.clear()
        self.status = "committed"
        logger.info("Transaction %r committed %d mutations", self.name, applied)
        return applied

    def rollback(self) -> None:
        discarded = len(self._journal)
        self._journal.clear()
        self.status = "rolled_back"
        logger.info("Transaction %r rolled back %d mutations", self.name, discarded)

    def __enter__(self) -> "MemoryTransaction":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False


def box_host(
    element_id: Hashable,
    extents: Sequence[float],
    center: Sequence[float] = (0.0, 0.0, 0.0),
    attributes: Optional[Dict[str, AttributeValue]] = None,
) -> MemoryHost:
    """Host whose geometry is a single axis-aligned box."""
    solid = trimesh.creation.box(extents=[float(v) for v in extents])
    solid.apply_translation([float(v) for v in center])
    return MemoryHost(element_id=element_id, geometry=[solid], attributes=attributes or {})
