"""Contracts for resolving linear entities against volumetric hosts."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np
import trimesh

from host_resolution.errors import ConfigError

Vec3 = Tuple[float, float, float]


class PropagationMode(Enum):
    """How a resolved host is written back onto its linear entity."""

    DIRECT_LINK = "direct_link"
    ATTRIBUTE_COPY = "attribute_copy"


class StorageKind(Enum):
    """Storage kind of a host attribute value."""

    ELEMENT_ID = "element_id"
    STRING = "string"
    DOUBLE = "double"
    INTEGER = "integer"
    NONE = "none"


class OutcomeCode(Enum):
    """Terminal outcome of resolving one linear entity."""

    RESOLVED = "resolved"
    MISSING_CENTERLINE = "missing_centerline"
    PROBE_FAILED = "probe_failed"
    UNRESOLVED = "unresolved"


class PropagationCode(Enum):
    """What the propagator did with one assignment."""

    LINKED = "linked"
    ATTRIBUTE_COPIED = "attribute_copied"
    LINK_UNSUPPORTED = "link_unsupported"
    ATTRIBUTE_MISSING = "attribute_missing"
    HOST_VALUE_MISSING = "host_value_missing"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ResolverConfig:
    """Configuration for one host resolution deployment.

    ``probe_radius`` is expressed in the host geometry's length unit. Earlier
    revisions of this tool used 3.0, 0.2 and 250 mm (in feet) as the radius;
    3.0 is the default here.
    """

    probe_radius: float = 3.0
    probe_sections: int = 32
    probe_profile_segments: int = 16
    max_model_coordinate: float = 1.0e6
    propagation_mode: PropagationMode = PropagationMode.DIRECT_LINK
    host_attribute_name: Optional[str] = "Base Constraint"
    entity_attribute_name: Optional[str] = "Schedule Level"
    use_bounds_prefilter: bool = True
    boolean_engine: Optional[str] = "manifold"

    def validate(self) -> None:
        if not np.isfinite(self.probe_radius) or self.probe_radius <= 0.0:
            raise ConfigError(f"probe_radius must be > 0, got: {self.probe_radius}")
        if int(self.probe_sections) < 3:
            raise ConfigError(
                f"probe_sections must be >= 3, got: {self.probe_sections}"
            )
        if int(self.probe_profile_segments) < 2:
            raise ConfigError(
                f"probe_profile_segments must be >= 2, got: {self.probe_profile_segments}"
            )
        if self.max_model_coordinate <= 0.0:
            raise ConfigError("max_model_coordinate must be > 0")
        if not isinstance(self.propagation_mode, PropagationMode):
            raise ConfigError(f"Unknown propagation mode: {self.propagation_mode!r}")
        if self.propagation_mode is PropagationMode.ATTRIBUTE_COPY:
            if not (self.host_attribute_name or "").strip():
                raise ConfigError("attribute_copy mode requires host_attribute_name")
            if not (self.entity_attribute_name or "").strip():
                raise ConfigError("attribute_copy mode requires entity_attribute_name")

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["propagation_mode"] = self.propagation_mode.value
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ResolverConfig":
        known = {name for name in cls.__dataclass_fields__}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        values = dict(payload)
        if "propagation_mode" in values:
            try:
                values["propagation_mode"] = PropagationMode(values["propagation_mode"])
            except ValueError as exc:
                raise ConfigError(
                    f"Unknown propagation mode: {values['propagation_mode']!r}"
                ) from exc
        config = cls(**values)
        config.validate()
        return config


@dataclass(frozen=True)
class AttributeValue:
    """A host attribute as read from the collaborator."""

    storage: StorageKind
    value: Any = None


@dataclass(frozen=True)
class HostRecord:
    """Cached, read-only view of one cache-eligible host."""

    host_id: Hashable
    scan_index: int
    solids: Tuple[trimesh.Trimesh, ...]
    bounds: np.ndarray  # (2, 3) min/max over all solids
    derived_value: Any = None

    @property
    def volume(self) -> float:
        return float(sum(solid.volume for solid in self.solids))


@dataclass(frozen=True)
class HostAssignment:
    """Result of resolving one linear entity."""

    entity_id: Hashable
    outcome: OutcomeCode
    host_id: Optional[Hashable] = None
    probe_center: Optional[Vec3] = None
    hosts_tested: int = 0

    @property
    def is_resolved(self) -> bool:
        return self.outcome is OutcomeCode.RESOLVED and self.host_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "outcome": self.outcome.value,
            "host_id": self.host_id,
            "probe_center": list(self.probe_center) if self.probe_center else None,
            "hosts_tested": self.hosts_tested,
        }


@dataclass
class BatchRunResult:
    """In-memory result of one batch run."""

    config: ResolverConfig
    assignments: List[HostAssignment]
    propagation_codes: List[PropagationCode]  # same order as assignments
    cache_stats: Dict[str, int] = field(default_factory=dict)
    resolver_stats: Dict[str, int] = field(default_factory=dict)
    elapsed_s: float = 0.0

    def assignment_map(self) -> Dict[Hashable, Optional[Hashable]]:
        return {a.entity_id: a.host_id for a in self.assignments}

    def counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {"entities": len(self.assignments)}
        for code in OutcomeCode:
            counts[code.value] = sum(1 for a in self.assignments if a.outcome is code)
        for code in PropagationCode:
            counts[f"propagation_{code.value}"] = sum(
                1 for c in self.propagation_codes if c is code
            )
        return counts

    def to_payload(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "elapsed_s": round(self.elapsed_s, 3),
            "counts": self.counts(),
            "cache": dict(self.cache_stats),
            "resolver": dict(self.resolver_stats),
            "assignments": [
                dict(a.to_dict(), propagation=code.value)
                for a, code in zip(self.assignments, self.propagation_codes)
            ],
        }


def to_vec3(values: Sequence[float]) -> Vec3:
    return (float(values[0]), float(values[1]), float(values[2]))
