"""Public API for resolving linear entities to their volumetric hosts."""

from host_resolution.batch import resolve_all, resolve_entity, run_batch
from host_resolution.contracts import (
    BatchRunResult,
    HostAssignment,
    OutcomeCode,
    PropagationCode,
    PropagationMode,
    ResolverConfig,
)
from host_resolution.geometry_cache import GeometryCache, build_geometry_cache

__all__ = [
    "BatchRunResult",
    "GeometryCache",
    "HostAssignment",
    "OutcomeCode",
    "PropagationCode",
    "PropagationMode",
    "ResolverConfig",
    "build_geometry_cache",
    "resolve_all",
    "resolve_entity",
    "run_batch",
]
