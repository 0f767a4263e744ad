"""First-match intersection resolver over the geometry cache.

Hosts are tested in cache scan order and the first host whose solid has a
positive-volume boolean intersection with the probe wins. No proximity
ranking is attempted.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import numpy as np
import trimesh

from host_resolution.contracts import HostRecord, ResolverConfig
from host_resolution.errors import IntersectionComputationFailure
from host_resolution.geometry_cache import GeometryCache

logger = logging.getLogger(__name__)


def bounds_overlap(a: np.ndarray, b: np.ndarray) -> bool:
    """Inclusive overlap test for two (2, 3) axis-aligned bounds."""
    return bool(np.all(a[0] <= b[1]) and np.all(b[0] <= a[1]))


def intersection_volume(
    probe: trimesh.Trimesh,
    solid: trimesh.Trimesh,
    engine: Optional[str] = None,
) -> float:
    """Volume of the exact boolean intersection; 0.0 for a null result."""
    result = trimesh.boolean.intersection([probe, solid], engine=engine)
    if result is None or result.is_empty:
        return 0.0
    volume = float(result.volume)
    return volume if np.isfinite(volume) else 0.0


class IntersectionResolver:
    """Resolves probes against a fully built, read-only ``GeometryCache``."""

    def __init__(self, cache: GeometryCache, config: Optional[ResolverConfig] = None):
        self.cache = cache
        self.config = config or ResolverConfig()
        self.boolean_calls = 0
        self.boolean_errors = 0
        self.prefilter_skips = 0

    def stats(self) -> Dict[str, int]:
        return {
            "boolean_calls": self.boolean_calls,
            "boolean_errors": self.boolean_errors,
            "prefilter_skips": self.prefilter_skips,
        }

    def resolve(self, probe: trimesh.Trimesh) -> Tuple[Optional[HostRecord], int]:
        """Return ``(first matching host or None, hosts tested)``."""
        probe_bounds = probe.bounds
        tested = 0
        for record in self.cache:
            tested += 1
            if self.config.use_bounds_prefilter and not bounds_overlap(
                probe_bounds, record.bounds
            ):
                self.prefilter_skips += 1
                continue
            if self._host_intersects(probe, record):
                return record, tested
        return None, tested

    def _host_intersects(self, probe: trimesh.Trimesh, record: HostRecord) -> bool:
        for solid in record.solids:
            if self.config.use_bounds_prefilter and not bounds_overlap(
                probe.bounds, solid.bounds
            ):
                continue
            self.boolean_calls += 1
            try:
                volume = intersection_volume(
                    probe, solid, engine=self.config.boolean_engine
                )
            except Exception as exc:
                self.boolean_errors += 1
                logger.warning("%s", IntersectionComputationFailure(record.host_id, exc))
                continue
            logger.debug(
                "Host %s intersection volume %.6f", record.host_id, volume
            )
            if volume > 0.0:
                return True
        return False
