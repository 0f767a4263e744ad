"""
One-time geometry scan of volumetric hosts.

Each host contributes its positive-volume solids and, optionally, one derived
attribute value. Hosts are kept in scan order; that order is the resolver's
tie-break, so the cache must not be re-sorted.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Tuple

import numpy as np
import trimesh

from host_resolution.contracts import AttributeValue, HostRecord, StorageKind
from host_resolution.errors import DegenerateHostGeometry

logger = logging.getLogger(__name__)

_RECOGNIZED_STORAGE = (StorageKind.ELEMENT_ID,)


class GeometryCache:
    """Ordered, read-only mapping of host id -> ``HostRecord``."""

    def __init__(self) -> None:
        self._records: "OrderedDict[Hashable, HostRecord]" = OrderedDict()
        self.excluded: Dict[Hashable, str] = {}
        self._exclusions: List[Tuple[Hashable, str]] = []
        self.scanned = 0

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, host_id: Hashable) -> bool:
        return host_id in self._records

    def __iter__(self) -> Iterator[HostRecord]:
        return iter(self._records.values())

    def get(self, host_id: Hashable) -> Optional[HostRecord]:
        return self._records.get(host_id)

    def host_ids(self) -> List[Hashable]:
        return list(self._records)

    def _add(self, record: HostRecord) -> None:
        self._records[record.host_id] = record

    def _exclude(self, host_id: Hashable, reason: str) -> None:
        # first reason wins for lookup; stats count every excluded scan entry
        self.excluded.setdefault(host_id, reason)
        self._exclusions.append((host_id, reason))

    def stats(self) -> Dict[str, int]:
        reasons: Dict[str, int] = {}
        for _, reason in self._exclusions:
            reasons[reason] = reasons.get(reason, 0) + 1
        stats = {
            "scanned": self.scanned,
            "cached": len(self._records),
            "excluded": len(self._exclusions),
            "with_derived_value": sum(
                1 for r in self._records.values() if r.derived_value is not None
            ),
        }
        for reason, count in sorted(reasons.items()):
            stats[f"excluded_{reason}"] = count
        return stats


def build_geometry_cache(
    hosts: Iterable[Any],
    attribute_name: Optional[str] = None,
) -> GeometryCache:
    """Scan *hosts* once and build the geometry cache.

    Args:
        hosts: objects exposing ``element_id``, ``get_geometry()`` and
            ``lookup_attribute(name)``.
        attribute_name: derived attribute to record per host, or None.

    Returns:
        GeometryCache in host scan order.
    """
    cache = GeometryCache()
    for scan_index, host in enumerate(hosts):
        cache.scanned += 1
        host_id = host.element_id
        if host_id in cache:
            logger.warning(
                "Duplicate host id %s at scan index %d; keeping the first occurrence",
                host_id, scan_index,
            )
            cache._exclude(host_id, "duplicate_id")
            continue
        try:
            solids = _extract_solids(host)
        except DegenerateHostGeometry as exc:
            logger.debug("%s", exc)
            cache._exclude(host_id, exc.reason)
            continue
        except Exception as exc:
            logger.warning("Geometry extraction failed for host %s: %s", host_id, exc)
            cache._exclude(host_id, "extraction_error")
            continue

        cache._add(
            HostRecord(
                host_id=host_id,
                scan_index=scan_index,
                solids=solids,
                bounds=_combined_bounds(solids),
                derived_value=_read_derived_value(host, attribute_name),
            )
        )

    logger.info(
        "Geometry cache: %d/%d hosts cached (%d excluded)",
        len(cache), cache.scanned, len(cache._exclusions),
    )
    return cache


def _extract_solids(host: Any) -> Tuple[trimesh.Trimesh, ...]:
    geometry = host.get_geometry()
    if geometry is None:
        raise DegenerateHostGeometry(host.element_id, "no_geometry")
    if isinstance(geometry, trimesh.Trimesh):
        geometry = [geometry]

    meshes = [g for g in geometry if isinstance(g, trimesh.Trimesh) and not g.is_empty]
    if not meshes:
        raise DegenerateHostGeometry(host.element_id, "no_geometry")

    solids = tuple(m for m in meshes if _positive_volume(m))
    if not solids:
        raise DegenerateHostGeometry(host.element_id, "non_positive_volume")
    return solids


def _positive_volume(mesh: trimesh.Trimesh) -> bool:
    volume = float(mesh.volume)
    return bool(np.isfinite(volume) and volume > 0.0)


def _combined_bounds(solids: Tuple[trimesh.Trimesh, ...]) -> np.ndarray:
    stacked = np.vstack([solid.bounds for solid in solids])
    return np.array([stacked.min(axis=0), stacked.max(axis=0)])


def _read_derived_value(host: Any, attribute_name: Optional[str]) -> Any:
    if not attribute_name:
        return None
    try:
        attribute = host.lookup_attribute(attribute_name)
    except Exception as exc:
        logger.warning(
            "Attribute lookup %r failed on host %s: %s",
            attribute_name, host.element_id, exc,
        )
        return None
    if not isinstance(attribute, AttributeValue):
        return None
    if attribute.storage not in _RECOGNIZED_STORAGE:
        logger.debug(
            "Host %s attribute %r has unsupported storage %s",
            host.element_id, attribute_name, attribute.storage.value,
        )
        return None
    return attribute.value
