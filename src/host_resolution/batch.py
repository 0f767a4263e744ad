"""Batch run: cache hosts, resolve every entity, then propagate.

Resolution is read-only and completes for all entities before the first
mutation. Mutations go through the caller's transactional scope, which must
already be active; this module never opens, commits or rolls back.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, List, Optional

from host_resolution.audit import ResolutionAudit
from host_resolution.contracts import (
    BatchRunResult,
    HostAssignment,
    OutcomeCode,
    PropagationCode,
    PropagationMode,
    ResolverConfig,
    to_vec3,
)
from host_resolution.errors import (
    MissingCenterline,
    ProbeConstructionFailure,
    TransactionScopeError,
)
from host_resolution.geometry_cache import GeometryCache, build_geometry_cache
from host_resolution.probe import build_probe, representative_point
from host_resolution.propagator import propagate
from host_resolution.resolver import IntersectionResolver

logger = logging.getLogger(__name__)


def resolve_entity(
    entity: Any,
    resolver: IntersectionResolver,
) -> HostAssignment:
    """Resolve one linear entity to zero-or-one host."""
    entity_id = entity.element_id
    try:
        center = representative_point(entity)
    except MissingCenterline as exc:
        logger.debug("%s", exc)
        return HostAssignment(entity_id=entity_id, outcome=OutcomeCode.MISSING_CENTERLINE)

    try:
        probe = build_probe(center, resolver.config)
    except ProbeConstructionFailure as exc:
        logger.warning("Probe construction failed for entity %s: %s", entity_id, exc)
        return HostAssignment(
            entity_id=entity_id,
            outcome=OutcomeCode.PROBE_FAILED,
            probe_center=to_vec3(center) if len(center) == 3 else None,
        )

    record, tested = resolver.resolve(probe)
    if record is None:
        return HostAssignment(
            entity_id=entity_id,
            outcome=OutcomeCode.UNRESOLVED,
            probe_center=to_vec3(center),
            hosts_tested=tested,
        )
    return HostAssignment(
        entity_id=entity_id,
        outcome=OutcomeCode.RESOLVED,
        host_id=record.host_id,
        probe_center=to_vec3(center),
        hosts_tested=tested,
    )


def resolve_all(
    entities: Iterable[Any],
    cache: GeometryCache,
    config: Optional[ResolverConfig] = None,
) -> List[HostAssignment]:
    """Resolve every entity against a built cache without mutating anything."""
    resolver = IntersectionResolver(cache, config)
    return [resolve_entity(entity, resolver) for entity in entities]


def run_batch(
    hosts: Iterable[Any],
    entities: Iterable[Any],
    scope: Any,
    config: Optional[ResolverConfig] = None,
    audit: Optional[ResolutionAudit] = None,
) -> BatchRunResult:
    """Resolve and propagate hosts for all *entities* inside *scope*.

    Args:
        hosts: volumetric host collection, scanned once in the given order.
        entities: linear entity collection.
        scope: active transactional scope supplied by the caller.
        config: resolver configuration.
        audit: optional decision log. It is left open; the caller records the
            transaction outcome and finalizes it.

    Raises:
        TransactionScopeError: *scope* is not active.
    """
    if config is None:
        config = ResolverConfig()
    config.validate()
    if scope is None or not getattr(scope, "is_active", False):
        raise TransactionScopeError("run_batch requires an active transactional scope")

    started = time.perf_counter()
    entity_list = list(entities)

    attribute_name = (
        config.host_attribute_name
        if config.propagation_mode is PropagationMode.ATTRIBUTE_COPY
        else None
    )
    cache = build_geometry_cache(hosts, attribute_name=attribute_name)
    if audit is not None:
        audit.record_phase(phase_name="geometry_cache", counts=cache.stats())

    resolver = IntersectionResolver(cache, config)
    assignments = [resolve_entity(entity, resolver) for entity in entity_list]
    if audit is not None:
        audit.record_phase(phase_name="resolution", counts=resolver.stats())

    codes: List[PropagationCode] = [
        propagate(entity, assignment, cache, scope, config)
        for entity, assignment in zip(entity_list, assignments)
    ]

    result = BatchRunResult(
        config=config,
        assignments=assignments,
        propagation_codes=codes,
        cache_stats=cache.stats(),
        resolver_stats=resolver.stats(),
        elapsed_s=time.perf_counter() - started,
    )

    if audit is not None:
        candidate_ids = cache.host_ids()
        for assignment, code in zip(assignments, codes):
            audit.record_resolution(assignment, candidate_ids, code)
        audit.record_phase(phase_name="propagation", counts=result.counts())

    counts = result.counts()
    logger.info(
        "Resolved %d/%d entities (%d unresolved, %d skipped) in %.2fs",
        counts[OutcomeCode.RESOLVED.value],
        counts["entities"],
        counts[OutcomeCode.UNRESOLVED.value],
        counts[OutcomeCode.MISSING_CENTERLINE.value] + counts[OutcomeCode.PROBE_FAILED.value],
        result.elapsed_s,
    )
    return result
