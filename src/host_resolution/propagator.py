"""Write resolved hosts back onto linear entities."""

from __future__ import annotations

import logging
from typing import Any, Optional

from host_resolution.contracts import (
    HostAssignment,
    PropagationCode,
    PropagationMode,
    ResolverConfig,
)
from host_resolution.errors import HostLinkUnsupported
from host_resolution.geometry_cache import GeometryCache

logger = logging.getLogger(__name__)


def propagate(
    entity: Any,
    assignment: HostAssignment,
    cache: GeometryCache,
    scope: Any,
    config: Optional[ResolverConfig] = None,
) -> PropagationCode:
    """Apply *assignment* to *entity* using the configured mode.

    Direct-link failures raised as ``HostLinkUnsupported`` leave the entity
    untouched. Any other collaborator error propagates so the caller's
    transaction can roll back.
    """
    if config is None:
        config = ResolverConfig()
    if not assignment.is_resolved:
        return PropagationCode.SKIPPED

    if config.propagation_mode is PropagationMode.DIRECT_LINK:
        return _link_host(entity, assignment, scope)
    return _copy_attribute(entity, assignment, cache, scope, config)


def _link_host(entity: Any, assignment: HostAssignment, scope: Any) -> PropagationCode:
    try:
        entity.set_host_id(scope, assignment.host_id)
    except HostLinkUnsupported as exc:
        logger.warning(
            "Host link rejected for entity %s -> host %s: %s",
            assignment.entity_id, assignment.host_id, exc,
        )
        return PropagationCode.LINK_UNSUPPORTED
    return PropagationCode.LINKED


def _copy_attribute(
    entity: Any,
    assignment: HostAssignment,
    cache: GeometryCache,
    scope: Any,
    config: ResolverConfig,
) -> PropagationCode:
    record = cache.get(assignment.host_id)
    if record is None or record.derived_value is None:
        return PropagationCode.HOST_VALUE_MISSING

    slot = entity.lookup_attribute(config.entity_attribute_name)
    if slot is None:
        logger.debug(
            "Entity %s has no attribute %r",
            assignment.entity_id, config.entity_attribute_name,
        )
        return PropagationCode.ATTRIBUTE_MISSING

    slot.set(scope, record.derived_value)
    return PropagationCode.ATTRIBUTE_COPIED
