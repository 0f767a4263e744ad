"""Exception types for host resolution.

A batch run raises ``TransactionScopeError`` and ``ConfigError`` before any
work starts. Geometry, probe and intersection errors are contained per host
or per entity, as is ``HostLinkUnsupported`` during propagation. Any other
collaborator error raised while propagating escapes ``run_batch`` so that the
caller's transaction rolls back.
"""


class HostResolutionError(Exception):
    """Base class for host resolution errors."""


class ConfigError(HostResolutionError, ValueError):
    """Invalid ``ResolverConfig`` values."""


class DegenerateHostGeometry(HostResolutionError):
    """A host has no solid with positive enclosed volume."""

    def __init__(self, host_id, reason: str):
        super().__init__(f"Host {host_id} excluded: {reason}")
        self.host_id = host_id
        self.reason = reason


class MissingCenterline(HostResolutionError):
    """A linear entity exposes no centerline curves."""

    def __init__(self, entity_id):
        super().__init__(f"Entity {entity_id} has no centerline curves")
        self.entity_id = entity_id


class ProbeConstructionFailure(HostResolutionError):
    """The probe frame or revolved body is numerically degenerate."""


class IntersectionComputationFailure(HostResolutionError):
    """The boolean intersection raised for one probe/host pair."""

    def __init__(self, host_id, cause: Exception):
        super().__init__(f"Boolean intersection failed for host {host_id}: {cause}")
        self.host_id = host_id
        self.cause = cause


class HostLinkUnsupported(HostResolutionError):
    """Raised by collaborators when an entity's host link cannot be reassigned.

    Grouped and composite entities reject direct linking.
    """


class TransactionScopeError(HostResolutionError):
    """Mutation attempted outside an active transactional scope."""
