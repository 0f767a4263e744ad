"""
Shared fixtures for host resolution tests.
"""
import sys
from pathlib import Path

import pytest
import trimesh

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from host_resolution.contracts import (
    AttributeValue,
    PropagationMode,
    ResolverConfig,
    StorageKind,
)
from host_resolution.memory_model import (
    LineCurve,
    MemoryHost,
    MemoryLinearEntity,
    MemoryTransaction,
    box_host,
)


def _level(value):
    return {"Base Constraint": AttributeValue(storage=StorageKind.ELEMENT_ID, value=value)}


@pytest.fixture
def level():
    """Build the element-id valued level attribute walls expose."""
    return _level


@pytest.fixture
def make_rebar():
    """Build a linear entity whose first curve runs from start to end."""

    def _make(element_id, start, end, attributes=None, grouped=False, extra_curves=()):
        curves = [LineCurve.from_points(start, end)]
        curves.extend(LineCurve.from_points(s, e) for s, e in extra_curves)
        return MemoryLinearEntity(
            element_id, curves=curves, attributes=attributes, grouped=grouped
        )

    return _make


@pytest.fixture
def config():
    return ResolverConfig(probe_radius=3.0)


@pytest.fixture
def copy_config():
    return ResolverConfig(
        probe_radius=3.0, propagation_mode=PropagationMode.ATTRIBUTE_COPY
    )


@pytest.fixture
def big_wall():
    """10x10x10 wall centred at the origin on level 7."""
    return box_host(101, extents=[10, 10, 10], attributes=_level(7))


@pytest.fixture
def far_wall():
    """10x10x10 wall centred at x=50 on level 8."""
    return box_host(202, extents=[10, 10, 10], center=[50, 0, 0], attributes=_level(8))


@pytest.fixture
def inverted_wall():
    """Wall whose solid has inward-facing normals (negative volume)."""
    solid = trimesh.creation.box(extents=[10, 10, 10])
    solid.invert()
    return MemoryHost(element_id=303, geometry=[solid], attributes=_level(9))


@pytest.fixture
def broken_wall():
    """Wall whose geometry extraction raises."""
    return MemoryHost(element_id=404, geometry_error="geometry kernel error")


@pytest.fixture
def bar_at_origin(make_rebar):
    return make_rebar(9001, [-1, 0, 0], [1, 0, 0], attributes={"Schedule Level": None})


@pytest.fixture
def transaction():
    tx = MemoryTransaction("test")
    tx.start()
    yield tx
    if tx.is_active:
        tx.rollback()
