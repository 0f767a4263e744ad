"""Tests for writing resolved hosts back onto entities."""

import pytest

from host_resolution.contracts import HostAssignment, OutcomeCode, PropagationCode
from host_resolution.geometry_cache import build_geometry_cache
from host_resolution.memory_model import box_host
from host_resolution.propagator import propagate


def _resolved(entity_id, host_id):
    return HostAssignment(entity_id=entity_id, outcome=OutcomeCode.RESOLVED, host_id=host_id)


class TestDirectLink:
    def test_links_host(self, big_wall, bar_at_origin, transaction, config):
        cache = build_geometry_cache([big_wall])
        code = propagate(bar_at_origin, _resolved(9001, 101), cache, transaction, config)
        assert code is PropagationCode.LINKED
        transaction.commit()
        assert bar_at_origin.host_id == 101

    def test_grouped_entity_is_left_untouched(self, big_wall, make_rebar, transaction, config):
        bar = make_rebar(1, [0, 0, 0], [1, 0, 0], grouped=True)
        cache = build_geometry_cache([big_wall])
        code = propagate(bar, _resolved(1, 101), cache, transaction, config)
        assert code is PropagationCode.LINK_UNSUPPORTED
        assert transaction.pending_count == 0
        transaction.commit()
        assert bar.host_id is None

    def test_unexpected_collaborator_error_propagates(self, big_wall, bar_at_origin, config):
        class ClosedScope:
            is_active = True

            def record(self, mutation):
                raise RuntimeError("document is read-only")

        cache = build_geometry_cache([big_wall])
        with pytest.raises(RuntimeError):
            propagate(bar_at_origin, _resolved(9001, 101), cache, ClosedScope(), config)

    def test_unresolved_is_skipped(self, big_wall, bar_at_origin, transaction, config):
        cache = build_geometry_cache([big_wall])
        unresolved = HostAssignment(entity_id=9001, outcome=OutcomeCode.UNRESOLVED)
        assert propagate(bar_at_origin, unresolved, cache, transaction, config) is PropagationCode.SKIPPED
        assert transaction.pending_count == 0


class TestAttributeCopy:
    def test_copies_host_level(self, big_wall, bar_at_origin, transaction, copy_config):
        cache = build_geometry_cache([big_wall], attribute_name="Base Constraint")
        code = propagate(bar_at_origin, _resolved(9001, 101), cache, transaction, copy_config)
        assert code is PropagationCode.ATTRIBUTE_COPIED
        transaction.commit()
        assert bar_at_origin.attribute_value("Schedule Level") == 7
        assert bar_at_origin.host_id is None

    def test_grouped_entity_still_receives_copy(
        self, big_wall, make_rebar, transaction, copy_config
    ):
        bar = make_rebar(1, [0, 0, 0], [1, 0, 0], attributes={"Schedule Level": None}, grouped=True)
        cache = build_geometry_cache([big_wall], attribute_name="Base Constraint")
        code = propagate(bar, _resolved(1, 101), cache, transaction, copy_config)
        assert code is PropagationCode.ATTRIBUTE_COPIED

    def test_missing_target_attribute_is_silent(
        self, big_wall, make_rebar, transaction, copy_config
    ):
        bar = make_rebar(1, [0, 0, 0], [1, 0, 0])
        cache = build_geometry_cache([big_wall], attribute_name="Base Constraint")
        code = propagate(bar, _resolved(1, 101), cache, transaction, copy_config)
        assert code is PropagationCode.ATTRIBUTE_MISSING
        assert transaction.pending_count == 0

    def test_host_without_value_is_silent(self, bar_at_origin, transaction, copy_config):
        cache = build_geometry_cache(
            [box_host(5, extents=[10, 10, 10])], attribute_name="Base Constraint"
        )
        code = propagate(bar_at_origin, _resolved(9001, 5), cache, transaction, copy_config)
        assert code is PropagationCode.HOST_VALUE_MISSING
        assert transaction.pending_count == 0
