"""Tests for the host geometry cache."""

import trimesh

from host_resolution.contracts import AttributeValue, StorageKind
from host_resolution.geometry_cache import build_geometry_cache
from host_resolution.memory_model import MemoryHost, box_host


class TestCacheMembership:
    """Only hosts with positive-volume solids are cached."""

    def test_positive_volume_host_is_cached(self, big_wall):
        cache = build_geometry_cache([big_wall])
        assert 101 in cache
        assert cache.get(101).volume > 0.0

    def test_negative_volume_host_is_excluded(self, big_wall, inverted_wall):
        cache = build_geometry_cache([big_wall, inverted_wall])
        assert 303 not in cache
        assert cache.excluded[303] == "non_positive_volume"

    def test_host_without_geometry_is_excluded(self):
        cache = build_geometry_cache([MemoryHost(element_id=1, geometry=None)])
        assert len(cache) == 0
        assert cache.excluded[1] == "no_geometry"

    def test_non_solid_geometry_is_ignored(self):
        host = MemoryHost(element_id=2, geometry=["not a solid", 42])
        cache = build_geometry_cache([host])
        assert 2 not in cache
        assert cache.excluded[2] == "no_geometry"

    def test_extraction_error_is_contained(self, broken_wall, big_wall):
        cache = build_geometry_cache([broken_wall, big_wall])
        assert cache.host_ids() == [101]
        assert cache.excluded[404] == "extraction_error"

    def test_mixed_solids_keep_only_positive_ones(self):
        good = trimesh.creation.box(extents=[2, 2, 2])
        bad = trimesh.creation.box(extents=[2, 2, 2])
        bad.invert()
        cache = build_geometry_cache([MemoryHost(element_id=5, geometry=[bad, good])])
        record = cache.get(5)
        assert record is not None
        assert len(record.solids) == 1
        assert record.volume > 0.0

    def test_membership_matches_volume_sign(self, big_wall, inverted_wall, far_wall):
        hosts = [big_wall, inverted_wall, far_wall]
        cache = build_geometry_cache(hosts)
        for host in hosts:
            positive = any(solid.volume > 0 for solid in host.get_geometry())
            assert (host.element_id in cache) == positive


class TestCacheOrderAndStats:
    def test_scan_order_is_preserved(self):
        hosts = [box_host(i, extents=[1, 1, 1], center=[i * 5, 0, 0]) for i in (9, 3, 7)]
        cache = build_geometry_cache(hosts)
        assert cache.host_ids() == [9, 3, 7]
        assert [r.scan_index for r in cache] == [0, 1, 2]

    def test_bounds_cover_all_solids(self):
        a = trimesh.creation.box(extents=[2, 2, 2])
        b = trimesh.creation.box(extents=[2, 2, 2])
        b.apply_translation([10, 0, 0])
        cache = build_geometry_cache([MemoryHost(element_id=1, geometry=[a, b])])
        bounds = cache.get(1).bounds
        assert bounds[0][0] == -1.0
        assert bounds[1][0] == 11.0

    def test_stats_count_exclusions(self, big_wall, inverted_wall, broken_wall):
        stats = build_geometry_cache([big_wall, inverted_wall, broken_wall]).stats()
        assert stats["scanned"] == 3
        assert stats["cached"] == 1
        assert stats["excluded"] == 2
        assert stats["excluded_non_positive_volume"] == 1
        assert stats["excluded_extraction_error"] == 1


class TestDerivedAttribute:
    def test_element_id_attribute_is_recorded(self, big_wall):
        cache = build_geometry_cache([big_wall], attribute_name="Base Constraint")
        assert cache.get(101).derived_value == 7

    def test_no_lookup_when_not_requested(self, big_wall):
        cache = build_geometry_cache([big_wall])
        assert cache.get(101).derived_value is None

    def test_unrecognized_storage_keeps_host_without_value(self):
        host = box_host(
            1,
            extents=[2, 2, 2],
            attributes={"Base Constraint": AttributeValue(StorageKind.STRING, "L1")},
        )
        cache = build_geometry_cache([host], attribute_name="Base Constraint")
        assert 1 in cache
        assert cache.get(1).derived_value is None

    def test_missing_attribute_keeps_host(self):
        cache = build_geometry_cache(
            [box_host(1, extents=[2, 2, 2])], attribute_name="Base Constraint"
        )
        assert 1 in cache
        assert cache.get(1).derived_value is None


class TestDuplicateHostIds:
    def test_first_occurrence_wins(self):
        first = box_host(1, extents=[2, 2, 2], center=[100, 0, 0])
        second = box_host(1, extents=[2, 2, 2])
        cache = build_geometry_cache([first, second])
        assert cache.host_ids() == [1]
        assert cache.get(1).scan_index == 0
        assert cache.get(1).bounds[0][0] == 99.0
        assert cache.excluded[1] == "duplicate_id"

    def test_duplicates_are_counted(self, big_wall):
        repeat = box_host(101, extents=[2, 2, 2])
        stats = build_geometry_cache([big_wall, repeat, repeat]).stats()
        assert stats["scanned"] == 3
        assert stats["cached"] == 1
        assert stats["excluded"] == 2
        assert stats["excluded_duplicate_id"] == 2
