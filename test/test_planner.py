"""
Unit tests for ratepool/scheduling/planner.py.

Tests:
- Coverage and load balance of generated plans
- Determinism
- Plan statistics and under-provisioned plans
- Parameter validation
"""

import pytest
from collections import Counter

from ratepool.core.errors import InvalidParameter
from ratepool.scheduling.planner import bucket_quotas, plan, validate_items


def occurrences(allocation):
    return Counter(item for bucket in allocation.buckets for item in bucket)


# =============================================================================
# Coverage & Balance
# =============================================================================

class TestCoverage:
    """Every item reaches its redundancy target when capacity allows."""

    def test_reference_scenario(self):
        """10 items x 3 over 5 participants: 6 items each, 3 judgements per item."""
        allocation = plan(list(range(10)), redundancy=3, expected_participants=5)

        assert len(allocation) == 5
        assert allocation.stats.total_slots == 30
        assert allocation.stats.capacity == 6
        assert allocation.stats.coverage_complete is True
        assert allocation.stats.shortfall == 0
        assert all(len(bucket) == 6 for bucket in allocation.buckets)
        assert all(count == 3 for count in occurrences(allocation).values())

    def test_first_bucket_takes_smallest_ids(self):
        allocation = plan(list(range(10)), redundancy=3, expected_participants=5)
        assert allocation.bucket(0) == (0, 1, 2, 3, 4, 5)
        assert allocation.bucket(1) == (6, 7, 8, 9, 0, 1)

    @pytest.mark.parametrize("n,r,e", [
        (7, 2, 3),
        (12, 5, 7),
        (3, 3, 3),
        (25, 4, 9),
        (1, 1, 1),
    ])
    def test_exact_redundancy(self, n, r, e):
        allocation = plan(list(range(n)), redundancy=r, expected_participants=e)
        counts = occurrences(allocation)

        assert allocation.stats.coverage_complete is True
        assert set(counts) == set(range(n))
        assert all(count == r for count in counts.values())
        assert sum(counts.values()) == n * r

    @pytest.mark.parametrize("n,r,e", [(7, 2, 3), (10, 3, 4), (5, 1, 5), (9, 4, 2)])
    def test_bucket_sizes_differ_by_at_most_one(self, n, r, e):
        allocation = plan(list(range(n)), redundancy=r, expected_participants=e)
        sizes = [len(bucket) for bucket in allocation.buckets]

        assert max(sizes) - min(sizes) <= 1
        assert max(sizes) <= allocation.stats.capacity

    def test_buckets_hold_distinct_items(self):
        allocation = plan(list(range(6)), redundancy=4, expected_participants=5)
        for bucket in allocation.buckets:
            assert len(set(bucket)) == len(bucket)

    def test_string_item_ids(self):
        items = ["img-a", "img-b", "img-c", "img-d"]
        allocation = plan(items, redundancy=2, expected_participants=4)

        assert all(count == 2 for count in occurrences(allocation).values())
        assert allocation.bucket(0) == ("img-a", "img-b")


# =============================================================================
# Determinism
# =============================================================================

class TestDeterminism:
    """Identical inputs produce identical plans."""

    def test_repeatable(self):
        first = plan(list(range(17)), redundancy=3, expected_participants=6)
        second = plan(list(range(17)), redundancy=3, expected_participants=6)
        assert first == second

    def test_to_dict_round_trip(self):
        from ratepool.core.models import AllocationPlan

        allocation = plan(list(range(8)), redundancy=2, expected_participants=3)
        assert AllocationPlan.from_dict(allocation.to_dict()) == allocation


# =============================================================================
# Edge Cases
# =============================================================================

class TestEdgeCases:
    """Empty batches, surplus participants and under-provisioning."""

    def test_empty_item_list(self):
        allocation = plan([], redundancy=3, expected_participants=4)

        assert len(allocation) == 4
        assert all(bucket == () for bucket in allocation.buckets)
        assert allocation.stats.total_slots == 0
        assert allocation.stats.capacity == 0
        assert allocation.stats.coverage_complete is True

    def test_more_participants_than_slots(self):
        allocation = plan(list(range(3)), redundancy=1, expected_participants=5)
        sizes = [len(bucket) for bucket in allocation.buckets]

        assert sizes == [1, 1, 1, 0, 0]
        assert allocation.stats.capacity == 1
        assert allocation.stats.coverage_complete is True

    def test_under_provisioned_plan(self, caplog):
        """R larger than E: an item can appear in at most E buckets."""
        with caplog.at_level("WARNING", logger="ratepool.scheduling.planner"):
            allocation = plan(list(range(2)), redundancy=5, expected_participants=3)

        assert allocation.stats.coverage_complete is False
        assert allocation.stats.assigned_slots == 6
        assert allocation.stats.shortfall == 4
        assert all(count == 3 for count in occurrences(allocation).values())
        assert "Under-provisioned" in caplog.text

    def test_single_participant_takes_everything(self):
        allocation = plan(list(range(5)), redundancy=1, expected_participants=1)
        assert allocation.bucket(0) == (0, 1, 2, 3, 4)


# =============================================================================
# Validation
# =============================================================================

class TestValidation:
    """Malformed parameters are rejected before planning."""

    @pytest.mark.parametrize("redundancy", [0, -1, 1.5, True, "3", None])
    def test_invalid_redundancy(self, redundancy):
        with pytest.raises(InvalidParameter):
            plan(list(range(4)), redundancy=redundancy, expected_participants=2)

    @pytest.mark.parametrize("expected", [0, -3, 2.0, False])
    def test_invalid_expected_participants(self, expected):
        with pytest.raises(InvalidParameter):
            plan(list(range(4)), redundancy=2, expected_participants=expected)

    def test_duplicate_items(self):
        with pytest.raises(InvalidParameter, match="Duplicate item ids: 2"):
            validate_items([1, 2, 2, 3])

    def test_incomparable_items(self):
        with pytest.raises(InvalidParameter):
            validate_items([1, "a"])

    def test_quotas(self):
        assert bucket_quotas(30, 5, 10) == [6, 6, 6, 6, 6]
        assert bucket_quotas(14, 4, 7) == [4, 4, 3, 3]
        assert bucket_quotas(10, 3, 2) == [2, 2, 2]
