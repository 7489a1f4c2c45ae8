"""
Load-balanced allocation planning.

Splits a batch of items into per-participant buckets so that every item
is judged by ``redundancy`` distinct participants and every participant
receives (almost) the same number of items.

Key Formulas:
    T = N · R                 (judgement slots needed)
    C = ⌈T / E⌉               (items per participant)
    q, r = divmod(T, E)       (bucket i holds q + 1 items if i < r, else q)
    coverage_complete ⇔ E · min(C, N) ≥ T

Selection is greedy least-loaded: each bucket takes the items that still
need the most judgements, ties broken by the smallest item id, so the
plan is fully determined by its inputs.
"""

import heapq
import logging
from collections import Counter
from typing import Any, List, Sequence, Tuple

from ratepool.core.errors import InvalidParameter
from ratepool.core.models import AllocationPlan, ItemId, PlanStats

logger = logging.getLogger(__name__)


def _require_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidParameter(f"{name} must be an integer >= 1, got {value!r}")
    return value


def validate_items(item_ids: Sequence[ItemId]) -> Tuple[ItemId, ...]:
    """
    Check that item ids are distinct and mutually orderable.

    Raises:
        InvalidParameter: On duplicates or ids that cannot be compared
    """
    items = tuple(item_ids)
    if len(set(items)) != len(items):
        duplicates = sorted(str(i) for i, n in Counter(items).items() if n > 1)
        raise InvalidParameter(f"Duplicate item ids: {', '.join(duplicates)}")
    try:
        sorted(items)
    except TypeError as e:
        raise InvalidParameter(f"Item ids must be mutually comparable: {e}") from e
    return items


def bucket_quotas(total_slots: int, bucket_count: int, item_count: int) -> List[int]:
    """
    Balanced bucket sizes: the first ``T mod E`` buckets get one extra item.
    A bucket can never exceed the number of distinct items.
    """
    base, extra = divmod(total_slots, bucket_count)
    return [
        min(base + 1 if index < extra else base, item_count)
        for index in range(bucket_count)
    ]


def plan(
    item_ids: Sequence[ItemId],
    redundancy: int,
    expected_participants: int
) -> AllocationPlan:
    """
    Compute a deterministic, load-balanced allocation plan.

    Args:
        item_ids: Ordered, distinct item identifiers
        redundancy: Judgements needed per item (R >= 1)
        expected_participants: Number of buckets to build (E >= 1)

    Returns:
        AllocationPlan with E buckets and its PlanStats

    Raises:
        InvalidParameter: If R or E is not a positive integer, or the
            item ids are duplicated or not comparable

    Example:
        >>> p = plan(list(range(10)), redundancy=3, expected_participants=5)
        >>> p.stats.capacity, p.stats.coverage_complete
        (6, True)
    """
    redundancy = _require_positive_int("redundancy", redundancy)
    expected_participants = _require_positive_int("expected_participants", expected_participants)
    items = validate_items(item_ids)

    item_count = len(items)
    total_slots = item_count * redundancy
    capacity = -(-total_slots // expected_participants)
    quotas = bucket_quotas(total_slots, expected_participants, item_count)

    # Min-heap on (-remaining_need, item_id): most-needed item first,
    # smallest id on ties.
    heap = [(-redundancy, item_id) for item_id in items]
    heapq.heapify(heap)

    buckets: List[Tuple[ItemId, ...]] = []
    for quota in quotas:
        selected = []
        while heap and len(selected) < quota:
            selected.append(heapq.heappop(heap))

        for neg_need, item_id in selected:
            if neg_need + 1 < 0:
                heapq.heappush(heap, (neg_need + 1, item_id))

        buckets.append(tuple(item_id for _, item_id in selected))

    assigned_slots = sum(len(bucket) for bucket in buckets)
    stats = PlanStats(
        total_slots=total_slots,
        capacity=capacity,
        coverage_complete=expected_participants * min(capacity, item_count) >= total_slots,
        assigned_slots=assigned_slots,
        shortfall=total_slots - assigned_slots,
        bucket_count=expected_participants,
    )

    if not stats.coverage_complete:
        logger.warning(
            f"Under-provisioned plan: {item_count} items x R={redundancy} over "
            f"E={expected_participants} participants leaves {stats.shortfall} "
            f"judgement slots uncovered"
        )

    return AllocationPlan(buckets=tuple(buckets), stats=stats)
