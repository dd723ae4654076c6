from __future__ import annotations

import random

import pytest

from lprewards.core.errors import InvalidSplit
from lprewards.core.math.fixed_point import PRECISION
from lprewards.distribution.splitter import PERCENT, RewardDistributor


def test_thirty_seventy_split() -> None:
    parts = RewardDistributor().split(100, ["A", "B"], [30 * PERCENT])
    assert parts == [30, 70]


def test_single_receiver_takes_everything() -> None:
    assert RewardDistributor().split(12345, ["A"], []) == [12345]


def test_remainder_goes_to_last_receiver() -> None:
    # 10 * 1/3 floors to 3 twice; last receiver picks up the rounding
    third = PRECISION // 3
    assert RewardDistributor().split(10, ["A", "B", "C"], [third, third]) == [3, 3, 4]


def test_zero_total_is_a_noop() -> None:
    assert RewardDistributor().split(0, ["A", "B"], [50 * PERCENT]) == []


def test_split_always_sums_to_total() -> None:
    rng = random.Random(7)
    d = RewardDistributor()
    for _ in range(200):
        n = rng.randint(1, 6)
        remaining = PRECISION - 1
        percentages = []
        for _ in range(n - 1):
            p = rng.randint(1, max(1, remaining // 2))
            percentages.append(p)
            remaining -= p
        total = rng.randint(1, 10**30)
        parts = d.split(total, [f"r{i}" for i in range(n)], percentages)
        assert len(parts) == n
        assert sum(parts) == total
        assert all(p >= 0 for p in parts)


@pytest.mark.parametrize(
    "receivers,percentages",
    [
        ([], []),
        (["A", "B"], []),
        (["A"], [10 * PERCENT]),
        (["A", "B"], [0]),
        (["A", "B"], [100 * PERCENT]),
        (["A", "B", "C"], [60 * PERCENT, 40 * PERCENT]),
    ],
)
def test_invalid_splits_rejected(receivers, percentages) -> None:
    with pytest.raises(InvalidSplit):
        RewardDistributor().split(100, receivers, percentages)


def test_invalid_split_rejected_even_for_zero_total() -> None:
    with pytest.raises(InvalidSplit):
        RewardDistributor().split(0, ["A", "B"], [])
