from __future__ import annotations

from typing import Sequence

from lprewards.core.errors import InvalidSplit
from lprewards.core.math.fixed_point import PRECISION, add, mul, sub

# Percentages are expressed in PRECISION units: 30% == 30 * PERCENT.
PERCENT = PRECISION // 100


class RewardDistributor:
    """
    Splits a payout across receivers by percentage.

    The last receiver takes whatever the explicit percentages leave over,
    so the parts always sum to the total exactly.
    """

    @staticmethod
    def validate(receivers: Sequence[str | None], percentages: Sequence[int]) -> None:
        if len(receivers) == 0:
            raise InvalidSplit("receivers must be non-empty")
        if len(percentages) != len(receivers) - 1:
            raise InvalidSplit(
                f"expected {len(receivers) - 1} percentages for {len(receivers)} receivers, got {len(percentages)}"
            )

        consumed = 0
        for i, p in enumerate(percentages):
            if p <= 0:
                raise InvalidSplit(f"percentage #{i} must be > 0")
            consumed += p
            if consumed >= PRECISION:
                raise InvalidSplit(f"percentages reach 100% at #{i}; last receiver would get nothing")

    def split(self, total_amount: int, receivers: Sequence[str | None], percentages: Sequence[int]) -> list[int]:
        """
        floor(total * p / PRECISION) per explicit percentage, remainder to the last receiver.

        A zero total is a no-op and returns an empty list (nothing to settle).
        """
        self.validate(receivers, percentages)
        if total_amount == 0:
            return []

        amounts: list[int] = []
        paid = 0
        for p in percentages:
            part = mul(total_amount, p) // PRECISION
            amounts.append(part)
            paid = add(paid, part)

        amounts.append(sub(total_amount, paid))
        return amounts
