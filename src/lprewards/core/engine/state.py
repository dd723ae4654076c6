from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Final

# Season length is always a whole number of slots.
TIME_SLOT: Final[int] = 15


@dataclass(slots=True)
class AccrualState:
    """
    Global accrual state shared by every engine component.

    Scaled fields (x PRECISION):
      - reward_per_event_scaled: emission rate per second
      - reward_per_share_stored: cumulative reward per unit of liquidity
      - reserved_balance_scaled: reward-token balance committed to past/current seasons

    Season fields:
      - season_end == 0 means Idle, anything else means Active
      - previous_total_liquidity is the divisor for the NEXT accrual step

    Guardrails:
      - sequence only moves forward (event ordering / replay)
    """

    season_interval_slots: int

    reward_per_event_scaled: int = 0
    reward_per_share_stored: int = 0
    reserved_balance_scaled: int = 0
    previous_total_liquidity: int = 0

    season_start: int = 0
    season_end: int = 0
    last_accrual_time: int = 0

    total_liquidity: int = 0

    reset_only: bool = False
    suppress_external_notify: bool = False

    sequence: int = 0

    @property
    def is_active(self) -> bool:
        return self.season_end != 0

    @property
    def season_interval_seconds(self) -> int:
        return self.season_interval_slots * TIME_SLOT

    def next_sequence(self) -> int:
        self.sequence += 1
        return self.sequence

    def snapshot(self) -> AccrualState:
        return replace(self)

    def restore(self, snap: AccrualState, *, keep_sequence: bool = False) -> None:
        for name in self.__slots__:
            if keep_sequence and name == "sequence":
                continue
            setattr(self, name, getattr(snap, name))


def quantize_interval(seconds: int) -> int:
    """Round a season length down to a whole number of TIME_SLOTs."""
    if seconds < 0:
        raise ValueError("season interval must be >= 0")
    return (seconds // TIME_SLOT) * TIME_SLOT
