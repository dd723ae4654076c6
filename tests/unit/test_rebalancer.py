from __future__ import annotations

import pytest

from lprewards.collaborators.memory import InMemoryRewardToken, RecordingBoundarySink
from lprewards.core.engine.clock import ManualClock
from lprewards.core.engine.state import AccrualState, quantize_interval
from lprewards.core.errors import Underflow
from lprewards.core.math.fixed_point import PRECISION
from lprewards.seasons.rebalancer import EpochRebalancer

START = 1_000
REWARD = 1_000_000
RATE_SCALED = REWARD * PRECISION // 150


def _rebalancer(
    *,
    interval: int = 150,
    reward: int = REWARD,
    reset_only: bool = False,
    suppress: bool = False,
) -> tuple[EpochRebalancer, AccrualState, ManualClock, InMemoryRewardToken, RecordingBoundarySink]:
    state = AccrualState(
        season_interval_slots=quantize_interval(interval) // 15,
        reset_only=reset_only,
        suppress_external_notify=suppress,
    )
    clock = ManualClock(now=START)
    token = InMemoryRewardToken()
    token.fund(reward)
    sink = RecordingBoundarySink()
    return EpochRebalancer(state=state, token=token, clock=clock, sink=sink), state, clock, token, sink


def test_season_starts_with_floored_rate() -> None:
    rb, state, _, _, sink = _rebalancer()

    res = rb.advance(current_total_liquidity=1000)

    assert res.opened is not None
    assert res.closed is None
    assert res.season_end == START + 150
    assert res.rate_per_second == REWARD // 150
    assert state.season_start == START
    assert state.reward_per_event_scaled == RATE_SCALED
    assert state.reserved_balance_scaled == REWARD * PRECISION
    assert sink.boundaries == [START + 150]


def test_accumulator_grows_by_elapsed_rate_over_liquidity() -> None:
    rb, state, clock, _, _ = _rebalancer()
    rb.advance(current_total_liquidity=1000)

    clock.advance(50)
    res = rb.advance(current_total_liquidity=1000)

    assert res.opened is None and res.closed is None
    assert state.reward_per_share_stored == 50 * RATE_SCALED // 1000
    assert state.last_accrual_time == START + 50


def test_accrual_divides_by_previous_total_not_the_new_one() -> None:
    rb, state, clock, _, _ = _rebalancer()
    rb.advance(current_total_liquidity=1000)

    clock.advance(50)
    rb.advance(current_total_liquidity=4000)
    after_first = 50 * RATE_SCALED // 1000
    assert state.reward_per_share_stored == after_first
    assert state.previous_total_liquidity == 4000

    clock.advance(30)
    rb.advance(current_total_liquidity=4000)
    assert state.reward_per_share_stored == after_first + 30 * RATE_SCALED // 4000


def test_accrual_is_capped_at_season_end_and_season_closes() -> None:
    rb, state, clock, _, _ = _rebalancer()
    rb.advance(current_total_liquidity=1000)

    clock.advance(200)
    res = rb.advance(current_total_liquidity=1000)

    assert state.reward_per_share_stored == 150 * RATE_SCALED // 1000
    assert res.closed is not None
    assert res.closed.clawback_scaled == 0
    # whole balance is already reserved: nothing left for a new season
    assert res.opened is None
    assert res.season_end == 0
    assert state.season_start == 0
    assert state.reward_per_event_scaled == 0
    assert state.reserved_balance_scaled == REWARD * PRECISION


def test_new_deposit_opens_next_season_at_boundary() -> None:
    rb, state, clock, token, _ = _rebalancer()
    rb.advance(current_total_liquidity=1000)

    token.fund(3_000)
    clock.advance(150)
    res = rb.advance(current_total_liquidity=1000)

    assert res.closed is not None
    assert res.opened is not None
    assert res.opened.season_reward_scaled == 3_000 * PRECISION
    assert state.season_start == START + 150
    assert state.season_end == START + 300
    assert state.reserved_balance_scaled == (REWARD + 3_000) * PRECISION


def test_draining_liquidity_ends_season_early_and_claws_back_tail() -> None:
    rb, state, clock, _, _ = _rebalancer()
    rb.advance(current_total_liquidity=1000)

    clock.advance(50)
    res = rb.advance(current_total_liquidity=0)

    assert res.closed is not None
    assert res.closed.clawback_scaled == 100 * RATE_SCALED
    assert res.opened is None
    assert state.reserved_balance_scaled == REWARD * PRECISION - 100 * RATE_SCALED
    assert state.reward_per_share_stored == 50 * RATE_SCALED // 1000
    # the clawed-back tail is available again
    assert rb.calculate_available_reward() == 100 * RATE_SCALED


def test_force_reset_restarts_season_with_unearned_tail() -> None:
    rb, state, clock, _, sink = _rebalancer()
    rb.advance(current_total_liquidity=1000)

    clock.advance(50)
    res = rb.advance(current_total_liquidity=1000, force_reset=True)

    assert res.closed is not None and res.closed.forced
    assert res.opened is not None
    assert state.season_start == START + 50
    assert state.season_end == START + 200
    assert state.reward_per_event_scaled == 100 * RATE_SCALED // 150
    assert state.reserved_balance_scaled == REWARD * PRECISION
    assert sink.boundaries == [START + 150, START + 200]


def test_reset_only_blocks_available_reward_unless_forced() -> None:
    rb, state, _, token, _ = _rebalancer(reset_only=True)
    token.fund(500)

    assert rb.calculate_available_reward() == 0
    assert rb.calculate_available_reward(force_reset=True) == (REWARD + 500) * PRECISION

    res = rb.advance(current_total_liquidity=1000)
    assert res.opened is None
    assert not state.is_active

    res = rb.advance(current_total_liquidity=1000, force_reset=True)
    assert res.opened is not None
    assert state.is_active


def test_no_season_without_liquidity() -> None:
    rb, state, _, _, sink = _rebalancer()

    res = rb.advance(current_total_liquidity=0)

    assert res.opened is None
    assert not state.is_active
    assert sink.boundaries == []


def test_inhibited_accrual_still_records_total() -> None:
    rb, state, clock, _, _ = _rebalancer()
    rb.advance(current_total_liquidity=1000)

    clock.advance(50)
    rb.advance(current_total_liquidity=2000, inhibit_accrual=True)

    assert state.reward_per_share_stored == 0
    assert state.last_accrual_time == 0
    assert state.previous_total_liquidity == 2000


def test_notification_skipped_for_sink_caller_and_when_suppressed() -> None:
    rb, _, _, _, sink = _rebalancer()
    rb.advance(current_total_liquidity=1000, notify=False)
    assert sink.boundaries == []

    rb2, _, _, _, sink2 = _rebalancer(suppress=True)
    rb2.advance(current_total_liquidity=1000)
    assert sink2.boundaries == []


def test_quantized_interval_is_used_for_season_length() -> None:
    rb, state, _, _, _ = _rebalancer(interval=100)

    rb.advance(current_total_liquidity=1000)

    assert state.season_end - state.season_start == 90


@pytest.mark.parametrize("seconds", [0, 14, 15, 16, 29, 30, 100, 604_800, 604_801])
def test_quantize_interval_floors_to_time_slot(seconds: int) -> None:
    assert quantize_interval(seconds) == (seconds // 15) * 15


def test_failed_advance_leaves_state_untouched() -> None:
    rb, state, clock, _, _ = _rebalancer()
    rb.advance(current_total_liquidity=1000)
    # corrupt the reserve so the boundary clawback underflows
    state.reserved_balance_scaled = 0
    before = state.snapshot()

    clock.advance(50)
    with pytest.raises(Underflow):
        rb.advance(current_total_liquidity=0)

    assert state == before


def test_projection_matches_a_real_advance() -> None:
    rb, state, clock, _, _ = _rebalancer()
    rb.advance(current_total_liquidity=1000)
    clock.advance(70)

    projected = rb.projected_reward_per_share()
    rb.advance(current_total_liquidity=1000)

    assert projected == state.reward_per_share_stored
