from __future__ import annotations

import pytest

from lprewards.core.engine.state import AccrualState
from lprewards.core.errors import Underflow
from lprewards.core.math.fixed_point import PRECISION
from lprewards.ledger.positions import Position, PositionLedger


def _ledger() -> tuple[PositionLedger, AccrualState]:
    state = AccrualState(season_interval_slots=10)
    return PositionLedger(state=state), state


def test_first_touch_creates_zeroed_position() -> None:
    ledger, _ = _ledger()

    pos = ledger.touch("alice")

    assert pos == Position(account="alice")
    assert pos.is_fresh
    assert len(ledger) == 1


def test_settle_uses_previous_balance_then_checkpoints_new_one() -> None:
    ledger, state = _ledger()
    pos = ledger.touch("alice")
    assert ledger.settle(pos, current_liquidity_balance=500) == 0

    state.reward_per_share_stored = 3 * PRECISION
    accrued = ledger.settle(pos, current_liquidity_balance=200)

    assert accrued == 3 * PRECISION * 500
    assert pos.unclaimed_reward_scaled == 1500 * PRECISION
    assert pos.reward_per_share_checkpoint == 3 * PRECISION
    assert pos.last_liquidity_balance == 200

    state.reward_per_share_stored = 4 * PRECISION
    assert ledger.settle(pos, current_liquidity_balance=200) == PRECISION * 200
    assert pos.unclaimed_reward_scaled == 1700 * PRECISION


def test_settle_rejects_accumulator_moving_backwards() -> None:
    ledger, state = _ledger()
    pos = ledger.touch("alice")
    pos.reward_per_share_checkpoint = 10

    state.reward_per_share_stored = 9
    with pytest.raises(Underflow):
        ledger.settle(pos, current_liquidity_balance=1)


def test_peek_does_not_create_positions() -> None:
    ledger, _ = _ledger()

    view = ledger.peek("ghost")

    assert view.is_fresh
    assert ledger.get("ghost") is None
    assert len(ledger) == 0


def test_rollback_restores_touched_positions_in_place() -> None:
    ledger, state = _ledger()
    alice = ledger.touch("alice")
    ledger.settle(alice, current_liquidity_balance=100)

    ledger.begin()
    state.reward_per_share_stored = PRECISION
    ledger.settle(alice, current_liquidity_balance=0)
    ledger.touch("bob")
    ledger.rollback()

    assert ledger.get("bob") is None
    assert ledger.get("alice") is alice
    assert alice.unclaimed_reward_scaled == 0
    assert alice.last_liquidity_balance == 100


def test_nested_journals_roll_back_independently() -> None:
    ledger, state = _ledger()

    ledger.begin()
    alice = ledger.touch("alice")
    ledger.settle(alice, current_liquidity_balance=10)

    ledger.begin()
    state.reward_per_share_stored = PRECISION
    ledger.settle(alice, current_liquidity_balance=20)
    ledger.rollback()

    assert alice.last_liquidity_balance == 10
    assert alice.unclaimed_reward_scaled == 0

    ledger.commit()
    assert ledger.get("alice") is alice


def test_total_unclaimed_sums_all_positions() -> None:
    ledger, _ = _ledger()
    ledger.touch("a").unclaimed_reward_scaled = 5
    ledger.touch("b").unclaimed_reward_scaled = 7

    assert ledger.total_unclaimed_scaled() == 12
    assert {p.account for p in ledger} == {"a", "b"}
