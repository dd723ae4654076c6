from __future__ import annotations

from threading import Lock
from typing import NoReturn

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from lprewards.core.config.settings import settings
from lprewards.core.engine.engine import SeasonInfo
from lprewards.core.errors import AccrualError, ConfigError, InvalidSplit
from lprewards.core.pool.assembly import PoolHandle
from lprewards.core.pool.factory import PoolFactory
from lprewards.core.pool.spec import PoolSpec

log = structlog.get_logger()

router = APIRouter(tags=["pool"])

# One pool per process; engine calls are serialized (sync handlers run in a thread pool).
_lock = Lock()
_handle: PoolHandle | None = None


def get_pool() -> PoolHandle:
    global _handle
    with _lock:
        if _handle is None:
            factory = PoolFactory(data_dir=settings.data_dir)
            spec = factory.load_spec(pool_id=settings.pool_id)
            if spec is None:
                spec = PoolSpec(
                    pool_id=settings.pool_id,
                    reward_token=settings.reward_token,
                    liquidity_source=settings.liquidity_source,
                    season_interval_seconds=settings.season_interval_seconds,
                )
            _handle = factory.build(spec=spec)
            if settings.reward_token_supply:
                _handle.token.fund(settings.reward_token_supply)
            log.info("pool.loaded", pool_id=spec.pool_id, spec_hash=spec.config_hash())
        return _handle


# =========================
# Schemas
# =========================
# Scaled values (x 1e18) exceed 2**53, so they are returned as decimal strings.

class PoolResponse(BaseModel):
    pool_id: str
    active: bool
    season_start: int
    season_end: int
    rate_per_second: int
    reward_per_share_scaled: str
    reserved_balance_scaled: str
    total_liquidity: int
    reward_balance: int
    reset_only: bool
    suppress_external_notify: bool


class PositionResponse(BaseModel):
    account: str
    unclaimed_reward_scaled: str
    reward_per_share_checkpoint: str
    last_liquidity_balance: int
    pending_reward: int


class LiquidityChangeRequest(BaseModel):
    from_account: str | None = Field(default=None, description="None for a mint")
    to_account: str | None = Field(default=None, description="None for a burn")
    from_balance_after: int = Field(default=0, ge=0)
    to_balance_after: int = Field(default=0, ge=0)
    total_liquidity_after: int = Field(..., ge=0)


class ClaimRequest(BaseModel):
    account: str
    receivers: list[str | None] | None = Field(default=None, description="Defaults to [account]; null burns")
    percentages: list[int] = Field(default_factory=list, description="1e18 == 100%; one fewer than receivers")


class ClaimResponse(BaseModel):
    account: str
    claimed: int


class FundRequest(BaseModel):
    amount: int = Field(..., gt=0)


# =========================
# Helpers
# =========================

def _pool_response(handle: PoolHandle) -> PoolResponse:
    info: SeasonInfo = handle.engine.season_info()
    return PoolResponse(
        pool_id=handle.pool_id,
        active=info.active,
        season_start=info.season_start,
        season_end=info.season_end,
        rate_per_second=info.rate_per_second,
        reward_per_share_scaled=str(info.reward_per_share_scaled),
        reserved_balance_scaled=str(info.reserved_balance_scaled),
        total_liquidity=info.total_liquidity,
        reward_balance=handle.token.balance(),
        reset_only=info.reset_only,
        suppress_external_notify=info.suppress_external_notify,
    )


def _raise_http(exc: Exception) -> NoReturn:
    if isinstance(exc, (InvalidSplit, ConfigError)) or not isinstance(exc, AccrualError):
        raise HTTPException(status_code=422, detail=f"{type(exc).__name__}: {exc}")
    raise HTTPException(status_code=409, detail=f"{type(exc).__name__}: {exc}")


# =========================
# Routes
# =========================

@router.get("/pool", response_model=PoolResponse)
def get_pool_state(handle: PoolHandle = Depends(get_pool)) -> PoolResponse:
    with _lock:
        return _pool_response(handle)


@router.get("/positions/{account}", response_model=PositionResponse)
def get_position(account: str, handle: PoolHandle = Depends(get_pool)) -> PositionResponse:
    with _lock:
        pos = handle.engine.position(account)
        pending = handle.engine.pending_reward(account)
    return PositionResponse(
        account=account,
        unclaimed_reward_scaled=str(pos.unclaimed_reward_scaled),
        reward_per_share_checkpoint=str(pos.reward_per_share_checkpoint),
        last_liquidity_balance=pos.last_liquidity_balance,
        pending_reward=pending,
    )


@router.post("/liquidity", response_model=PoolResponse)
def change_liquidity(payload: LiquidityChangeRequest, handle: PoolHandle = Depends(get_pool)) -> PoolResponse:
    with _lock:
        try:
            handle.engine.on_liquidity_change(
                from_account=payload.from_account,
                to_account=payload.to_account,
                from_balance_after=payload.from_balance_after,
                to_balance_after=payload.to_balance_after,
                total_liquidity_after=payload.total_liquidity_after,
            )
        except (AccrualError, ValueError) as e:
            _raise_http(e)
        return _pool_response(handle)


@router.post("/claims", response_model=ClaimResponse)
def claim(payload: ClaimRequest, handle: PoolHandle = Depends(get_pool)) -> ClaimResponse:
    with _lock:
        try:
            claimed = handle.engine.on_claim(
                account=payload.account,
                receivers=payload.receivers,
                percentages=payload.percentages,
            )
        except (AccrualError, ValueError) as e:
            _raise_http(e)
    return ClaimResponse(account=payload.account, claimed=claimed)


@router.post("/pool/fund", response_model=PoolResponse)
def fund(payload: FundRequest, handle: PoolHandle = Depends(get_pool)) -> PoolResponse:
    with _lock:
        handle.token.fund(payload.amount)
        return _pool_response(handle)


@router.post("/pool/reset", response_model=PoolResponse)
def reset(handle: PoolHandle = Depends(get_pool)) -> PoolResponse:
    with _lock:
        try:
            handle.engine.reset_season()
        except AccrualError as e:
            _raise_http(e)
        return _pool_response(handle)
