from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from lprewards.core.engine.state import TIME_SLOT, quantize_interval

# "self": the engine is the authority for total liquidity (fed by on_liquidity_change)
LiquiditySourceKind = Literal["self", "external"]


class PoolSpec(BaseModel):
    """
    Canonical, one-time pool configuration. Persisted to <data_dir>/<pool_id>/pool.json.

    - season_interval_seconds is rounded down to whole 15s slots at validation time
    - deterministic config hash (pool fingerprint)
    """
    schema_version: int = Field(default=1, description="PoolSpec schema version")

    pool_id: str = Field(default="default", pattern=r"^[A-Za-z0-9_\-]+$")
    created_at_utc: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    reward_token: str = Field(default="REWARD", min_length=1, description="Reward token identity")
    liquidity_source: LiquiditySourceKind = Field(default="self")
    engine_account: str = Field(default="engine", min_length=1, description="Holder of the reward balance")

    season_interval_seconds: int = Field(default=7 * 24 * 3600, gt=0)

    reset_only: bool = Field(default=False, description="Only explicit resets may start a season")
    suppress_external_notify: bool = Field(default=False)

    tags: dict[str, str] = Field(default_factory=dict, description="Arbitrary pool tags")

    @field_validator("season_interval_seconds")
    @classmethod
    def _quantize(cls, v: int) -> int:
        q = quantize_interval(v)
        if q < TIME_SLOT:
            raise ValueError(f"season_interval_seconds must be at least {TIME_SLOT}")
        return q

    def to_canonical_dict(self) -> dict:
        d = self.model_dump()
        d["created_at_utc"] = self.created_at_utc.astimezone(timezone.utc).isoformat()
        return d

    def config_hash(self) -> str:
        payload = self.to_canonical_dict()
        blob = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()
