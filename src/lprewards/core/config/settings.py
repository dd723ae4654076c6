from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Process-level configuration.

    Covers:
    - environment selection
    - logging behavior
    - where pool state/event logs live
    - the pool served by the HTTP app (used only when no pool.json exists yet)
    """

    model_config = SettingsConfigDict(
        env_prefix="LPREWARDS_",
        env_file=".env",
        extra="ignore",
    )

    # ---- Environment -------------------------------------------------

    env: Literal["local", "staging", "prod"] = "local"

    # ---- Logging -----------------------------------------------------

    log_level: str = "INFO"

    # ---- Storage -----------------------------------------------------

    data_dir: Path = Field(
        default=Path("pools"),
        description="Root directory for pool specs and event logs",
    )

    # ---- Served pool -------------------------------------------------

    pool_id: str = Field(default="default")
    reward_token: str = Field(default="REWARD")
    liquidity_source: Literal["self", "external"] = Field(default="self")
    season_interval_seconds: int = Field(
        default=7 * 24 * 3600,
        gt=0,
        description="Season length; rounded down to a multiple of 15s",
    )
    reward_token_supply: int = Field(
        default=0,
        ge=0,
        description="Initial reward balance minted to the engine's in-memory token",
    )


settings = AppSettings()
