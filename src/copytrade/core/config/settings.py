from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Global application-level configuration.

    This class is the single source of truth for:
    - environment selection
    - logging behavior
    - venue endpoints and the followed account
    - paper session sizing / aggregation parameters
    - follower polling behavior
    - artifact locations
    """

    model_config = SettingsConfigDict(
        env_prefix="COPYTRADE_",
        env_file=".env",
        extra="ignore",
    )

    # ---- Environment -------------------------------------------------

    env: Literal["local", "staging", "prod"] = "local"

    # ---- Logging -----------------------------------------------------

    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # ---- Artifacts ---------------------------------------------------

    # Root directory for daily fills/ and accounts/ journals
    data_dir: Path = Field(
        default=Path("data"),
        description="Root directory for persisted fills and account snapshots",
    )
    persist_fills: bool = True
    trade_history_parquet: Path | None = Field(
        default=None,
        description="If set, trade history is exported here on shutdown",
    )

    # ---- Venue -------------------------------------------------------

    target_account: str = ""
    use_testnet: bool = False
    mainnet_url: str = "https://api.hyperliquid.xyz"
    testnet_url: str = "https://api.hyperliquid-testnet.xyz"
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    # ---- Paper session -----------------------------------------------

    copy_threshold: float = Field(default=1000.0, ge=0, description="Min fill notional to copy")
    bankroll: float = Field(default=10_000.0, gt=0)
    leverage: float = Field(default=1.0, ge=1)
    base_notional: float | None = Field(default=1000.0, description="Notional targeted per copied trade")
    disable_dynamic_sizing: bool = False
    min_trade_interval_seconds: float = Field(default=60.0, ge=0)
    volume_threshold: float = Field(default=1000.0, ge=0)
    volume_decay_rate: float = Field(default=0.5, ge=0, le=1)

    # ---- Follower ----------------------------------------------------

    poll_interval_seconds: float = Field(default=5.0, gt=0)
    lookback_seconds: float = Field(default=3600.0, gt=0)
    processed_ttl_seconds: float = Field(default=7200.0, gt=0)
    max_fills_per_check: int = Field(default=50, ge=1)
    max_retries: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=2.0, ge=0)
    summary_interval: int = Field(default=10, ge=0)
    recent_trades_count: int = Field(default=10, ge=0)

    @field_validator("base_notional")
    @classmethod
    def _positive_base_notional(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("base_notional must be > 0 when set")
        return v

    @property
    def base_url(self) -> str:
        return self.testnet_url if self.use_testnet else self.mainnet_url


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        raw = tomllib.load(f)
    # Accept either a flat file or one nested under [copytrade]
    section = raw.get("copytrade", raw)
    if not isinstance(section, dict):
        raise ValueError(f"{path}: [copytrade] must be a table")
    return section


def load_settings(path: str | Path | None = None) -> AppSettings:
    """
    Build settings from defaults, an optional TOML file, then the environment.

    Precedence (lowest -> highest): field defaults, file values, COPYTRADE_* env / .env.
    """
    if path is None:
        return AppSettings()

    file_values = _read_toml(Path(path))
    env_values = AppSettings().model_dump(exclude_unset=True)
    return AppSettings.model_validate({**file_values, **env_values})
