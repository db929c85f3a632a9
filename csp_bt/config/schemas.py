"""
Configuration schemas using Pydantic for validation and type safety.
"""

from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import InvalidConfigError


def _parse_utc(value: str, end_of_day: bool = False) -> datetime:
    """Parse an ISO date/datetime string into an aware UTC datetime."""
    text = value.strip()
    dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    # Date-only end bound covers the whole day
    if end_of_day and len(text) == 10:
        dt = datetime.combine(dt.date(), time.max)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class DataConfig(BaseModel):
    """Data source configuration"""
    csv_path: str = Field(description="Path to OHLCV CSV (Timestamp,Open,High,Low,Close,Volume)")


class EngineConfig(BaseModel):
    """Backtest window. Both bounds are inclusive; None means unbounded."""
    start: Optional[str] = Field(default=None, description="Start date (ISO format, e.g., '2023-01-01')")
    end: Optional[str] = Field(default=None, description="End date (ISO format, e.g., '2023-12-31T23:59:59Z')")

    @field_validator("start", "end", mode="before")
    @classmethod
    def validate_date_string(cls, v):
        """Keep dates as ISO strings"""
        if v is None:
            return v
        if isinstance(v, datetime):
            return v.isoformat()
        if isinstance(v, str):
            _parse_utc(v)
            return v
        raise ValueError(f"Invalid date format: {v}. Expected ISO date string (YYYY-MM-DD)")

    def get_start_datetime(self) -> Optional[datetime]:
        """Get start datetime in UTC"""
        if self.start is None:
            return None
        return _parse_utc(self.start)

    def get_end_datetime(self) -> Optional[datetime]:
        """Get end datetime in UTC (date-only values extend to end of day)"""
        if self.end is None:
            return None
        return _parse_utc(self.end, end_of_day=True)


class StrategyConfig(BaseModel):
    """
    Cash-secured put strategy parameters.

    Immutable once built; the engine reads it at construction and never writes to it.
    Building one directly raises InvalidConfigError on bad values; as a section of
    RunConfig the usual pydantic ValidationError is reported instead.
    """
    model_config = ConfigDict(frozen=True)

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise InvalidConfigError(str(e)) from e

    initial_btc: Decimal = Field(default=Decimal("0"), ge=0, description="Starting BTC balance")
    initial_usd: Decimal = Field(default=Decimal("50000"), ge=0, description="Starting USD balance")
    put_premium_percent: Decimal = Field(default=Decimal("0.02"), ge=0, lt=1, description="Flat premium as fraction of strike")
    strike_discount_percent: Decimal = Field(default=Decimal("0.05"), ge=0, lt=1, description="Strike distance below spot")
    days_to_expiration: int = Field(default=7, gt=0, description="Option tenor in days")

    pricing_mode: Literal["flat", "black_scholes"] = Field(default="flat", description="Premium model")
    risk_free_rate: float = Field(default=0.05, description="Annual risk-free rate for Black-Scholes")
    volatility_window: int = Field(default=30, ge=2, description="Log returns used for historical volatility")
    history_size: int = Field(default=100, ge=2, description="Price points retained for volatility estimation")
    min_history_points: int = Field(default=0, ge=0, description="History required before the first sale")
    settlement_boundary: Literal["strict", "inclusive"] = Field(
        default="strict",
        description="strict: settle when tick > expiry; inclusive: settle when tick >= expiry",
    )

    @field_validator("risk_free_rate")
    @classmethod
    def validate_rate(cls, v):
        if v != v or v in (float("inf"), float("-inf")):
            raise ValueError("risk_free_rate must be finite")
        return v

    @model_validator(mode="after")
    def validate_history_settings(self):
        """History must be able to satisfy both the issuance gate and the volatility window"""
        problem = history_settings_problem(self)
        if problem:
            raise ValueError(problem)
        return self


def history_settings_problem(cfg: "StrategyConfig") -> Optional[str]:
    """Describe a history_size that can never satisfy the other settings, or None."""
    if cfg.min_history_points > cfg.history_size:
        return (
            f"min_history_points ({cfg.min_history_points}) exceeds history_size ({cfg.history_size}); "
            f"no put would ever be sold"
        )
    if cfg.pricing_mode == "black_scholes" and cfg.history_size < cfg.volatility_window + 1:
        return (
            f"history_size ({cfg.history_size}) must be at least volatility_window + 1 "
            f"({cfg.volatility_window + 1}) in black_scholes mode"
        )
    return None


class ReportingConfig(BaseModel):
    """Reporting configuration"""
    run_dir_root: str = Field(default="runs", description="Root directory for run outputs")
    save_csv: bool = Field(default=True, description="Save CSV files")
    save_log: bool = Field(default=True, description="Save run log")


class RunConfig(BaseModel):
    """Complete run configuration"""
    data: DataConfig
    engine: EngineConfig = Field(default_factory=EngineConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
