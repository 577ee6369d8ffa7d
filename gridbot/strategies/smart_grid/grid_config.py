"""
SmartGrid Configuration.

YAML-compatible pydantic schema for the grid robot:
- side switches and grid sizing
- dynamic (ATR) pip step
- moving-average trend filter
- end-of-day closure time
- daily profit log and balance checkpoint
"""

from decimal import Decimal
from enum import Enum
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from .models import GridOwnership


class MAType(str, Enum):
    """Moving-average type used by the trend filter."""

    SIMPLE = "simple"
    EXPONENTIAL = "exponential"
    WEIGHTED = "weighted"


class GridSchema(BaseModel):
    """Grid sizing and entry settings."""

    pip_step: int = Field(default=10, ge=1)
    first_volume: int = Field(default=1000, ge=1)
    volume_exponent: Decimal = Field(default=Decimal("1.0"), ge=Decimal("0.1"), le=Decimal("5.0"))
    max_spread_pips: Decimal = Field(default=Decimal("3.0"), ge=0)
    average_tp_pips: int = Field(default=3, ge=1)


class DynamicStepSchema(BaseModel):
    """ATR-derived pip step."""

    enabled: bool = Field(default=False)
    atr_period: int = Field(default=14, ge=1)
    atr_multiplier: Decimal = Field(default=Decimal("1.0"), ge=Decimal("0.1"))


class TrendFilterSchema(BaseModel):
    """Moving-average trend filter."""

    enabled: bool = Field(default=False)
    ma_period: int = Field(default=100, ge=10)
    ma_type: MAType = Field(default=MAType.SIMPLE)


class EndOfDaySchema(BaseModel):
    """Scheduled daily liquidation (UTC)."""

    enabled: bool = Field(default=True)
    hour: int = Field(default=23, ge=0, le=23)
    minute: int = Field(default=59, ge=0, le=59)


class ProfitLogSchema(BaseModel):
    """Daily profit CSV and previous-balance checkpoint."""

    enabled: bool = Field(default=True)
    csv_path: str = Field(default="DailyProfit.csv")
    checkpoint_path: str = Field(default="balance_checkpoint.json")


class SmartGridConfig(BaseModel):
    """
    Complete SmartGrid configuration.

    Can be loaded from YAML; every section falls back to its defaults.
    """

    # General
    symbol: str = Field(..., description="Symbol the grid trades (e.g., EURUSD)")
    label: str = Field(default="cls", min_length=1)
    instance_id: str = Field(default="default", min_length=1)

    buy_enabled: bool = Field(default=True)
    sell_enabled: bool = Field(default=True)
    # Buy additions are always limited to one per bar; Sell only when set
    guard_sell_same_bar: bool = Field(default=False)

    # Component configs
    grid: GridSchema = Field(default_factory=GridSchema)
    dynamic_step: DynamicStepSchema = Field(default_factory=DynamicStepSchema)
    trend_filter: TrendFilterSchema = Field(default_factory=TrendFilterSchema)
    end_of_day: EndOfDaySchema = Field(default_factory=EndOfDaySchema)
    profit_log: ProfitLogSchema = Field(default_factory=ProfitLogSchema)

    @model_validator(mode="after")
    def validate_consistency(self) -> "SmartGridConfig":
        """Validate cross-field consistency."""
        if not self.buy_enabled and not self.sell_enabled:
            raise ValueError("At least one of buy_enabled/sell_enabled must be set")
        return self

    def ownership(self) -> GridOwnership:
        return GridOwnership(label=self.label, symbol=self.symbol, instance_id=self.instance_id)

    def to_yaml(self) -> str:
        """Serialize to YAML string."""
        data = self.model_dump(mode="json")
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "SmartGridConfig":
        """Load from YAML string."""
        data: dict[str, Any] = yaml.safe_load(yaml_str)
        return cls(**data)

    @classmethod
    def from_yaml_file(cls, path: str) -> "SmartGridConfig":
        """Load from YAML file."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls(**data)
