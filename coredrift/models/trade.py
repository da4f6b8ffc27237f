"""Trade data model."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator, model_validator

from coredrift.calculations.trade_fields import (
    DERIVED_FIELDS,
    normalize_timestamp,
    parse_number,
)
from coredrift.models.document import Document

Direction = Literal["Buy", "Sell"]

NUMERIC_FIELDS = (
    "volume",
    "entry_price",
    "exit_price",
    "sl",
    "commission",
    "swap",
    "net_pnl",
    "pip_size",
    "pip_value_per_lot",
    "contract_size",
    "risk_amount",
    "risk_to_reward",
    "percent_risk",
    "percent_pnl",
)

TIMESTAMP_FIELDS = (
    "entry_timestamp",
    "exit_timestamp",
    "deleted_at",
    "created_at",
    "updated_at",
)

# Bookkeeping keys that are not trade inputs.
_NON_RAW_FIELDS = set(DERIVED_FIELDS) | {"id", "createdAt", "updatedAt", "deletedAt"}


class Trade(Document):
    """A journaled trade with its derived fields."""

    id: Optional[str] = Field(default=None, description="Repository-assigned ID")
    account_id: str = Field(..., min_length=1, description="Owning account ID")
    user_id: str = Field(..., min_length=1, description="Owning user ID")

    entry_timestamp: Optional[datetime] = Field(default=None, description="Entry time (UTC)")
    exit_timestamp: Optional[datetime] = Field(default=None, description="Exit time (UTC)")
    direction: Optional[Direction] = Field(default=None, description="Buy or Sell")
    symbol: str = Field(default="", description="Symbol ID")
    volume: Optional[float] = Field(default=None, description="Lot size")
    entry_price: Optional[float] = Field(default=None, description="Entry price")
    exit_price: Optional[float] = Field(default=None, description="Exit price")
    sl: Optional[float] = Field(default=None, description="Stop-loss price")
    commission: Optional[float] = Field(default=None, description="Commission paid")
    swap: Optional[float] = Field(default=None, description="Swap charged")
    net_pnl: Optional[float] = Field(
        default=None, alias="netPnL", description="Realized P&L in account currency"
    )

    pip_size: Optional[float] = Field(default=None, description="Cached symbol pip size")
    pip_value_per_lot: Optional[float] = Field(default=None, description="Cached pip value per lot")
    contract_size: Optional[float] = Field(default=None, description="Cached contract size")

    setups: Optional[str] = Field(default=None, description="Setup ID")
    selected_rules: list[str] = Field(default_factory=list, description="Followed rule IDs")
    image_url: Optional[str] = Field(default=None, description="Chart screenshot reference")
    notes: Optional[Any] = Field(default=None, description="Rich-text notes document")
    tags: list[str] = Field(default_factory=list, description="Tag names")
    is_deleted: bool = Field(default=False, description="Soft-delete flag")
    deleted_at: Optional[datetime] = Field(default=None, description="Soft-delete time")

    risk_amount: Optional[float] = Field(default=None, description="Amount at risk")
    duration: Optional[int] = Field(default=None, description="Holding time in minutes")
    session: str = Field(default="", description="Trading session (NY, LN, AS)")
    risk_to_reward: Optional[float] = Field(default=None, description="Realized R multiple")
    percent_risk: Optional[float] = Field(default=None, description="Risk as % of initial balance")
    percent_pnl: Optional[float] = Field(
        default=None, alias="percentPnL", description="P&L as % of initial balance"
    )
    status: str = Field(default="", description="WIN, LOSS, BE or empty")

    created_at: Optional[datetime] = Field(default=None, description="Creation time")
    updated_at: Optional[datetime] = Field(default=None, description="Last update time")

    @model_validator(mode="before")
    @classmethod
    def _legacy_net_pl(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("netPnL") is None and "netPL" in data:
            data = {**data, "netPnL": data["netPL"]}
        return data

    @field_validator(*NUMERIC_FIELDS, mode="before")
    @classmethod
    def _parse_number(cls, value: Any) -> Optional[float]:
        return parse_number(value)

    @field_validator(*TIMESTAMP_FIELDS, mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Optional[datetime]:
        return normalize_timestamp(value)

    @field_validator("direction", mode="before")
    @classmethod
    def _parse_direction(cls, value: Any) -> Optional[str]:
        if isinstance(value, str):
            value = value.strip().capitalize()
            return value or None
        return value

    @field_validator("setups", mode="before")
    @classmethod
    def _parse_setup(cls, value: Any) -> Optional[str]:
        return value or None

    @field_validator("symbol", mode="before")
    @classmethod
    def _parse_symbol(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def raw_fields(self) -> dict:
        """Raw inputs of the trade as a camelCase record, derived fields excluded."""
        return {
            key: value
            for key, value in self.model_dump(by_alias=True).items()
            if key not in _NON_RAW_FIELDS
        }
