from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def canonical_symbol(pair: str) -> str:
    """"BTC/USDT" -> "BTCUSDT"."""
    out = str(pair).strip().upper()
    for sep in ("/", "-", "_", " "):
        out = out.replace(sep, "")
    return out


class Quote(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str = Field(min_length=1)
    bid: float = Field(ge=0, allow_inf_nan=False)
    ask: float = Field(ge=0, allow_inf_nan=False)
    last_update: datetime

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        symbol = canonical_symbol(value)
        if not symbol:
            raise ValueError("symbol must not be empty")
        return symbol

    @field_validator("last_update")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Signal(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    ask: float
    bid: float
    threshold: float
    direction: Literal["below", "above"]
    source: str
    last_update: datetime
    timestamp: datetime

    def message(self) -> str:
        return (
            f"Price alert [{self.source}] {self.symbol}: ask={self.ask} bid={self.bid} "
            f"is {self.direction} threshold {self.threshold} "
            f"(quoted at {self.last_update.isoformat()})"
        )


class AlertRequest(BaseModel):
    message: str
