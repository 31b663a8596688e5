from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict

from arbscan.schemas.quote import Quote, Signal


class ThresholdPolicy(BaseModel):
    """Fixed price bound applied to each quote's ask, one symbol at a time."""

    model_config = ConfigDict(frozen=True)

    bound: float
    direction: Literal["below", "above"] = "below"

    def crossed(self, quote: Quote) -> bool:
        if self.direction == "below":
            return quote.ask < self.bound
        return quote.ask > self.bound

    def evaluate(self, quote: Quote, *, source: str, now: datetime | None = None) -> Signal | None:
        if not self.crossed(quote):
            return None
        return Signal(
            symbol=quote.symbol,
            ask=quote.ask,
            bid=quote.bid,
            threshold=self.bound,
            direction=self.direction,
            source=source,
            last_update=quote.last_update,
            timestamp=now or datetime.now(timezone.utc),
        )
