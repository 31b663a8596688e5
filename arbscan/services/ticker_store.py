from __future__ import annotations

import threading
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping

from arbscan.schemas.quote import Quote, canonical_symbol


class TickerStore:
    """Latest quote per symbol, shared between pollers and readers.

    Copy-on-write: writers serialize on one lock, build a new mapping with the
    key replaced and publish it with a single reference assignment. Readers
    grab the current reference without locking, so a read never blocks on a
    writer and never sees a half-built mapping. Quotes are frozen, so a value
    read for a key is always one complete write.
    """

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._rows: Mapping[str, Quote] = MappingProxyType({})
        self._puts = 0
        self._last_put_at: datetime | None = None

    def put(self, quote: Quote, symbol: str | None = None) -> None:
        """Store quote under quote.symbol, replacing any previous entry.

        When symbol is given it must name the same pair as the quote.
        """
        if symbol is not None and canonical_symbol(symbol) != quote.symbol:
            raise ValueError(f"quote for {quote.symbol} cannot be stored under {symbol!r}")
        with self._write_lock:
            rows = dict(self._rows)
            rows[quote.symbol] = quote
            self._rows = MappingProxyType(rows)
            self._puts += 1
            self._last_put_at = datetime.now(timezone.utc)

    def get(self, symbol: str) -> Quote | None:
        return self._rows.get(symbol)

    def snapshot(self) -> dict[str, Quote]:
        return dict(self._rows)

    def symbols(self) -> list[str]:
        return list(self._rows.keys())

    def __len__(self) -> int:
        return len(self._rows)

    def metrics(self) -> dict:
        return {
            "cached_symbols": len(self._rows),
            "puts": self._puts,
            "last_put_at": self._last_put_at.isoformat() if self._last_put_at else None,
        }
