from __future__ import annotations

from typing import Protocol

from arbscan.schemas.quote import Quote
from arbscan.services.ticker_store import TickerStore


class SnapshotSource(Protocol):
    name: str

    def fetch_snapshot(self) -> dict[str, Quote]:
        """Current quotes keyed by symbol. Raises FetchError."""


class LocalSnapshotSource:
    def __init__(self, store: TickerStore, *, name: str = "local") -> None:
        self.store = store
        self.name = name

    def fetch_snapshot(self) -> dict[str, Quote]:
        return self.store.snapshot()
