from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from arbscan.errors import FetchError, MalformedQuote
from arbscan.integrations.exchange_base import ExchangeClient
from arbscan.services.ticker_store import TickerStore

logger = logging.getLogger(__name__)

IDLE = "IDLE"
FETCHING = "FETCHING"
NORMALIZING = "NORMALIZING"
WRITING = "WRITING"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Poller:
    """Fetch -> normalize -> write loop for one exchange.

    A failed fetch skips the cycle; a malformed entry skips only its symbol.
    Nothing is retried before the next scheduled cycle.
    """

    def __init__(
        self,
        *,
        client: ExchangeClient,
        store: TickerStore,
        symbols: list[str],
        interval_sec: float = 5.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.client = client
        self.store = store
        self.symbols = list(symbols)
        self.interval_sec = interval_sec
        self.clock = clock
        self.state = IDLE
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._metrics = {
            "cycles": 0,
            "written": 0,
            "malformed": 0,
            "missing": 0,
            "fetch_failures": 0,
        }
        self.last_error: str | None = None
        self.last_cycle_at: datetime | None = None

    @property
    def name(self) -> str:
        return getattr(self.client, "name", "exchange")

    def poll_once(self) -> dict:
        summary = {
            "requested": len(self.symbols),
            "written": 0,
            "malformed": 0,
            "missing": 0,
            "fetch_failed": False,
        }
        try:
            self.state = FETCHING
            try:
                raw_by_symbol = self.client.fetch_raw(self.symbols)
            except FetchError as exc:
                summary["fetch_failed"] = True
                self.last_error = str(exc)
                logger.warning("[POLL][fetch_error] exchange=%s error=%s", self.name, exc)
                return summary

            now = self.clock()
            self.state = NORMALIZING
            quotes = []
            for symbol in self.symbols:
                if symbol not in raw_by_symbol:
                    summary["missing"] += 1
                    logger.warning("[POLL][symbol_missing] exchange=%s symbol=%s", self.name, symbol)
                    continue
                try:
                    quotes.append((symbol, self.client.normalize(symbol, raw_by_symbol[symbol], now=now)))
                except MalformedQuote as exc:
                    summary["malformed"] += 1
                    logger.warning(
                        "[POLL][malformed_quote] exchange=%s symbol=%s field=%s value=%r",
                        self.name,
                        exc.symbol,
                        exc.field,
                        exc.value,
                    )

            self.state = WRITING
            for symbol, quote in quotes:
                self.store.put(quote, symbol=symbol)
                summary["written"] += 1

            logger.debug(
                "[POLL][cycle] exchange=%s requested=%d written=%d malformed=%d missing=%d",
                self.name,
                summary["requested"],
                summary["written"],
                summary["malformed"],
                summary["missing"],
            )
            return summary
        finally:
            self.state = IDLE
            self.last_cycle_at = self.clock()
            self._metrics["cycles"] += 1
            self._metrics["written"] += summary["written"]
            self._metrics["malformed"] += summary["malformed"]
            self._metrics["missing"] += summary["missing"]
            if summary["fetch_failed"]:
                self._metrics["fetch_failures"] += 1

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as exc:
                self.last_error = str(exc)
                logger.exception("[POLL][cycle_error] exchange=%s", self.name)
            if self._stop_event.wait(self.interval_sec):
                break

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name=f"poller-{self.name}")
        logger.info(
            "[POLL][start] exchange=%s symbols=%s interval_sec=%s",
            self.name,
            ",".join(self.symbols),
            self.interval_sec,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        logger.info("[POLL][stop] exchange=%s", self.name)

    def metrics(self) -> dict:
        return {
            **self._metrics,
            "exchange": self.name,
            "state": self.state,
            "last_error": self.last_error,
            "last_cycle_at": self.last_cycle_at.isoformat() if self.last_cycle_at else None,
        }
