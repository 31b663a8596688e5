from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Protocol

from arbscan.errors import FetchError, NotifyError
from arbscan.schemas.quote import Signal
from arbscan.services.snapshot_source import SnapshotSource
from arbscan.services.threshold import ThresholdPolicy

logger = logging.getLogger(__name__)

IDLE = "IDLE"
FETCHING_SNAPSHOT = "FETCHING_SNAPSHOT"
EVALUATING = "EVALUATING"


class Notifier(Protocol):
    def send_alert(self, message: str) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scanner:
    """Periodic threshold scan over one or more snapshot sources.

    Each quote is compared on its own against one global bound. A failed
    source skips only that source for the cycle; a failed notification is
    dropped and the rest of the batch is still delivered.
    """

    def __init__(
        self,
        *,
        sources: list[SnapshotSource],
        policy: ThresholdPolicy,
        notifier: Notifier,
        interval_sec: float = 5.0,
        stale_after_sec: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.sources = list(sources)
        self.policy = policy
        self.notifier = notifier
        self.interval_sec = interval_sec
        self.stale_after_sec = stale_after_sec
        self.clock = clock
        self.state = IDLE
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._metrics = {
            "cycles": 0,
            "evaluated": 0,
            "signals": 0,
            "notified": 0,
            "notify_failures": 0,
            "stale_skipped": 0,
            "source_failures": 0,
        }
        self.last_error: str | None = None

    def _is_stale(self, last_update: datetime, now: datetime) -> bool:
        if self.stale_after_sec is None:
            return False
        return (now - last_update).total_seconds() > self.stale_after_sec

    def _notify(self, signal: Signal) -> bool:
        try:
            self.notifier.send_alert(signal.message())
        except NotifyError as exc:
            self.last_error = str(exc)
            logger.warning(
                "[SCAN][notify_error] source=%s symbol=%s status=%s error=%s",
                signal.source,
                signal.symbol,
                exc.status_code,
                exc,
            )
            return False
        except Exception as exc:
            self.last_error = str(exc)
            logger.exception(
                "[SCAN][notify_error] source=%s symbol=%s unexpected notifier failure",
                signal.source,
                signal.symbol,
            )
            return False
        logger.info(
            "[SCAN][signal_sent] source=%s symbol=%s ask=%s threshold=%s",
            signal.source,
            signal.symbol,
            signal.ask,
            signal.threshold,
        )
        return True

    def scan_once(self) -> list[Signal]:
        signals: list[Signal] = []
        counts = {k: 0 for k in self._metrics}
        try:
            for source in self.sources:
                self.state = FETCHING_SNAPSHOT
                try:
                    snapshot = source.fetch_snapshot()
                except FetchError as exc:
                    counts["source_failures"] += 1
                    self.last_error = str(exc)
                    logger.warning("[SCAN][source_error] source=%s error=%s", source.name, exc)
                    continue

                self.state = EVALUATING
                now = self.clock()
                for symbol, quote in snapshot.items():
                    if self._is_stale(quote.last_update, now):
                        counts["stale_skipped"] += 1
                        logger.debug(
                            "[SCAN][stale_skip] source=%s symbol=%s last_update=%s",
                            source.name,
                            symbol,
                            quote.last_update.isoformat(),
                        )
                        continue

                    counts["evaluated"] += 1
                    signal = self.policy.evaluate(quote, source=source.name, now=now)
                    if signal is None:
                        continue

                    signals.append(signal)
                    counts["signals"] += 1
                    if self._notify(signal):
                        counts["notified"] += 1
                    else:
                        counts["notify_failures"] += 1
            return signals
        finally:
            self.state = IDLE
            counts["cycles"] = 1
            for key, value in counts.items():
                self._metrics[key] += value

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.scan_once()
            except Exception as exc:
                self.last_error = str(exc)
                logger.exception("[SCAN][cycle_error]")
            if self._stop_event.wait(self.interval_sec):
                break

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="scanner")
        logger.info(
            "[SCAN][start] sources=%s bound=%s direction=%s interval_sec=%s stale_after_sec=%s",
            ",".join(s.name for s in self.sources),
            self.policy.bound,
            self.policy.direction,
            self.interval_sec,
            self.stale_after_sec,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        logger.info("[SCAN][stop]")

    def run_forever(self) -> None:
        self.start()
        try:
            while self._thread is not None and self._thread.is_alive():
                self._thread.join(timeout=1.0)
        finally:
            self.stop()

    def metrics(self) -> dict:
        return {
            **self._metrics,
            "state": self.state,
            "last_error": self.last_error,
        }
