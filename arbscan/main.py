from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from arbscan.api.routes import router
from arbscan.config.log import configure_logging
from arbscan.config.settings import ConnectorSettings, get_connector_settings
from arbscan.errors import ConfigError
from arbscan.integrations.exchanges import build_exchange_client
from arbscan.integrations.notifier import NotifierClient
from arbscan.services.poller import Poller
from arbscan.services.scanner import Scanner
from arbscan.services.snapshot_source import LocalSnapshotSource
from arbscan.services.threshold import ThresholdPolicy
from arbscan.services.ticker_store import TickerStore

logger = logging.getLogger(__name__)


def build_local_scanner(settings: ConnectorSettings, store: TickerStore, *, notifier=None) -> Scanner:
    return Scanner(
        sources=[LocalSnapshotSource(store, name=settings.EXCHANGE)],
        policy=ThresholdPolicy(bound=settings.THRESHOLD, direction=settings.THRESHOLD_DIRECTION),
        notifier=notifier or NotifierClient(settings.NOTIFIER_URL, timeout=settings.HTTP_TIMEOUT),
        interval_sec=settings.SCAN_INTERVAL,
        stale_after_sec=settings.STALE_AFTER,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ConfigError propagates: the server must not start with a bad config
    settings = app.state.get_settings()
    configure_logging(settings.LOG_LEVEL)

    client = app.state.exchange_client_factory(
        settings.EXCHANGE,
        base_url=settings.EXCHANGE_BASE_URL,
        timeout=settings.HTTP_TIMEOUT,
    )
    poller = Poller(
        client=client,
        store=app.state.ticker_store,
        symbols=settings.PAIRS,
        interval_sec=settings.POLL_INTERVAL,
    )
    app.state.poller = poller

    scanner = None
    if settings.SCANNER_ENABLED:
        scanner = build_local_scanner(settings, app.state.ticker_store, notifier=app.state.notifier)
    app.state.scanner = scanner

    poller.start()
    if scanner is not None:
        scanner.start()

    try:
        yield
    finally:
        if scanner is not None:
            scanner.stop()
        poller.stop()


app = FastAPI(title="Arbitrage Scanner Connector", version="0.1.0", lifespan=lifespan)
app.include_router(router)

# NOTE: lazy-loaded so app import does not require env during tests.
app.state.get_settings = get_connector_settings
app.state.exchange_client_factory = build_exchange_client
app.state.notifier = None
app.state.ticker_store = TickerStore()
app.state.poller = None
app.state.scanner = None


def run() -> None:
    try:
        settings = get_connector_settings()
    except ConfigError as exc:
        configure_logging()
        logger.critical("[APP][config_error] %s", exc)
        raise SystemExit(2) from exc

    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8001")),
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
