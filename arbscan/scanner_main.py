from __future__ import annotations

import logging
from typing import Any, Optional

from arbscan.config.log import configure_logging
from arbscan.config.settings import ScannerSettings, get_scanner_settings
from arbscan.errors import ConfigError
from arbscan.integrations.notifier import NotifierClient
from arbscan.integrations.snapshot_client import RemoteSnapshotSource
from arbscan.services.scanner import Scanner
from arbscan.services.threshold import ThresholdPolicy

logger = logging.getLogger(__name__)


def build_scanner(settings: ScannerSettings, *, session: Optional[Any] = None) -> Scanner:
    sources = [
        RemoteSnapshotSource(cfg.url, name=cfg.name, session=session, timeout=settings.HTTP_TIMEOUT)
        for cfg in settings.SNAPSHOT_URLS
    ]
    return Scanner(
        sources=sources,
        policy=ThresholdPolicy(bound=settings.THRESHOLD, direction=settings.THRESHOLD_DIRECTION),
        notifier=NotifierClient(settings.NOTIFIER_URL, session=session, timeout=settings.HTTP_TIMEOUT),
        interval_sec=settings.SCAN_INTERVAL,
        stale_after_sec=settings.STALE_AFTER,
    )


def main() -> None:
    try:
        settings = get_scanner_settings()
    except ConfigError as exc:
        configure_logging()
        logger.critical("[APP][config_error] %s", exc)
        raise SystemExit(2) from exc

    configure_logging(settings.LOG_LEVEL)
    scanner = build_scanner(settings)
    try:
        scanner.run_forever()
    except KeyboardInterrupt:
        logger.info("[APP][shutdown] reason=interrupt")


if __name__ == "__main__":
    main()
