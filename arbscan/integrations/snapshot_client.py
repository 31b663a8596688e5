from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from pydantic import ValidationError

from arbscan.errors import FetchError
from arbscan.schemas.quote import Quote

logger = logging.getLogger(__name__)

LATEST_PRICE_PATH = "/latest-price"


class RemoteSnapshotSource:
    """Reads a connector's ``GET /latest-price`` snapshot over HTTP."""

    def __init__(
        self,
        url: str,
        *,
        name: Optional[str] = None,
        session: Optional[Any] = None,
        timeout: float = 5.0,
    ) -> None:
        base = url.rstrip("/")
        self.url = base if base.endswith(LATEST_PRICE_PATH) else f"{base}{LATEST_PRICE_PATH}"
        self.name = name or base
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_snapshot(self) -> dict[str, Quote]:
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise FetchError(f"snapshot request to {self.url} failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"snapshot from {self.url} is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise FetchError(f"snapshot from {self.url} must be an object")

        out: dict[str, Quote] = {}
        for key, row in payload.items():
            try:
                quote = Quote.model_validate(row)
            except ValidationError as exc:
                logger.warning(
                    "[SCAN][snapshot_row_skip] source=%s symbol=%s error=%s",
                    self.name,
                    key,
                    exc.errors()[0]["msg"] if exc.errors() else exc,
                )
                continue
            out[quote.symbol] = quote
        return out
