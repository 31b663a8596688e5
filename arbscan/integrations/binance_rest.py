from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from arbscan.errors import FetchError, MalformedQuote
from arbscan.integrations.exchange_base import RestExchangeClient, build_quote, to_price
from arbscan.schemas.quote import Quote, canonical_symbol

logger = logging.getLogger(__name__)

BOOK_TICKER_PATH = "/api/v3/ticker/bookTicker"


def _is_client_error(exc: FetchError) -> bool:
    return exc.status_code is not None and 400 <= exc.status_code < 500


class BinanceRestClient(RestExchangeClient):
    """Binance spot book ticker (best bid/ask) over the public REST API.

    The batch endpoint rejects the whole request with a 4xx when any one
    symbol is unknown. In that case each symbol is requested on its own and
    the rejected ones are left out, so the poller reports them as missing.
    """

    name = "binance"
    default_base_url = "https://api.binance.com"

    def fetch_raw(self, symbols: list[str]) -> Dict[str, Any]:
        try:
            payload = self._get_json(
                BOOK_TICKER_PATH,
                params={"symbols": json.dumps(symbols, separators=(",", ":"))},
            )
        except FetchError as exc:
            if len(symbols) < 2 or not _is_client_error(exc):
                raise
            logger.warning(
                "[POLL][batch_rejected] exchange=%s status=%s error=%s",
                self.name,
                exc.status_code,
                exc,
            )
            return self._fetch_each(symbols)
        return self._index(payload)

    def _fetch_each(self, symbols: list[str]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for symbol in symbols:
            try:
                payload = self._get_json(BOOK_TICKER_PATH, params={"symbol": symbol})
            except FetchError as exc:
                if not _is_client_error(exc):
                    raise
                logger.warning(
                    "[POLL][symbol_rejected] exchange=%s symbol=%s status=%s",
                    self.name,
                    symbol,
                    exc.status_code,
                )
                continue
            out.update(self._index(payload))
        return out

    def _index(self, payload: Any) -> Dict[str, Any]:
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list):
            raise FetchError(f"unexpected binance payload type: {type(payload).__name__}")

        out: Dict[str, Any] = {}
        for entry in payload:
            if not isinstance(entry, dict) or not entry.get("symbol"):
                continue
            out[canonical_symbol(entry["symbol"])] = entry
        return out

    def normalize(self, symbol: str, raw: Any, *, now: datetime) -> Quote:
        if not isinstance(raw, dict):
            raise MalformedQuote(symbol, "entry", raw)
        return build_quote(
            symbol,
            bid=to_price(raw.get("bidPrice"), symbol=symbol, field="bidPrice"),
            ask=to_price(raw.get("askPrice"), symbol=symbol, field="askPrice"),
            now=now,
        )
