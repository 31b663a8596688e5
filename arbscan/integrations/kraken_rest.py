from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from arbscan.errors import FetchError, MalformedQuote
from arbscan.integrations.exchange_base import RestExchangeClient, build_quote, to_price
from arbscan.schemas.quote import Quote, canonical_symbol

_ASSET_ALIASES = {
    "XBT": "BTC",
    "XDG": "DOGE",
}


def _asset(code: str) -> str:
    return _ASSET_ALIASES.get(code, code)


def kraken_pair_to_symbol(pair: str) -> str:
    """Map a Kraken result key to a canonical symbol: "XXBTZUSD" -> "BTCUSD"."""
    key = canonical_symbol(pair)
    # legacy 8-char names: X/Z prefixed base and quote assets
    if len(key) == 8 and key[0] in "XZ" and key[4] in "XZ":
        return _asset(key[1:4]) + _asset(key[5:8])
    for alias, asset in _ASSET_ALIASES.items():
        if key.startswith(alias):
            return asset + key[len(alias):]
    return key


class KrakenRestClient(RestExchangeClient):
    """Kraken public Ticker endpoint; one request covers every pair."""

    name = "kraken"
    default_base_url = "https://api.kraken.com"

    def fetch_raw(self, symbols: list[str]) -> Dict[str, Any]:
        payload = self._get_json("/0/public/Ticker", params={"pair": ",".join(symbols)})
        if not isinstance(payload, dict):
            raise FetchError(f"unexpected kraken payload type: {type(payload).__name__}")

        errors = payload.get("error") or []
        if errors:
            raise FetchError(f"kraken API error: {', '.join(str(e) for e in errors)}")

        result = payload.get("result") or {}
        if not isinstance(result, dict):
            raise FetchError("kraken result must be an object")

        requested = set(symbols)
        out: Dict[str, Any] = {}
        for pair, entry in result.items():
            key = canonical_symbol(pair)
            symbol = key if key in requested else kraken_pair_to_symbol(key)
            out[symbol] = entry
        return out

    def normalize(self, symbol: str, raw: Any, *, now: datetime) -> Quote:
        if not isinstance(raw, dict):
            raise MalformedQuote(symbol, "entry", raw)
        return build_quote(
            symbol,
            bid=to_price(self._first(raw.get("b")), symbol=symbol, field="b"),
            ask=to_price(self._first(raw.get("a")), symbol=symbol, field="a"),
            now=now,
        )

    @staticmethod
    def _first(levels: Any) -> Any:
        if isinstance(levels, (list, tuple)) and levels:
            return levels[0]
        return None
