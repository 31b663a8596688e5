from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

import requests
from pydantic import ValidationError

from arbscan.errors import FetchError, MalformedQuote
from arbscan.schemas.quote import Quote


class ExchangeClient(Protocol):
    name: str

    def fetch_raw(self, symbols: list[str]) -> Dict[str, Any]:
        """Return the raw wire entry per canonical symbol. Raises FetchError."""

    def normalize(self, symbol: str, raw: Any, *, now: datetime) -> Quote:
        """Build a Quote from one raw entry. Raises MalformedQuote."""


def to_price(value: Any, *, symbol: str, field: str) -> float:
    if value is None or isinstance(value, bool) or value == "":
        raise MalformedQuote(symbol, field, value)
    if not isinstance(value, (str, int, float)):
        raise MalformedQuote(symbol, field, value)
    try:
        price = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedQuote(symbol, field, value) from exc
    # float() saturates to inf on overflow; inf, NaN and negatives are all rejected
    if not math.isfinite(price) or price < 0:
        raise MalformedQuote(symbol, field, value)
    return price


def build_quote(symbol: str, *, bid: float, ask: float, now: datetime) -> Quote:
    try:
        return Quote(symbol=symbol, bid=bid, ask=ask, last_update=now)
    except ValidationError as exc:
        raise MalformedQuote(symbol, "quote", str(exc)) from exc


class RestExchangeClient:
    name = "exchange"
    default_base_url = ""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        session: Optional[Any] = None,
        timeout: float = 5.0,
    ) -> None:
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise FetchError(f"{self.name} request failed: {exc}", status_code=status_code) from exc
        except ValueError as exc:
            raise FetchError(f"{self.name} returned invalid JSON: {exc}") from exc
