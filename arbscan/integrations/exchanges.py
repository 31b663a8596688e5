from __future__ import annotations

from typing import Any, Optional

from arbscan.errors import ConfigError
from arbscan.integrations.binance_rest import BinanceRestClient
from arbscan.integrations.exchange_base import RestExchangeClient
from arbscan.integrations.kraken_rest import KrakenRestClient

EXCHANGE_CLIENTS: dict[str, type[RestExchangeClient]] = {
    BinanceRestClient.name: BinanceRestClient,
    KrakenRestClient.name: KrakenRestClient,
}


def build_exchange_client(
    name: str,
    *,
    base_url: Optional[str] = None,
    session: Optional[Any] = None,
    timeout: float = 5.0,
) -> RestExchangeClient:
    try:
        client_cls = EXCHANGE_CLIENTS[name.lower()]
    except KeyError as exc:
        raise ConfigError(f"unsupported exchange: {name!r}") from exc
    return client_cls(base_url=base_url, session=session, timeout=timeout)
