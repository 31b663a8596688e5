from __future__ import annotations


class ConfigError(Exception):
    """Invalid startup configuration. Fatal: raised before any loop starts."""


class FetchError(Exception):
    """A snapshot or exchange request failed for one cycle."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class MalformedQuote(ValueError):
    def __init__(self, symbol: str, field: str, value: object = None) -> None:
        self.symbol = symbol
        self.field = field
        self.value = value
        super().__init__(f"malformed {field} for {symbol}: {value!r}")


class NotifyError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
