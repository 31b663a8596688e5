import math
import os
import re
from functools import lru_cache
from typing import Annotated, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, BeforeValidator, Field, ValidationError, field_validator, model_validator

from arbscan.errors import ConfigError
from arbscan.schemas.quote import canonical_symbol

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value) -> float:
    """Parse a Go-style duration string ("300ms", "5s", "1m30s") into seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)

    text = str(value).strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ValueError(f"invalid duration: {value!r}")

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return sign * total


def parse_pairs(value) -> list[str]:
    raw = value.split(",") if isinstance(value, str) else list(value or [])
    out: list[str] = []
    for pair in raw:
        symbol = canonical_symbol(pair)
        if symbol and symbol not in out:
            out.append(symbol)
    if not out:
        raise ValueError("at least one trading pair is required")
    return out


class SnapshotSourceConfig(BaseModel):
    name: str
    url: str


def parse_sources(value) -> list[SnapshotSourceConfig]:
    if not isinstance(value, str):
        return value
    out: list[SnapshotSourceConfig] = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, url = item.partition("=")
        if not sep:
            url = name
            name = urlparse(url).netloc or url
        out.append(SnapshotSourceConfig(name=name.strip(), url=url.strip()))
    if not out:
        raise ValueError("at least one snapshot source is required")
    return out


Duration = Annotated[float, BeforeValidator(parse_duration), Field(gt=0)]


class _CommonSettings(BaseModel):
    HTTP_TIMEOUT: Duration = 5.0
    THRESHOLD_DIRECTION: Literal["below", "above"] = "below"
    SCAN_INTERVAL: Duration = 5.0
    STALE_AFTER: Duration | None = None
    LOG_LEVEL: str = "INFO"

    @field_validator("THRESHOLD_DIRECTION", mode="before")
    @classmethod
    def normalize_direction(cls, value):
        return str(value).strip().lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value!r}")
        return level

    @field_validator("THRESHOLD", check_fields=False)
    @classmethod
    def require_finite_threshold(cls, value: float | None) -> float | None:
        if value is not None and not math.isfinite(value):
            raise ValueError("threshold must be a finite number")
        return value

    @staticmethod
    def _read_env(names: list[str]) -> dict[str, str]:
        out: dict[str, str] = {}
        for name in names:
            value = os.getenv(name)
            if value is not None and value.strip() != "":
                out[name] = value.strip()
        return out

    @classmethod
    def _validate_env(cls, data: dict):
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"invalid {cls.__name__}: {exc}") from exc


class ConnectorSettings(_CommonSettings):
    EXCHANGE: Literal["binance", "kraken"]
    EXCHANGE_BASE_URL: str | None = None
    PAIRS: Annotated[list[str], BeforeValidator(parse_pairs)]
    POLL_INTERVAL: Duration = 5.0
    SCANNER_ENABLED: bool = False
    THRESHOLD: float | None = None
    NOTIFIER_URL: str | None = None

    @field_validator("EXCHANGE", mode="before")
    @classmethod
    def normalize_exchange(cls, value):
        return str(value).strip().lower()

    @model_validator(mode="after")
    def require_scanner_settings(self) -> "ConnectorSettings":
        if self.SCANNER_ENABLED:
            if self.THRESHOLD is None:
                raise ValueError("THRESHOLD is required when SCANNER_ENABLED")
            if not self.NOTIFIER_URL:
                raise ValueError("NOTIFIER_URL is required when SCANNER_ENABLED")
        return self

    @classmethod
    def from_env(cls) -> "ConnectorSettings":
        return cls._validate_env(
            cls._read_env(
                [
                    "EXCHANGE",
                    "EXCHANGE_BASE_URL",
                    "PAIRS",
                    "POLL_INTERVAL",
                    "HTTP_TIMEOUT",
                    "SCANNER_ENABLED",
                    "THRESHOLD",
                    "THRESHOLD_DIRECTION",
                    "SCAN_INTERVAL",
                    "NOTIFIER_URL",
                    "STALE_AFTER",
                    "LOG_LEVEL",
                ]
            )
        )


class ScannerSettings(_CommonSettings):
    SNAPSHOT_URLS: Annotated[list[SnapshotSourceConfig], BeforeValidator(parse_sources)]
    THRESHOLD: float
    NOTIFIER_URL: str

    @classmethod
    def from_env(cls) -> "ScannerSettings":
        return cls._validate_env(
            cls._read_env(
                [
                    "SNAPSHOT_URLS",
                    "THRESHOLD",
                    "THRESHOLD_DIRECTION",
                    "SCAN_INTERVAL",
                    "NOTIFIER_URL",
                    "STALE_AFTER",
                    "HTTP_TIMEOUT",
                    "LOG_LEVEL",
                ]
            )
        )


@lru_cache
def get_connector_settings() -> ConnectorSettings:
    return ConnectorSettings.from_env()


@lru_cache
def get_scanner_settings() -> ScannerSettings:
    return ScannerSettings.from_env()
