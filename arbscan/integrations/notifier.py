from __future__ import annotations

from typing import Any, Optional

import requests

from arbscan.errors import NotifyError
from arbscan.schemas.quote import AlertRequest

SEND_ALERT_PATH = "/sendAlert"


class NotifierClient:
    """Hands alert text to the notifier service; any non-200 is a failure."""

    def __init__(
        self,
        url: str,
        *,
        session: Optional[Any] = None,
        timeout: float = 5.0,
    ) -> None:
        base = url.rstrip("/")
        self.url = base if base.endswith(SEND_ALERT_PATH) else f"{base}{SEND_ALERT_PATH}"
        self.session = session or requests.Session()
        self.timeout = timeout

    def send_alert(self, message: str) -> None:
        body = AlertRequest(message=message).model_dump()
        try:
            response = self.session.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NotifyError(f"notifier request failed: {exc}") from exc

        if response.status_code != 200:
            raise NotifyError(
                f"notifier rejected alert: status={response.status_code}",
                status_code=response.status_code,
            )
