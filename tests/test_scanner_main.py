import os
import unittest
from unittest.mock import MagicMock, patch

from arbscan.config.settings import ScannerSettings, get_scanner_settings
from arbscan.scanner_main import build_scanner, main


def response_with(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class ScannerMainTest(unittest.TestCase):
    def test_build_scanner_aggregates_remote_snapshots(self):
        settings = ScannerSettings(
            SNAPSHOT_URLS="binance=http://b:8001,kraken=http://k:8002",
            THRESHOLD=20000.0,
            NOTIFIER_URL="http://n:8004",
            SCAN_INTERVAL="2s",
        )
        session = MagicMock()
        session.get.side_effect = [
            response_with(
                payload={
                    "BTCUSDT": {"symbol": "BTCUSDT", "bid": 19950.0, "ask": 19995.0, "last_update": "2026-01-02T10:00:00Z"},
                }
            ),
            response_with(
                payload={
                    "BTCUSD": {"symbol": "BTCUSD", "bid": 20010.0, "ask": 20020.0, "last_update": "2026-01-02T10:00:00Z"},
                }
            ),
        ]
        session.post.return_value = response_with(status_code=200)

        scanner = build_scanner(settings, session=session)
        signals = scanner.scan_once()

        self.assertEqual(scanner.interval_sec, 2.0)
        self.assertEqual([s.name for s in scanner.sources], ["binance", "kraken"])
        self.assertEqual([(s.source, s.symbol) for s in signals], [("binance", "BTCUSDT")])
        session.post.assert_called_once()
        self.assertEqual(session.post.call_args.args[0], "http://n:8004/sendAlert")
        self.assertIn("BTCUSDT", session.post.call_args.kwargs["json"]["message"])

    def test_main_exits_on_config_error(self):
        get_scanner_settings.cache_clear()
        try:
            with patch.dict(os.environ, {"THRESHOLD": "abc"}, clear=True):
                with self.assertLogs("arbscan.scanner_main", level="CRITICAL"):
                    with self.assertRaises(SystemExit) as ctx:
                        main()
        finally:
            get_scanner_settings.cache_clear()

        self.assertEqual(ctx.exception.code, 2)


if __name__ == "__main__":
    unittest.main()
