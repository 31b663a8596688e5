import threading
import unittest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from arbscan.schemas.quote import Quote
from arbscan.services.ticker_store import TickerStore

T0 = datetime(2026, 1, 2, 10, 0, 0, tzinfo=timezone.utc)


def make_quote(symbol: str, bid: float, ask: float, ts: datetime = T0) -> Quote:
    return Quote(symbol=symbol, bid=bid, ask=ask, last_update=ts)


class TickerStoreTest(unittest.TestCase):
    def test_empty_store(self):
        store = TickerStore()

        self.assertEqual(store.snapshot(), {})
        self.assertIsNone(store.get("BTCUSD"))
        self.assertEqual(len(store), 0)

    def test_put_replaces_existing_symbol(self):
        store = TickerStore()
        store.put(make_quote("BTCUSD", 100.0, 101.0))
        store.put(make_quote("BTCUSD", 102.0, 103.0, T0 + timedelta(seconds=5)))

        quote = store.get("BTCUSD")
        self.assertEqual(quote.bid, 102.0)
        self.assertEqual(quote.ask, 103.0)
        self.assertEqual(quote.last_update, T0 + timedelta(seconds=5))
        self.assertEqual(len(store), 1)
        self.assertEqual(store.metrics()["puts"], 2)

    def test_snapshot_is_independent_copy(self):
        store = TickerStore()
        store.put(make_quote("BTCUSD", 100.0, 101.0))

        snap = store.snapshot()
        snap.pop("BTCUSD")
        snap["ETHUSD"] = make_quote("ETHUSD", 1.0, 2.0)

        self.assertEqual(store.symbols(), ["BTCUSD"])
        self.assertIsNone(store.get("ETHUSD"))

    def test_snapshot_taken_before_put_is_not_affected(self):
        store = TickerStore()
        store.put(make_quote("BTCUSD", 100.0, 101.0))
        snap = store.snapshot()

        store.put(make_quote("BTCUSD", 200.0, 201.0))
        store.put(make_quote("ETHUSD", 1.0, 2.0))

        self.assertEqual(list(snap), ["BTCUSD"])
        self.assertEqual(snap["BTCUSD"].bid, 100.0)

    def test_snapshot_after_disjoint_puts_matches_program_order(self):
        store = TickerStore()
        expected = {}
        for i in range(50):
            quote = make_quote(f"SYM{i}USD", float(i), float(i) + 0.5)
            expected[quote.symbol] = quote
            store.put(quote)

        self.assertEqual(store.snapshot(), expected)

    def test_put_with_matching_symbol_key(self):
        store = TickerStore()
        store.put(make_quote("BTCUSD", 100.0, 101.0), symbol="btc/usd")

        self.assertEqual(store.symbols(), ["BTCUSD"])

    def test_put_with_mismatched_symbol_key_is_rejected(self):
        store = TickerStore()

        with self.assertRaises(ValueError):
            store.put(make_quote("BTCUSD", 100.0, 101.0), symbol="ETHUSD")

        self.assertEqual(store.snapshot(), {})
        self.assertEqual(store.metrics()["puts"], 0)

    def test_quote_is_immutable(self):
        quote = make_quote("BTCUSD", 100.0, 101.0)

        with self.assertRaises(ValidationError):
            quote.bid = 1.0

    def test_concurrent_writers_and_readers_never_observe_torn_quotes(self):
        store = TickerStore()
        symbols = [f"SYM{i}USD" for i in range(8)]
        rounds = 300
        errors = []
        start = threading.Event()
        writers_done = threading.Event()

        def consistent(quote: Quote) -> bool:
            # every write uses bid=n, ask=n+1, last_update=T0+n seconds
            n = quote.bid
            return quote.ask == n + 1 and quote.last_update == T0 + timedelta(seconds=n)

        def writer(symbol: str) -> None:
            start.wait()
            for n in range(rounds):
                store.put(make_quote(symbol, float(n), float(n) + 1, T0 + timedelta(seconds=n)))

        def reader() -> None:
            start.wait()
            while not writers_done.is_set():
                for quote in store.snapshot().values():
                    if not consistent(quote):
                        errors.append(quote)
                for symbol in symbols:
                    quote = store.get(symbol)
                    if quote is not None and not consistent(quote):
                        errors.append(quote)

        writers = [threading.Thread(target=writer, args=(s,)) for s in symbols]
        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in writers + readers:
            t.start()
        start.set()
        for t in writers:
            t.join(timeout=10)
        writers_done.set()
        for t in readers:
            t.join(timeout=10)

        self.assertEqual(errors, [])
        final = store.snapshot()
        self.assertEqual(sorted(final), sorted(symbols))
        for quote in final.values():
            self.assertEqual(quote.bid, float(rounds - 1))
        self.assertEqual(store.metrics()["puts"], rounds * len(symbols))


class QuoteModelTest(unittest.TestCase):
    def test_symbol_is_canonicalized(self):
        quote = make_quote("btc/usd", 1.0, 2.0)

        self.assertEqual(quote.symbol, "BTCUSD")

    def test_naive_timestamp_is_treated_as_utc(self):
        quote = make_quote("BTCUSD", 1.0, 2.0, datetime(2026, 1, 2, 10, 0, 0))

        self.assertEqual(quote.last_update, T0)

    def test_ask_below_bid_is_accepted(self):
        quote = make_quote("BTCUSD", 101.0, 100.0)

        self.assertEqual(quote.ask, 100.0)

    def test_negative_price_rejected(self):
        with self.assertRaises(ValidationError):
            make_quote("BTCUSD", -1.0, 100.0)

    def test_non_finite_price_rejected(self):
        for value in (float("inf"), float("nan")):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    make_quote("BTCUSD", 1.0, value)


if __name__ == "__main__":
    unittest.main()
