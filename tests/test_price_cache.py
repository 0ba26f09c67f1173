import unittest

from src.buybot.core.price_cache import PriceCache, PriceSource
from tests.fakes import FakeClock, FakeFeed, PriceFeedError, pair


class TestPriceCache(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.clock = FakeClock()

    def make_cache(self, *responses):
        self.feed = FakeFeed(*responses)
        return PriceCache(self.feed, ttl_sec=60, clock=self.clock)

    async def test_fresh_then_cached_within_ttl(self):
        cache = self.make_cache(pair("0.002", 2_500_000))

        first = await cache.get()
        self.clock.advance(30)
        second = await cache.get()

        self.assertEqual(first.source, PriceSource.FRESH)
        self.assertEqual(second.source, PriceSource.CACHED)
        self.assertEqual(first.snapshot, second.snapshot)
        self.assertEqual(self.feed.calls, 1)

    async def test_expired_ttl_triggers_exactly_one_fetch(self):
        cache = self.make_cache(pair("0.002"), pair("0.003"))

        await cache.get()
        self.clock.advance(60)
        reading = await cache.get()
        await cache.get()

        self.assertEqual(self.feed.calls, 2)
        self.assertEqual(reading.source, PriceSource.FRESH)
        self.assertAlmostEqual(reading.snapshot.price_usd, 0.003)

    async def test_failure_falls_back_to_last_snapshot(self):
        cache = self.make_cache(pair("0.002", 2_500_000),
                                PriceFeedError("dexscreener returned HTML"))

        await cache.get()
        self.clock.advance(120)
        reading = await cache.get()

        self.assertEqual(reading.source, PriceSource.DEGRADED)
        self.assertAlmostEqual(reading.snapshot.price_usd, 0.002)
        self.assertEqual(reading.snapshot.fdv, 2_500_000)
        self.assertEqual(cache.failures, 1)

    async def test_failure_without_snapshot_is_unavailable(self):
        cache = self.make_cache(PriceFeedError("connection refused"))

        self.assertIsNone(await cache.get())
        self.assertIsNone(cache.last_known())

    async def test_missing_pair_keeps_stored_snapshot(self):
        cache = self.make_cache(pair("0.002", 2_500_000), None)

        await cache.get()
        self.clock.advance(61)
        reading = await cache.get()

        self.assertIsNone(reading)
        last = cache.last_known()
        self.assertAlmostEqual(last.price_usd, 0.002)
        self.assertEqual(last.fdv, 2_500_000)

    async def test_unparsable_price_is_treated_as_failure(self):
        cache = self.make_cache(pair("0.002", 1_000), pair("not-a-number", 5_000))

        await cache.get()
        self.clock.advance(61)
        reading = await cache.get()

        # old snapshot untouched, price and fdv not mixed
        self.assertEqual(reading.source, PriceSource.DEGRADED)
        self.assertAlmostEqual(reading.snapshot.price_usd, 0.002)
        self.assertEqual(reading.snapshot.fdv, 1_000)

    async def test_non_numeric_fdv_is_absent(self):
        cache = self.make_cache(pair("0.5", "12345"))

        reading = await cache.get()

        self.assertIsNone(reading.snapshot.fdv)
        self.assertFalse(reading.snapshot.has_fdv)
        self.assertTrue(reading.snapshot.has_price)

    async def test_non_finite_price_is_treated_as_failure(self):
        for bad in ("Infinity", "-inf", "NaN"):
            with self.subTest(price=bad):
                self.clock = FakeClock()
                cache = self.make_cache(pair("0.002", 1_000), pair(bad, 5_000))

                await cache.get()
                self.clock.advance(61)
                reading = await cache.get()

                self.assertEqual(reading.source, PriceSource.DEGRADED)
                self.assertAlmostEqual(reading.snapshot.price_usd, 0.002)
                self.assertEqual(cache.failures, 1)

    async def test_non_finite_price_without_snapshot_is_unavailable(self):
        cache = self.make_cache(pair("Infinity"))

        self.assertIsNone(await cache.get())
        self.assertIsNone(cache.last_known())

    async def test_non_finite_fdv_is_absent(self):
        cache = self.make_cache(pair("0.5", float("inf")))

        reading = await cache.get()

        self.assertIsNone(reading.snapshot.fdv)
        self.assertTrue(reading.snapshot.has_price)


if __name__ == '__main__':
    unittest.main()
