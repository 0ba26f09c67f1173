import unittest

from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase

from src.buybot.api.dexscreener_client import DexScreenerClient
from src.buybot.errors import PriceFeedError


class TestDexScreenerClient(AioHTTPTestCase):

    async def get_application(self):
        async def ok(request):
            return web.json_response({'pairs': [
                {'priceUsd': "0.002", 'fdv': 2500000},
                {'priceUsd': "9.99", 'fdv': 1},
            ]})

        async def empty(request):
            return web.json_response({'pairs': None})

        async def html(request):
            return web.Response(text="<!DOCTYPE html><html>rate limited</html>",
                                content_type="text/html", status=200)

        async def garbage(request):
            return web.Response(text="{not json", content_type="application/json")

        async def server_error(request):
            return web.json_response({'error': "boom"}, status=500)

        app = web.Application()
        app.router.add_get("/ok", ok)
        app.router.add_get("/empty", empty)
        app.router.add_get("/html", html)
        app.router.add_get("/garbage", garbage)
        app.router.add_get("/error", server_error)
        return app

    async def fetch(self, path):
        client = DexScreenerClient(str(self.server.make_url(path)))
        try:
            return await client.fetch_pair()
        finally:
            await client.close()

    async def test_returns_first_pair(self):
        pair = await self.fetch("/ok")
        self.assertEqual(pair['priceUsd'], "0.002")
        self.assertEqual(pair['fdv'], 2500000)

    async def test_no_pairs_returns_none(self):
        self.assertIsNone(await self.fetch("/empty"))

    async def test_html_body_is_a_feed_failure(self):
        with self.assertRaises(PriceFeedError):
            await self.fetch("/html")

    async def test_non_json_body_is_a_feed_failure(self):
        with self.assertRaises(PriceFeedError):
            await self.fetch("/garbage")

    async def test_http_error_is_a_feed_failure(self):
        with self.assertRaises(PriceFeedError):
            await self.fetch("/error")

    async def test_unreachable_host_is_a_feed_failure(self):
        client = DexScreenerClient("http://127.0.0.1:1/pairs", timeout_sec=2)
        try:
            with self.assertRaises(PriceFeedError):
                await client.fetch_pair()
        finally:
            await client.close()


if __name__ == '__main__':
    unittest.main()
