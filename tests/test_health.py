import unittest

from aiohttp.test_utils import AioHTTPTestCase

from src.buybot.health import create_health_app


class TestHealthEndpoint(AioHTTPTestCase):

    async def get_application(self):
        return create_health_app("rusty-buy-bot")

    async def test_root_is_alive(self):
        async with self.client.get("/") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(await resp.text(), "rusty-buy-bot alive\n")
            self.assertTrue(resp.headers['Content-Type'].startswith("text/plain"))

    async def test_any_path_and_method(self):
        async with self.client.post("/whatever/else", data=b"x") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(await resp.text(), "rusty-buy-bot alive\n")


if __name__ == '__main__':
    unittest.main()
