"""
DexScreener Client - Fetches the token's pair record (price, FDV)
"""

import asyncio
import json
from typing import Dict, Optional

import aiohttp
import structlog

from ..errors import PriceFeedError

log = structlog.get_logger()


class DexScreenerClient:
    """
    Async client for a single DexScreener pair endpoint.
    Every failure mode (network, status, HTML rate-limit page, bad JSON)
    is raised as PriceFeedError so the cache can fall back.
    """

    def __init__(self, pair_url: str, timeout_sec: float = 10):
        self.pair_url = pair_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def open(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def fetch_pair(self) -> Optional[Dict]:
        """
        Return the first pair record, or None if the response has none
        """
        await self.open()
        try:
            async with self.session.get(self.pair_url) as response:
                text = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PriceFeedError(f"dexscreener request failed: {e!r}") from e

        body = text.strip()
        if body.startswith("<"):
            raise PriceFeedError(f"dexscreener returned HTML (status {status}, rate limited?)")
        if status != 200:
            raise PriceFeedError(f"dexscreener HTTP {status}")

        try:
            data = json.loads(body)
        except ValueError as e:
            raise PriceFeedError(f"dexscreener returned non-JSON body: {e}") from e

        pairs = data.get('pairs') if isinstance(data, dict) else None
        if not pairs or not isinstance(pairs, list):
            log.debug("dexscreener_no_pairs", url=self.pair_url)
            return None

        pair = pairs[0]
        if not isinstance(pair, dict):
            raise PriceFeedError("dexscreener pair record is not an object")
        return pair
