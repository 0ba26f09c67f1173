"""
Price Cache - TTL cache over the price feed with last-known fallback
"""

import math
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional

import structlog

from ..errors import PriceFeedError

log = structlog.get_logger()


class PriceSource(Enum):
    FRESH = "fresh"
    CACHED = "cached"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class PriceSnapshot:
    price_usd: Optional[float]
    fdv: Optional[float]
    observed_at: float

    @property
    def has_price(self) -> bool:
        return self.price_usd is not None and self.price_usd > 0

    @property
    def has_fdv(self) -> bool:
        return self.fdv is not None and self.fdv > 0


@dataclass(frozen=True)
class PriceReading:
    snapshot: PriceSnapshot
    source: PriceSource


def _parse_price(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise PriceFeedError(f"unparsable priceUsd: {value!r}")
    if not math.isfinite(price):
        raise PriceFeedError(f"non-finite priceUsd: {value!r}")
    return price if price > 0 else None


def _parse_fdv(value) -> Optional[float]:
    # feed sends fdv as a JSON number; anything else is treated as missing
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    fdv = float(value)
    return fdv if math.isfinite(fdv) else None


def snapshot_from_pair(pair: Dict, observed_at: float) -> PriceSnapshot:
    return PriceSnapshot(
        price_usd=_parse_price(pair.get('priceUsd')),
        fdv=_parse_fdv(pair.get('fdv')),
        observed_at=observed_at,
    )


class PriceCache:
    """
    get() priority:
    1. snapshot younger than ttl -> CACHED, no network
    2. fresh fetch -> FRESH (snapshot replaced wholesale)
    3. fetch failed -> last snapshot as DEGRADED, or None
    """

    def __init__(self, feed, ttl_sec: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self.feed = feed
        self.ttl_sec = ttl_sec
        self.clock = clock
        self._snapshot: Optional[PriceSnapshot] = None

        self.fetches = 0
        self.failures = 0

    def last_known(self) -> Optional[PriceSnapshot]:
        if self._snapshot is None:
            return None
        return replace(self._snapshot)

    async def get(self) -> Optional[PriceReading]:
        now = self.clock()
        if self._snapshot is not None and now - self._snapshot.observed_at < self.ttl_sec:
            return PriceReading(replace(self._snapshot), PriceSource.CACHED)

        self.fetches += 1
        try:
            pair = await self.feed.fetch_pair()
            if pair is None:
                log.warning("price_feed_no_pair")
                return None
            snapshot = snapshot_from_pair(pair, observed_at=now)
        except PriceFeedError as e:
            self.failures += 1
            if self._snapshot is not None:
                log.warning("price_feed_degraded", error=str(e),
                           age_sec=round(now - self._snapshot.observed_at, 1))
                return PriceReading(replace(self._snapshot), PriceSource.DEGRADED)
            log.error("price_feed_unavailable", error=str(e))
            return None

        self._snapshot = snapshot
        log.debug("price_refreshed", price_usd=snapshot.price_usd, fdv=snapshot.fdv)
        return PriceReading(replace(snapshot), PriceSource.FRESH)
