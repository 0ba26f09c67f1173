"""
Transfer Evaluator - Decides if a transfer is an alertable buy and values it

A transfer counts as a buy when it leaves one of the trusted pool addresses.
Swap internals are never inspected.
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from ..errors import MalformedLogError
from .dedup_ledger import DedupLedger, EventIdentity, event_identity
from .price_cache import PriceCache, PriceSource

log = structlog.get_logger()

INTENSITY_GLYPH = "⚡"
MAX_GLYPHS = 100
FALLBACK_MARKER = " (fb)"
PLACEHOLDER = "--"


def _to_hex(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        value = value.strip().lower()
        return value if value.startswith("0x") else "0x" + value
    raise MalformedLogError(f"expected hex bytes or string, got {type(value).__name__}")


def _to_int(value) -> int:
    if isinstance(value, bool):
        raise MalformedLogError("boolean is not a valid integer field")
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(bytes(value), "big") if value else 0
    if isinstance(value, str):
        try:
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            raise MalformedLogError(f"invalid integer field: {value!r}")
    raise MalformedLogError(f"expected integer field, got {type(value).__name__}")


def _topic_address(topic) -> str:
    h = _to_hex(topic)
    if len(h) != 66:
        raise MalformedLogError(f"address topic has wrong length: {h}")
    return "0x" + h[-40:]


@dataclass(frozen=True)
class TransferLog:
    transaction_hash: str
    log_index: int
    from_address: str
    to_address: str
    value: int

    @property
    def identity(self) -> EventIdentity:
        return event_identity(self.transaction_hash, self.log_index)

    @classmethod
    def from_raw(cls, raw) -> "TransferLog":
        """
        Parse an ERC-20 Transfer log (web3 AttributeDict or JSON-RPC dict).
        Raises MalformedLogError on unexpected shapes.
        """
        try:
            topics = list(raw['topics'])
            tx_hash = _to_hex(raw['transactionHash'])
            log_index = _to_int(raw['logIndex'])
            data = raw.get('data', b"")
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedLogError(f"log is missing fields: {e!r}") from e

        if len(topics) < 3:
            raise MalformedLogError(f"transfer log needs 3 topics, got {len(topics)}")

        return cls(
            transaction_hash=tx_hash,
            log_index=log_index,
            from_address=_topic_address(topics[1]),
            to_address=_topic_address(topics[2]),
            value=_to_int(data if data not in ("", "0x") else 0),
        )


@dataclass(frozen=True)
class AlertPayload:
    transaction_hash: str
    recipient_address: str
    amount: float
    usd_value: Optional[float]
    market_cap_text: str
    intensity_glyphs: str


def _grouped(value: float) -> str:
    # thousands separators, at most 3 decimals, no trailing zeros
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_market_cap(value: Optional[float], fallback: bool = False) -> str:
    if value is None or value <= 0:
        return PLACEHOLDER
    if value >= 1_000_000:
        text = f"${value / 1_000_000:.2f}M"
    else:
        text = f"${_grouped(value)}"
    return text + FALLBACK_MARKER if fallback else text


def intensity_glyphs(usd_value: Optional[float]) -> str:
    """One glyph per whole dollar, at least 1, saturating at 100"""
    if usd_value is None or usd_value <= 0:
        return INTENSITY_GLYPH
    count = min(MAX_GLYPHS, max(1, math.floor(usd_value)))
    return INTENSITY_GLYPH * count


def raw_to_amount(value: int, decimals: int) -> float:
    return float(Decimal(value) / (Decimal(10) ** decimals))


class TransferEvaluator:
    """
    Filters transfers down to buys and builds the alert payload
    """

    def __init__(self, ledger: DedupLedger, price_cache: PriceCache,
                 pool_addresses: Iterable[str], total_supply: float,
                 decimals: int = 18):
        self.ledger = ledger
        self.price_cache = price_cache
        self.pool_addresses = {a.lower() for a in pool_addresses}
        self.total_supply = total_supply
        self.decimals = decimals

    async def evaluate(self, transfer: TransferLog) -> Optional[AlertPayload]:
        """Return an AlertPayload, or None when the transfer is suppressed"""
        if transfer.value == 0:
            log.debug("skip_zero_value", tx=transfer.transaction_hash)
            return None

        if transfer.from_address.lower() not in self.pool_addresses:
            log.info("skip_unknown_source", sender=transfer.from_address,
                    tx=transfer.transaction_hash)
            return None

        if not self.ledger.mark_alerted(transfer.transaction_hash):
            log.debug("skip_already_alerted", tx=transfer.transaction_hash)
            return None

        amount = raw_to_amount(transfer.value, self.decimals)
        price, market_cap, fallback = await self._valuation()
        usd_value = amount * price if price is not None else None

        return AlertPayload(
            transaction_hash=transfer.transaction_hash,
            recipient_address=transfer.to_address,
            amount=amount,
            usd_value=usd_value,
            market_cap_text=format_market_cap(market_cap, fallback=fallback),
            intensity_glyphs=intensity_glyphs(usd_value),
        )

    async def _valuation(self):
        """(price_usd, market_cap, is_fallback); price is None when unknown"""
        reading = await self.price_cache.get()
        if reading is not None and reading.snapshot.has_price:
            snap = reading.snapshot
            if snap.has_fdv:
                return snap.price_usd, snap.fdv, False
            degraded = reading.source is PriceSource.DEGRADED
            return snap.price_usd, snap.price_usd * self.total_supply, degraded

        last = self.price_cache.last_known()
        if last is not None and last.has_price:
            log.info("price_fallback_last_known", price_usd=last.price_usd)
            return last.price_usd, last.price_usd * self.total_supply, True

        log.warning("price_unavailable")
        return None, None, False
