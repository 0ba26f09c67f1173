"""Polling, dedup, pricing and evaluation"""

from .dedup_ledger import BoundedFifoSet, DedupLedger
from .price_cache import PriceCache, PriceReading, PriceSnapshot, PriceSource
from .transfer_evaluator import AlertPayload, TransferEvaluator, TransferLog
from .poll_loop import PollLoop, PollState, TickResult

__all__ = [
    'BoundedFifoSet', 'DedupLedger',
    'PriceCache', 'PriceReading', 'PriceSnapshot', 'PriceSource',
    'AlertPayload', 'TransferEvaluator', 'TransferLog',
    'PollLoop', 'PollState', 'TickResult',
]
