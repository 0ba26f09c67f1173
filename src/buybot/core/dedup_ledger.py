"""
Dedup Ledger - In-memory duplicate suppression for transfer logs

Three layers:
- recent admissions: identity -> admit time, short window (re-fetch across scans)
- seen set: FIFO-bounded set of every identity admitted
- alerted txs: FIFO-bounded set of tx hashes that already produced an alert
"""

import time
from collections import OrderedDict
from typing import Callable, Dict, Hashable, Iterator, Optional, Tuple

import structlog

log = structlog.get_logger()

EventIdentity = Tuple[str, int]


class BoundedFifoSet:
    """
    Ordered set with a hard capacity.
    Inserting past capacity evicts the oldest key (insertion order).
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._keys: "OrderedDict[Hashable, None]" = OrderedDict()
        self.evictions = 0

    def add(self, key: Hashable) -> bool:
        """Insert key. Returns False if it was already present."""
        if key in self._keys:
            return False
        self._keys[key] = None
        while len(self._keys) > self.capacity:
            self._keys.popitem(last=False)
            self.evictions += 1
        return True

    def __contains__(self, key: Hashable) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._keys)


def event_identity(tx_hash: str, log_index: int) -> EventIdentity:
    return (tx_hash.lower(), int(log_index))


class DedupLedger:
    """
    Tracks processed log identities and alerted transactions.
    Single-writer: only the poll loop touches it, one tick at a time.
    """

    def __init__(self, seen_capacity: int = 300, alerted_capacity: int = 500,
                 recent_window_sec: float = 8.0,
                 clock: Callable[[], float] = time.monotonic):
        self.recent_window_sec = recent_window_sec
        self.clock = clock

        self._seen = BoundedFifoSet(seen_capacity)
        self._alerted = BoundedFifoSet(alerted_capacity)
        self._recent: Dict[EventIdentity, float] = {}

        self.duplicate_hits = 0
        self.alert_duplicate_hits = 0

    def is_known(self, identity: EventIdentity) -> bool:
        return identity in self._seen or identity in self._recent

    def record_duplicate(self):
        self.duplicate_hits += 1

    def admit(self, identity: EventIdentity) -> bool:
        """
        Record an identity as processed.
        True the first time; False while it is still held by either set.
        """
        if identity in self._seen or identity in self._recent:
            return False
        self._seen.add(identity)
        self._recent[identity] = self.clock()
        return True

    def mark_alerted(self, tx_hash: str) -> bool:
        """True the first time a tx hash is marked, False after"""
        added = self._alerted.add(tx_hash.lower())
        if not added:
            self.alert_duplicate_hits += 1
        return added

    def prune_recent(self, now: Optional[float] = None) -> int:
        """Drop recent admissions older than the window"""
        now = self.clock() if now is None else now
        expired = [k for k, ts in self._recent.items()
                   if now - ts > self.recent_window_sec]
        for k in expired:
            del self._recent[k]
        return len(expired)

    def stats(self) -> Dict:
        return {
            'seen': len(self._seen),
            'recent': len(self._recent),
            'alerted_txs': len(self._alerted),
            'seen_evictions': self._seen.evictions,
            'alerted_evictions': self._alerted.evictions,
            'duplicate_hits': self.duplicate_hits,
            'alert_duplicate_hits': self.alert_duplicate_hits,
        }
