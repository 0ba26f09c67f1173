"""
Poll Loop - Scans new blocks for token transfers and drives the alert pipeline

One tick:
1. prune recent admissions
2. read chain head; nothing to do if head <= cursor
3. fetch Transfer logs for [cursor + 1, head] (capped at max_block_span)
4. per log: dedup -> evaluate -> notify; per-log errors never abort the batch
5. advance cursor to the scanned upper bound

A failed log query leaves the cursor where it was so the same range is
retried next tick. Ticks never run concurrently.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from ..errors import ChainQueryError, MalformedLogError
from .dedup_ledger import DedupLedger
from .transfer_evaluator import TransferEvaluator, TransferLog

log = structlog.get_logger()


@dataclass
class PollState:
    """Everything a tick mutates"""
    cursor: int
    ledger: DedupLedger


@dataclass
class TickResult:
    from_block: int
    to_block: int
    logs: int = 0
    evaluated: int = 0
    alerts: int = 0
    delivery_failures: int = 0
    errors: int = 0
    skipped_duplicates: int = 0

    @property
    def scanned(self) -> bool:
        return self.to_block >= self.from_block


class PollLoop:
    """
    Periodic block scanner for a single token
    """

    def __init__(self, chain, evaluator: TransferEvaluator, notifier,
                 state: PollState, token_address: str,
                 max_block_span: int = 2000,
                 clock: Callable[[], float] = time.monotonic):
        if max_block_span <= 0:
            raise ValueError("max_block_span must be >= 1")
        self.chain = chain
        self.evaluator = evaluator
        self.notifier = notifier
        self.state = state
        self.token_address = token_address
        self.max_block_span = max_block_span
        self.clock = clock

        self._busy = False
        self.ticks = 0
        self.failed_ticks = 0
        self.total_alerts = 0
        self.skipped_slots = 0

    @property
    def cursor(self) -> int:
        return self.state.cursor

    async def tick(self) -> TickResult:
        """
        Run one scan. Raises ChainQueryError (cursor untouched) if the
        head or log query fails.
        """
        ledger = self.state.ledger
        cursor = self.state.cursor
        pruned = ledger.prune_recent()
        if pruned:
            log.debug("recent_admissions_pruned", count=pruned)

        head = await self.chain.get_head_block()
        if head <= cursor:
            return TickResult(from_block=cursor + 1, to_block=cursor)

        from_block = cursor + 1
        to_block = min(head, cursor + self.max_block_span)
        if to_block < head:
            log.warning("scan_range_capped", head=head, to_block=to_block,
                       behind=head - to_block)

        log.info("scan_range", from_block=from_block, to_block=to_block)
        logs = await self.chain.get_transfer_logs(self.token_address, from_block, to_block)

        result = TickResult(from_block=from_block, to_block=to_block, logs=len(logs))
        if not logs:
            log.info("no_transfers", from_block=from_block, to_block=to_block)

        for raw in logs:
            await self._process_log(raw, result)

        self.state.cursor = to_block
        self.total_alerts += result.alerts
        return result

    async def _process_log(self, raw, result: TickResult):
        try:
            transfer = TransferLog.from_raw(raw)
        except MalformedLogError as e:
            result.errors += 1
            log.error("malformed_log_skipped", error=str(e))
            return

        ledger = self.state.ledger
        identity = transfer.identity
        if ledger.is_known(identity):
            ledger.record_duplicate()
            result.skipped_duplicates += 1
            return

        try:
            payload = await self.evaluator.evaluate(transfer)
            result.evaluated += 1
            if payload is not None:
                if await self.notifier.send_alert(payload):
                    result.alerts += 1
                else:
                    result.delivery_failures += 1
        except Exception as e:
            result.errors += 1
            log.error("transfer_processing_error",
                     tx=transfer.transaction_hash,
                     log_index=transfer.log_index,
                     error=str(e) or repr(e))
        finally:
            ledger.admit(identity)

    async def run_tick(self) -> Optional[TickResult]:
        """
        Serialised tick. Returns None if a tick is already running.
        """
        if self._busy:
            log.warning("tick_skipped_busy", cursor=self.state.cursor)
            return None
        self._busy = True
        try:
            result = await self.tick()
            self.ticks += 1
            return result
        finally:
            self._busy = False

    async def run_forever(self, interval_sec: float, stop_event: asyncio.Event):
        """
        Fixed-period driver. A tick that overruns its slot pushes the next
        tick to the following slot instead of stacking ticks.
        """
        log.info("poll_loop_started", cursor=self.state.cursor, interval_sec=interval_sec)
        next_run = self.clock()

        while not stop_event.is_set():
            try:
                await self.run_tick()
            except ChainQueryError as e:
                self.failed_ticks += 1
                log.warning("tick_failed", cursor=self.state.cursor, error=str(e))
            except Exception as e:
                self.failed_ticks += 1
                log.error("tick_error", cursor=self.state.cursor, error=str(e) or repr(e))

            next_run += interval_sec
            now = self.clock()
            if next_run <= now:
                missed = int((now - next_run) // interval_sec) + 1
                next_run += missed * interval_sec
                self.skipped_slots += missed
                log.warning("tick_overrun", skipped_slots=missed)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=next_run - now)
            except asyncio.TimeoutError:
                pass

        log.info("poll_loop_stopped", cursor=self.state.cursor, ticks=self.ticks,
                alerts=self.total_alerts)
