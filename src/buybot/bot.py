"""
Main Bot Orchestrator - Ties everything together
"""

import asyncio
from typing import Optional

import structlog
from aiohttp import web

from .api.chain_client import ChainClient
from .api.dexscreener_client import DexScreenerClient
from .config import AppConfig
from .core.dedup_ledger import DedupLedger
from .core.poll_loop import PollLoop, PollState
from .core.price_cache import PriceCache
from .core.transfer_evaluator import TransferEvaluator
from .health import start_health_server
from .notifications.telegram_notifier import TelegramNotifier

log = structlog.get_logger()


class BuyBot:
    """
    Real-time buy alerts for one token
    """

    def __init__(self, config: AppConfig):
        self.config = config
        polling = config.polling

        # External collaborators
        self.chain = ChainClient(config.rpc_url)
        self.price_feed = DexScreenerClient(config.pair_url)
        self.telegram = TelegramNotifier(
            bot_token=config.telegram.bot_token,
            chat_id=config.telegram.chat_id,
            video_file_id=config.telegram.video_file_id,
            buy_url=config.telegram.buy_url,
            chart_url=config.telegram.chart_url,
            token_symbol=config.token.symbol,
            thread_id=config.telegram.thread_id,
            mc_icon=config.telegram.mc_icon,
            api_base=config.telegram.api_base,
        )

        # Core components
        self.ledger = DedupLedger(
            seen_capacity=polling.seen_capacity,
            alerted_capacity=polling.alerted_capacity,
            recent_window_sec=polling.recent_window_sec,
        )
        self.price_cache = PriceCache(self.price_feed, ttl_sec=config.price_ttl_sec)
        self.evaluator = TransferEvaluator(
            ledger=self.ledger,
            price_cache=self.price_cache,
            pool_addresses=config.pool_addresses,
            total_supply=config.token.total_supply,
            decimals=config.token.decimals,
        )

        self.poll_loop: Optional[PollLoop] = None
        self.health_runner: Optional[web.AppRunner] = None
        self.stop_event = asyncio.Event()

        log.info("buy_bot_initialized",
                token=config.token.symbol,
                pools=len(config.pool_addresses),
                interval_sec=polling.interval_sec)

    async def start(self):
        """Start health server, anchor the cursor at the chain head, then poll"""
        self.health_runner = await start_health_server(self.config.name, self.config.port)

        # no backfill: first scanned block is head + 1
        start_block = await self.chain.get_head_block()
        log.info("bot_started", token=self.config.token.symbol, start_block=start_block)

        self.poll_loop = PollLoop(
            chain=self.chain,
            evaluator=self.evaluator,
            notifier=self.telegram,
            state=PollState(cursor=start_block, ledger=self.ledger),
            token_address=self.config.token.address,
            max_block_span=self.config.polling.max_block_span,
        )
        await self.poll_loop.run_forever(self.config.polling.interval_sec, self.stop_event)

    async def stop(self):
        """Stop the bot"""
        self.stop_event.set()

        await self.price_feed.close()
        await self.telegram.close()
        if self.health_runner is not None:
            await self.health_runner.cleanup()
            self.health_runner = None

        log.info("bot_stopped", ledger=self.ledger.stats(),
                price_fetches=self.price_cache.fetches,
                price_failures=self.price_cache.failures)
