"""
Main entry point for the buy alert bot
"""

import asyncio
import contextlib
import logging
import os
import signal
import sys

import structlog
from dotenv import load_dotenv

# Load environment variables FIRST
load_dotenv()

from src.buybot import BuyBot, load_config
from src.buybot.errors import ConfigError


def configure_logging(level_name: str):
    level = getattr(logging, level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


log = structlog.get_logger()


async def main():
    """Main function"""
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    try:
        config = load_config()
    except ConfigError as e:
        log.error("config_invalid", error=str(e))
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    bot = BuyBot(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, bot.stop_event.set)

    try:
        await bot.start()
    except Exception as e:
        log.error("bot_error", error=str(e) or repr(e))
        await bot.stop()
        sys.exit(1)

    await bot.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
