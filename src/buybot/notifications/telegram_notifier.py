"""
Telegram Notifier - Posts buy alerts (video + buttons) to a chat topic
"""

import asyncio
import json
from typing import Dict, Optional

import aiohttp
import structlog

from ..core.transfer_evaluator import AlertPayload

log = structlog.get_logger()


def format_amount(amount: float) -> str:
    text = f"{amount:,.4f}".rstrip("0").rstrip(".")
    return text or "0"


def render_caption(payload: AlertPayload, token_symbol: str, mc_icon: str = "🏦") -> str:
    usd = payload.usd_value if payload.usd_value is not None else 0.0
    return (
        f"🟢 {token_symbol} BUY\n"
        f"👤 {payload.recipient_address}\n"
        f"🪙 {format_amount(payload.amount)} {token_symbol}\n"
        f"💵 ${usd:.2f}\n"
        f"{mc_icon} MC: {payload.market_cap_text}\n"
        f"{payload.intensity_glyphs}"
    )


def build_inline_keyboard(buy_url: str, chart_url: str) -> Dict:
    return {
        'inline_keyboard': [
            [{'text': "💰 BUY", 'url': buy_url}],
            [{'text': "📈 Chart", 'url': chart_url}],
        ]
    }


class TelegramNotifier:
    """
    Send alerts via the Telegram Bot API.
    Failures are logged and reported as False, never retried.
    """

    def __init__(self, bot_token: str, chat_id: str, video_file_id: str,
                 buy_url: str, chart_url: str, token_symbol: str,
                 thread_id: Optional[int] = None, mc_icon: str = "🏦",
                 api_base: str = "https://api.telegram.org",
                 timeout_sec: float = 15):
        self.chat_id = chat_id
        self.video_file_id = video_file_id
        self.thread_id = thread_id
        self.token_symbol = token_symbol
        self.mc_icon = mc_icon
        self.reply_markup = build_inline_keyboard(buy_url, chart_url)
        self.api_url = f"{api_base.rstrip('/')}/bot{bot_token}"
        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self.session: Optional[aiohttp.ClientSession] = None

        log.info("telegram_notifier_initialized",
                chat_id=str(chat_id)[:10] + "...",
                thread_id=thread_id)

    async def open(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def _post(self, method: str, payload: Dict) -> bool:
        await self.open()
        try:
            async with self.session.post(f"{self.api_url}/{method}", json=payload) as response:
                body = await response.json(content_type=None)
                if response.status == 200 and isinstance(body, dict) and body.get('ok'):
                    return True
                description = body.get('description') if isinstance(body, dict) else None
                log.error("telegram_failed", method=method, status=response.status,
                         description=description)
                return False
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            log.error("telegram_error", method=method, error=str(e) or repr(e))
            return False

    async def send_alert(self, payload: AlertPayload) -> bool:
        """
        Send one buy alert as a video with caption and buttons
        """
        request = {
            'chat_id': self.chat_id,
            'video': self.video_file_id,
            'caption': render_caption(payload, self.token_symbol, self.mc_icon),
            'reply_markup': json.dumps(self.reply_markup),
        }
        if self.thread_id is not None:
            request['message_thread_id'] = self.thread_id

        sent = await self._post("sendVideo", request)
        if sent:
            log.info("alert_sent",
                    tx=payload.transaction_hash,
                    amount=payload.amount,
                    usd=round(payload.usd_value or 0.0, 2),
                    glyphs=len(payload.intensity_glyphs))
        return sent
