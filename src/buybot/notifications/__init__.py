"""Notifications module"""

from .telegram_notifier import TelegramNotifier, render_caption, build_inline_keyboard

__all__ = ['TelegramNotifier', 'render_caption', 'build_inline_keyboard']
