"""Token buy alert bot"""

from .bot import BuyBot
from .config import AppConfig, load_config

__all__ = ['BuyBot', 'AppConfig', 'load_config']
