"""
Error types shared across the bot
"""


class BuyBotError(Exception):
    """Base class for all bot errors"""


class ConfigError(BuyBotError):
    """Missing or invalid startup configuration (fatal)"""


class ChainQueryError(BuyBotError):
    """RPC node unreachable or returned something unusable"""


class PriceFeedError(BuyBotError):
    """Price feed request failed, was rate limited, or was not JSON"""


class MalformedLogError(BuyBotError):
    """A transfer log did not have the expected shape"""
