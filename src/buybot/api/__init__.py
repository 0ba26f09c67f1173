"""External data sources"""

from .chain_client import ChainClient, TRANSFER_TOPIC0
from .dexscreener_client import DexScreenerClient

__all__ = ['ChainClient', 'DexScreenerClient', 'TRANSFER_TOPIC0']
