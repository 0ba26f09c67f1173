"""
Chain Client - Block height and Transfer log queries over JSON-RPC (web3)
"""

import asyncio
from typing import Any, List

import structlog
from web3 import Web3

from ..errors import ChainQueryError

log = structlog.get_logger()

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC0 = (
    "0xddf252ad1be2c89b69c2b068fc378daa"
    "952ba7f163c4a11628f55a4df523b3ef"
)


class ChainClient:
    """
    Thin async wrapper over a blocking web3 HTTP provider.
    Calls run in a worker thread; every failure surfaces as ChainQueryError.
    """

    def __init__(self, rpc_url: str, timeout_sec: float = 15):
        self.rpc_url = rpc_url
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': timeout_sec}))

        log.info("chain_client_initialized", rpc=rpc_url)

    async def get_head_block(self) -> int:
        try:
            return int(await asyncio.to_thread(self.w3.eth.get_block_number))
        except Exception as e:
            raise ChainQueryError(f"eth_blockNumber failed: {e!r}") from e

    async def get_transfer_logs(self, token_address: str, from_block: int,
                                to_block: int) -> List[Any]:
        """
        All Transfer logs of the token in [from_block, to_block], inclusive,
        in the order the node returns them
        """
        params = {
            'address': Web3.to_checksum_address(token_address),
            'fromBlock': from_block,
            'toBlock': to_block,
            'topics': [TRANSFER_TOPIC0],
        }
        try:
            logs = await asyncio.to_thread(self.w3.eth.get_logs, params)
        except Exception as e:
            raise ChainQueryError(
                f"eth_getLogs {from_block}-{to_block} failed: {e!r}") from e
        return list(logs or [])
