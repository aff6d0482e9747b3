# flasharb/rpc_health.py
"""
RPC Health Monitoring
Checks RPC connection, latency and chain id before each cycle
"""

import time
from typing import Optional, Tuple

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from flasharb.config import CHAIN_ID
from flasharb.exceptions import RpcUnavailableError

MAX_RPC_LATENCY = 2.0  # seconds


def make_web3(rpc_url: str) -> Web3:
    """HTTP Web3 client with the extraData middleware used for L2 blocks"""
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


class RPCHealth:
    """
    Monitor RPC health for one endpoint
    """

    def __init__(
        self,
        w3: Web3,
        rpc_url: str = "",
        expected_chain_id: Optional[int] = CHAIN_ID,
        max_latency: float = MAX_RPC_LATENCY,
    ):
        self.w3 = w3
        self.rpc_url = rpc_url
        self.expected_chain_id = expected_chain_id
        self.max_latency = max_latency
        self._chain_checked = False

    def check(self) -> Tuple[bool, str]:
        """
        Check RPC health
        Returns (is_healthy, status_message)
        """
        try:
            start = time.time()
            latest = self.w3.eth.block_number
            latency = time.time() - start

            if not self._chain_checked and self.expected_chain_id is not None:
                chain_id = self.w3.eth.chain_id
                if chain_id != self.expected_chain_id:
                    return False, f"Wrong chain id {chain_id} (expected {self.expected_chain_id})"
                self._chain_checked = True

            if latency > self.max_latency:
                return False, f"High latency {latency:.2f}s"

            return True, f"OK (latency={latency:.2f}s, block={latest})"

        except Exception as e:
            return False, str(e)

    def require_healthy(self) -> str:
        """Raise RpcUnavailableError unless the endpoint is usable"""
        ok, status = self.check()
        if not ok:
            raise RpcUnavailableError(f"RPC unhealthy: {status}", rpc_url=self.rpc_url)
        return status

    def get_gas_price_gwei(self) -> float:
        """Get current gas price in gwei"""
        return self.w3.eth.gas_price / 10**9
