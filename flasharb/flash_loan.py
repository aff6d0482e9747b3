# flasharb/flash_loan.py
"""
Aave V3 Flash Loan Integration (Base)
Resolves the lending pool from the addresses provider and prices the premium
"""

from web3 import Web3
from decimal import Decimal
from typing import Optional, Tuple
import logging

from flasharb.config import AAVE_POOL_PROVIDER, AAVE_FLASH_FEE_BPS
from flasharb.pairs import get_decimals

logger = logging.getLogger(__name__)

# =============================================================================
# AAVE V3 ABIs
# =============================================================================

POOL_ADDRESSES_PROVIDER_ABI = [
    {
        "name": "getPool",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]

AAVE_POOL_ABI = [
    # Flash loan simple (single asset)
    {
        "name": "flashLoanSimple",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "receiverAddress", "type": "address"},
            {"name": "asset", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "params", "type": "bytes"},
            {"name": "referralCode", "type": "uint16"},
        ],
        "outputs": [],
    },
    # Get flash loan premium
    {
        "name": "FLASHLOAN_PREMIUM_TOTAL",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint128"}],
    },
]


# =============================================================================
# FLASH LOAN MANAGER
# =============================================================================

class FlashLoanManager:
    """
    Read-only view of the Aave V3 flashloan provider
    """

    def __init__(
        self,
        w3: Web3,
        provider_address: str = AAVE_POOL_PROVIDER,
        default_fee_bps: int = AAVE_FLASH_FEE_BPS,
    ):
        self.w3 = w3
        self.provider = w3.eth.contract(
            address=Web3.to_checksum_address(provider_address),
            abi=POOL_ADDRESSES_PROVIDER_ABI,
        )
        self.default_fee_bps = default_fee_bps
        self._pool_address: Optional[str] = None
        self._fee_cache: Optional[int] = None

    def get_pool_address(self) -> str:
        """Lending pool address (cached after first resolution)"""
        if self._pool_address is None:
            self._pool_address = Web3.to_checksum_address(
                self.provider.functions.getPool().call()
            )
        return self._pool_address

    def get_flash_loan_fee_bps(self) -> int:
        """Get the current flash loan fee in basis points"""
        if self._fee_cache is None:
            try:
                pool = self.w3.eth.contract(address=self.get_pool_address(), abi=AAVE_POOL_ABI)
                self._fee_cache = int(pool.functions.FLASHLOAN_PREMIUM_TOTAL().call())
            except Exception as e:
                logger.warning(f"FLASHLOAN_PREMIUM_TOTAL unavailable ({e}), using {self.default_fee_bps} bps")
                self._fee_cache = self.default_fee_bps
        return self._fee_cache

    def calculate_fee(self, amount: int, token: str) -> Tuple[int, Decimal]:
        """Premium in smallest units and human units"""
        fee_amount = flash_premium(amount, self.get_flash_loan_fee_bps())
        fee_human = Decimal(fee_amount) / Decimal(10 ** get_decimals(token))
        return fee_amount, fee_human


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def flash_premium(amount: int, fee_bps: int) -> int:
    return (amount * fee_bps) // 10000


def calculate_total_repayment(amount: int, fee_bps: int) -> int:
    """Calculate total amount to repay (principal + fee)"""
    return amount + flash_premium(amount, fee_bps)
