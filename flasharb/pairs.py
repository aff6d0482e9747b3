# flasharb/pairs.py
"""
Token & Venue Registry for Base
Tokens, reference prices, DEX venues and the monitored pair list
"""

from web3 import Web3
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from flasharb.config import (
    UNISWAP_V3_FACTORY, UNISWAP_V3_ROUTER,
    SUSHI_V3_FACTORY, SUSHI_V3_ROUTER,
)

# =============================================================================
# TOKEN ADDRESSES (Base Mainnet - All Checksummed)
# =============================================================================

WETH = Web3.to_checksum_address("0x4200000000000000000000000000000000000006")
USDC = Web3.to_checksum_address("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913")
USDT = Web3.to_checksum_address("0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2")
DAI = Web3.to_checksum_address("0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb")

# =============================================================================
# TOKEN METADATA
# =============================================================================

@dataclass(frozen=True)
class TokenInfo:
    address: str
    symbol: str
    decimals: int
    reference_price_usd: Decimal  # settlement conversion, not an oracle


TOKENS: Dict[str, TokenInfo] = {
    WETH: TokenInfo(WETH, "WETH", 18, Decimal("3000")),
    USDC: TokenInfo(USDC, "USDC", 6, Decimal("1")),
    USDT: TokenInfo(USDT, "USDT", 6, Decimal("1")),
    DAI: TokenInfo(DAI, "DAI", 18, Decimal("1")),
}

# =============================================================================
# DEX VENUES (Uniswap V3 style: factory.getPool + exactInputSingle router)
# =============================================================================

@dataclass(frozen=True)
class Venue:
    name: str
    factory: str
    router: str


UNISWAP = Venue("Uniswap", UNISWAP_V3_FACTORY, UNISWAP_V3_ROUTER)
SUSHISWAP = Venue("SushiSwap", SUSHI_V3_FACTORY, SUSHI_V3_ROUTER)

VENUES: Tuple[Venue, ...] = (UNISWAP, SUSHISWAP)

# =============================================================================
# MONITORED PAIRS
# =============================================================================

@dataclass(frozen=True)
class TokenPair:
    token_a: str
    token_b: str
    name: str


MONITORED_PAIRS: List[TokenPair] = [
    TokenPair(WETH, USDC, "WETH/USDC"),
    TokenPair(WETH, USDT, "WETH/USDT"),
    TokenPair(USDC, USDT, "USDC/USDT"),
]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_token_info(address: str) -> Optional[TokenInfo]:
    """Get token info by address (checksummed or not)"""
    return TOKENS.get(Web3.to_checksum_address(address))


def get_decimals(address: str) -> int:
    """Get token decimals, 18 when unknown"""
    info = get_token_info(address)
    return info.decimals if info else 18


def get_symbol(address: str) -> str:
    info = get_token_info(address)
    return info.symbol if info else "UNKNOWN"


def get_reference_price_usd(address: str, eth_price_usd: Optional[Decimal] = None) -> Decimal:
    """
    USD conversion price for a token
    WETH follows the configured ETH price when one is given; unknown tokens are 0.
    """
    addr = Web3.to_checksum_address(address)
    if addr == WETH and eth_price_usd is not None:
        return Decimal(eth_price_usd)
    info = TOKENS.get(addr)
    return info.reference_price_usd if info else Decimal(0)
