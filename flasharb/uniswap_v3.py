# flasharb/uniswap_v3.py
from decimal import Decimal, getcontext, localcontext

getcontext().prec = 80

FACTORY_ABI = [
    {
        "name": "getPool",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "fee", "type": "uint24"},
        ],
        "outputs": [{"name": "pool", "type": "address"}],
    },
]

POOL_ABI = [
    {
        "name": "slot0",
        "outputs": [
            {"name": "sqrtPriceX96", "type": "uint160"},
            {"name": "tick", "type": "int24"},
            {"name": "observationIndex", "type": "uint16"},
            {"name": "observationCardinality", "type": "uint16"},
            {"name": "observationCardinalityNext", "type": "uint16"},
            {"name": "feeProtocol", "type": "uint8"},
            {"name": "unlocked", "type": "bool"},
        ],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "name": "liquidity",
        "outputs": [{"type": "uint128"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "name": "token0",
        "outputs": [{"type": "address"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "name": "token1",
        "outputs": [{"type": "address"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "name": "fee",
        "outputs": [{"type": "uint24"}],
        "inputs": [],
        "stateMutability": "view",
        "type": "function",
    },
]

Q96 = Decimal(2) ** 96
Q192 = Decimal(2) ** 192

# Worker threads start from the default decimal context
PRICE_PRECISION = 80


def sqrt_price_x96_to_price_decimal(sqrt_price_x96: int) -> Decimal:
    """Raw token1-per-token0 ratio in smallest units"""
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        sp = Decimal(sqrt_price_x96)
        return (sp * sp) / Q192


def sqrt_price_x96_to_price(sqrt_price_x96: int, decimals0: int, decimals1: int) -> Decimal:
    """Human price of token0 denominated in token1"""
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        return sqrt_price_x96_to_price_decimal(sqrt_price_x96) * (Decimal(10) ** (decimals0 - decimals1))


def price_to_sqrt_price_x96(price: Decimal, decimals0: int, decimals1: int) -> int:
    """Inverse of sqrt_price_x96_to_price, truncated to an integer"""
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        raw = Decimal(price) / (Decimal(10) ** (decimals0 - decimals1))
        return int(raw.sqrt() * Q96)
