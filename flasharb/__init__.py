# flasharb/__init__.py
"""
Base Flashloan Arbitrage Bot
Pairwise two-venue arbitrage funded by an Aave V3 flashloan

Modules:
- config: Chain constants and runtime configuration
- pairs: Token and venue registry
- quote_engine: Pool state reads and price aggregation
- arbitrage_scanner: Pairwise opportunity detection
- profit_calculator: Trade sizing and cost model
- calldata: Executor parameters and ABI encoding
- flash_loan: Aave V3 pool / premium lookup
- onchain: Executable model of the executor contract
- main: Entry point
"""

__version__ = "1.0.0"

from flasharb.config import BotConfig, load_config, CHAIN_ID
from flasharb.pairs import WETH, USDC, USDT, DAI, MONITORED_PAIRS, VENUES

__all__ = [
    "BotConfig",
    "load_config",
    "CHAIN_ID",
    "WETH",
    "USDC",
    "USDT",
    "DAI",
    "MONITORED_PAIRS",
    "VENUES",
]
