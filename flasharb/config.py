# flasharb/config.py
"""
Flashloan Arbitrage Configuration (Base mainnet)
Chain constants live at module level; runtime thresholds are loaded once into
an immutable BotConfig that is handed to every component.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from web3 import Web3

from flasharb.exceptions import ConfigError

# -----------------------------
# Paths
# -----------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / "config" / ".env"

# -----------------------------
# Chain Configuration
# -----------------------------
CHAIN_ID = 8453  # Base
CHAIN_NAME = "base"

DEFAULT_RPC_URL = "https://mainnet.base.org"
DEFAULT_ANVIL_RPC_URL = "http://127.0.0.1:8545"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# -----------------------------
# Protocol Addresses
# -----------------------------
AAVE_POOL_PROVIDER = Web3.to_checksum_address("0xe20fCBdBfFC4Dd138cE8b2E6FBb6CB49777ad64D")
AAVE_FLASH_FEE_BPS = 5  # 0.05%

UNISWAP_V3_ROUTER = Web3.to_checksum_address("0x2626664c2603336E57B271c5C0b26F421741e481")
UNISWAP_V3_FACTORY = Web3.to_checksum_address("0x33128a8fC17869897dcE68Ed026d694621f6FDfD")
SUSHI_V3_ROUTER = Web3.to_checksum_address("0xFB7eF66a7e61224DD6FcD0D7d9C3be5C8B049b9f")
SUSHI_V3_FACTORY = Web3.to_checksum_address("0xc35DADB65012eC5796536bD9864eD8773aBc74C4")

# -----------------------------
# Uniswap V3 Fee Tiers (hundredths of a bps)
# -----------------------------
FEE_TIERS = (
    100,    # 0.01%
    500,    # 0.05%
    3000,   # 0.30%
    10000,  # 1.00%
)

# -----------------------------
# Safety Defaults
# -----------------------------
MIN_PROFIT_USD = Decimal("0.50")
MIN_PROFIT_BPS = 10               # 0.10% of borrowed
MAX_SLIPPAGE_BPS = 50             # 0.50%
MAX_FLASHLOAN_PERCENT = 10        # 10% of binding pool liquidity
MIN_PROFIT_SAFETY_FRACTION = Decimal("0.5")

# Flashloan + two swaps
GAS_LIMIT_ARBITRAGE = 350_000
DEFAULT_GAS_PRICE_GWEI = Decimal("0.001")
DEFAULT_ETH_PRICE_USD = Decimal("3000")

POLL_INTERVAL_SECONDS = 0.5

SIZING_STRATEGIES = ("fraction", "search")


# =============================================================================
# RUNTIME CONFIG
# =============================================================================

@dataclass(frozen=True)
class BotConfig:
    """Immutable runtime configuration shared by every pipeline component"""
    rpc_url: str = DEFAULT_RPC_URL
    anvil_rpc_url: str = DEFAULT_ANVIL_RPC_URL
    use_anvil: bool = False
    vault_address: Optional[str] = None
    executor_address: Optional[str] = None

    # Viability thresholds
    min_profit_usd: Decimal = MIN_PROFIT_USD
    min_profit_bps: int = MIN_PROFIT_BPS
    max_slippage_bps: int = MAX_SLIPPAGE_BPS

    # Sizing
    max_flashloan_percent: int = MAX_FLASHLOAN_PERCENT
    sizing_strategy: str = "fraction"
    sizing_search_steps: int = 10

    # Cost model
    flash_fee_bps: int = AAVE_FLASH_FEE_BPS
    gas_units: int = GAS_LIMIT_ARBITRAGE
    gas_price_gwei: Decimal = DEFAULT_GAS_PRICE_GWEI
    eth_price_usd: Decimal = DEFAULT_ETH_PRICE_USD

    # On-chain floor = safety_fraction * estimated net profit
    safety_fraction: Decimal = MIN_PROFIT_SAFETY_FRACTION

    poll_interval_seconds: float = POLL_INTERVAL_SECONDS
    dry_run: bool = True

    def __post_init__(self):
        if self.max_slippage_bps < 0:
            raise ConfigError("max_slippage_bps must be >= 0", {"value": self.max_slippage_bps})
        if not 0 < self.max_flashloan_percent <= 100:
            raise ConfigError(
                "max_flashloan_percent must be in (0, 100]",
                {"value": self.max_flashloan_percent},
            )
        if not Decimal(0) <= self.safety_fraction <= Decimal(1):
            raise ConfigError("safety_fraction must be in [0, 1]", {"value": str(self.safety_fraction)})
        if self.sizing_strategy not in SIZING_STRATEGIES:
            raise ConfigError(
                f"Unknown sizing strategy: {self.sizing_strategy}",
                {"allowed": list(SIZING_STRATEGIES)},
            )
        if self.gas_units <= 0:
            raise ConfigError("gas_units must be positive", {"value": self.gas_units})
        if self.poll_interval_seconds < 0:
            raise ConfigError("poll_interval_seconds must be >= 0")

    @property
    def active_rpc_url(self) -> str:
        return self.anvil_rpc_url if self.use_anvil else self.rpc_url


# =============================================================================
# ENV LOADING
# =============================================================================

def _get_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise ConfigError(f"{name} is not a number: {raw!r}")


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} is not an integer: {raw!r}")


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} is not a boolean: {raw!r}")


def _get_address(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    if not Web3.is_address(raw.strip()):
        raise ConfigError(f"{name} is not a valid address: {raw!r}")
    return Web3.to_checksum_address(raw.strip())


def load_config(
    env_path: Optional[Union[str, Path]] = None,
    use_anvil: bool = False,
    dry_run: Optional[bool] = None,
) -> BotConfig:
    """
    Load BotConfig from the environment (and config/.env when present)
    Values already present in the process environment win over the file.
    """
    path = Path(env_path) if env_path is not None else ENV_PATH
    if path.exists():
        load_dotenv(path)
    elif env_path is not None:
        raise ConfigError(f".env file not found at {path}")

    if dry_run is None:
        dry_run = _get_bool("DRY_RUN", True)

    return BotConfig(
        rpc_url=os.getenv("BASE_RPC_URL") or DEFAULT_RPC_URL,
        anvil_rpc_url=os.getenv("ANVIL_RPC_URL") or DEFAULT_ANVIL_RPC_URL,
        use_anvil=use_anvil,
        vault_address=_get_address("PROFIT_VAULT_ADDRESS"),
        executor_address=_get_address("EXECUTOR_ADDRESS"),
        min_profit_usd=_get_decimal("MIN_PROFIT_USD", MIN_PROFIT_USD),
        min_profit_bps=_get_int("MIN_PROFIT_BPS", MIN_PROFIT_BPS),
        max_slippage_bps=_get_int("MAX_SLIPPAGE_BPS", MAX_SLIPPAGE_BPS),
        max_flashloan_percent=_get_int("MAX_FLASHLOAN_PERCENT", MAX_FLASHLOAN_PERCENT),
        sizing_strategy=(os.getenv("SIZING_STRATEGY") or "fraction").strip().lower(),
        gas_price_gwei=_get_decimal("GAS_PRICE_GWEI", DEFAULT_GAS_PRICE_GWEI),
        eth_price_usd=_get_decimal("ETH_PRICE_USD", DEFAULT_ETH_PRICE_USD),
        safety_fraction=_get_decimal("MIN_PROFIT_SAFETY_FRACTION", MIN_PROFIT_SAFETY_FRACTION),
        poll_interval_seconds=float(_get_decimal("POLL_INTERVAL_SEC", Decimal(str(POLL_INTERVAL_SECONDS)))),
        dry_run=dry_run,
    )
