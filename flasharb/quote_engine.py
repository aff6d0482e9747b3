# flasharb/quote_engine.py
"""
Multi-Venue Uniswap V3 Pool Quote Engine
Resolves pools per venue and fee tier, reads slot0/liquidity and normalizes the
spot price to human units (token0 priced in token1)
"""

from web3 import Web3
from decimal import Decimal, getcontext
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
import time

from flasharb.config import FEE_TIERS, ZERO_ADDRESS
from flasharb.exceptions import PoolReadError
from flasharb.pairs import VENUES, Venue, get_decimals, get_symbol
from flasharb.uniswap_v3 import FACTORY_ABI, POOL_ABI, sqrt_price_x96_to_price

getcontext().prec = 50
logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class PoolQuote:
    """One venue/pool/fee-tier observation"""
    venue: str
    pool_address: str
    fee_tier: int  # hundredths of a bps (500 = 0.05%)
    token0: str
    token1: str
    price: Decimal  # token0 priced in token1
    liquidity: int
    tick: int
    timestamp: float

    @property
    def fee_percent(self) -> Decimal:
        return Decimal(self.fee_tier) / Decimal(10000)

    def describe(self) -> str:
        return (
            f"{self.venue} ({self.fee_percent:.2f}%): "
            f"{self.price:.8f} {get_symbol(self.token1)}/{get_symbol(self.token0)} "
            f"| Liq: {self.liquidity}"
        )


# =============================================================================
# POOL STATE READER
# =============================================================================

class PoolStateReader:
    """
    Reads raw pool state for one pool address
    """

    def __init__(self, w3: Web3):
        self.w3 = w3

    def read(self, venue: str, pool_address: str) -> PoolQuote:
        """Read slot0, liquidity, token ordering and fee from a pool"""
        pool_address = Web3.to_checksum_address(pool_address)
        pool = self.w3.eth.contract(address=pool_address, abi=POOL_ABI)

        slot0 = pool.functions.slot0().call()
        liquidity = pool.functions.liquidity().call()
        token0 = pool.functions.token0().call()
        token1 = pool.functions.token1().call()
        fee = pool.functions.fee().call()

        sqrt_price_x96 = int(slot0[0])
        if sqrt_price_x96 <= 0:
            raise PoolReadError(
                "Pool has no initialized price",
                venue=venue,
                pool_address=pool_address,
            )

        dec0 = get_decimals(token0)
        dec1 = get_decimals(token1)

        return PoolQuote(
            venue=venue,
            pool_address=pool_address,
            fee_tier=int(fee),
            token0=Web3.to_checksum_address(token0),
            token1=Web3.to_checksum_address(token1),
            price=sqrt_price_x96_to_price(sqrt_price_x96, dec0, dec1),
            liquidity=int(liquidity),
            tick=int(slot0[1]),
            timestamp=time.time(),
        )


# =============================================================================
# PRICE AGGREGATOR
# =============================================================================

class PriceAggregator:
    """
    Fans PoolStateReader out across venues and fee tiers for a token pair
    """

    def __init__(
        self,
        w3: Web3,
        venues: Sequence[Venue] = VENUES,
        fee_tiers: Sequence[int] = FEE_TIERS,
        max_workers: Optional[int] = None,
    ):
        self.w3 = w3
        self.venues = tuple(venues)
        self.fee_tiers = tuple(fee_tiers)
        self.reader = PoolStateReader(w3)
        self.max_workers = max_workers or max(1, len(self.venues) * len(self.fee_tiers))
        self._factory_cache: Dict[str, Any] = {}
        # (factory, token_a, token_b, fee) -> pool; only non-zero addresses are stored
        self._pool_cache: Dict[Tuple[str, str, str, int], str] = {}

    def _get_factory(self, venue: Venue):
        """Get cached factory contract"""
        if venue.factory not in self._factory_cache:
            self._factory_cache[venue.factory] = self.w3.eth.contract(
                address=venue.factory,
                abi=FACTORY_ABI,
            )
        return self._factory_cache[venue.factory]

    def get_pool_address(self, venue: Venue, token_a: str, token_b: str, fee: int) -> Optional[str]:
        """Resolve pool address from the venue factory; None when the pool does not exist"""
        token_a = Web3.to_checksum_address(token_a)
        token_b = Web3.to_checksum_address(token_b)
        cache_key = (venue.factory, token_a, token_b, fee)

        if cache_key in self._pool_cache:
            return self._pool_cache[cache_key]

        factory = self._get_factory(venue)
        pool = factory.functions.getPool(token_a, token_b, fee).call()

        if not pool or pool.lower() == ZERO_ADDRESS:
            return None

        pool = Web3.to_checksum_address(pool)
        self._pool_cache[cache_key] = pool
        return pool

    def _read_pool(self, venue: Venue, token_a: str, token_b: str, fee: int) -> Optional[PoolQuote]:
        pool_address = self.get_pool_address(venue, token_a, token_b, fee)
        if pool_address is None:
            return None
        return self.reader.read(venue.name, pool_address)

    def get_quotes(self, token_a: str, token_b: str) -> List[PoolQuote]:
        """
        Quotes for every venue x fee tier where a pool exists
        A failing pool is logged and omitted; ordering follows venues then fee tiers.
        """
        jobs = [(venue, fee) for venue in self.venues for fee in self.fee_tiers]
        results: List[Optional[PoolQuote]] = [None] * len(jobs)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(self._read_pool, venue, token_a, token_b, fee): i
                for i, (venue, fee) in enumerate(jobs)
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                venue, fee = jobs[index]
                try:
                    results[index] = future.result()
                except Exception as e:
                    logger.warning(
                        f"Skipping {venue.name} {fee} for "
                        f"{get_symbol(token_a)}/{get_symbol(token_b)}: {e}"
                    )

        quotes = [q for q in results if q is not None]
        logger.debug(
            f"{get_symbol(token_a)}/{get_symbol(token_b)}: "
            f"{len(quotes)} of {len(jobs)} pools quoted"
        )
        return quotes

    def cached_pool_count(self) -> int:
        return len(self._pool_cache)
