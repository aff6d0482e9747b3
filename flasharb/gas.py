# flasharb/gas.py

from dataclasses import dataclass
from decimal import Decimal

from flasharb.config import GAS_LIMIT_ARBITRAGE


@dataclass(frozen=True)
class GasCost:
    """Gas cost breakdown"""
    gas_units: int
    gas_price_gwei: Decimal
    gas_cost_eth: Decimal
    gas_cost_usd: Decimal
    eth_price_usd: Decimal


def estimate_gas_cost(
    *,
    gas_price_gwei: Decimal,
    eth_price_usd: Decimal,
    gas_units: int = GAS_LIMIT_ARBITRAGE,
) -> GasCost:

    gas_price_gwei = Decimal(gas_price_gwei)
    eth_price_usd = Decimal(eth_price_usd)

    gas_cost_eth = Decimal(gas_units) * gas_price_gwei / Decimal(10 ** 9)
    return GasCost(
        gas_units=gas_units,
        gas_price_gwei=gas_price_gwei,
        gas_cost_eth=gas_cost_eth,
        gas_cost_usd=gas_cost_eth * eth_price_usd,
        eth_price_usd=eth_price_usd,
    )
