"""
Tests for the token registry helpers
"""

from decimal import Decimal

from flasharb.onchain import make_address
from flasharb.pairs import DAI, USDC, WETH, TOKENS, get_decimals, get_reference_price_usd, get_symbol


def test_known_tokens():
    assert get_decimals(USDC) == 6
    assert get_decimals(DAI) == 18
    assert get_symbol(USDC.lower()) == "USDC"


def test_unknown_token_defaults():
    unknown = make_address("token:unknown")
    assert get_decimals(unknown) == 18
    assert get_symbol(unknown) == "UNKNOWN"
    assert get_reference_price_usd(unknown) == 0


def test_weth_follows_configured_eth_price():
    assert get_reference_price_usd(WETH) == TOKENS[WETH].reference_price_usd
    assert get_reference_price_usd(WETH, Decimal("2500")) == Decimal("2500")
    assert get_reference_price_usd(USDC, Decimal("2500")) == Decimal("1")
