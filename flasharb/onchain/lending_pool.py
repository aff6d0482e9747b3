# flasharb/onchain/lending_pool.py
"""
Aave V3 style lending pool with flashLoanSimple
"""

from flasharb.config import AAVE_FLASH_FEE_BPS
from flasharb.flash_loan import flash_premium
from flasharb.onchain.errors import FlashLoanCallbackFailed, Revert
from flasharb.onchain.ledger import Chain


class AaveLendingPool:
    """Lends from its own inventory and pulls principal + premium back by allowance"""

    def __init__(self, chain: Chain, address: str, premium_bps: int = AAVE_FLASH_FEE_BPS):
        self.chain = chain
        self.address = address
        self.premium_bps = premium_bps
        chain.register(self)

    @property
    def FLASHLOAN_PREMIUM_TOTAL(self) -> int:
        return self.premium_bps

    def flash_loan_simple(
        self,
        receiver_address: str,
        asset: str,
        amount: int,
        params: bytes,
        referral_code: int = 0,
        *,
        sender: str,
    ) -> None:
        receiver = self.chain.get_contract(receiver_address)
        if receiver is None or not hasattr(receiver, "execute_operation"):
            raise Revert(f"{receiver_address} cannot receive flashloans")

        premium = flash_premium(amount, self.premium_bps)
        ledger = self.chain.ledger

        ledger.transfer(asset, self.address, receiver_address, amount)

        ok = receiver.execute_operation(asset, amount, premium, sender, params, sender=self.address)
        if not ok:
            raise FlashLoanCallbackFailed("executeOperation returned false")

        ledger.transfer_from(asset, self.address, receiver_address, self.address, amount + premium)

        self.chain.emit(
            self.address, "FlashLoan",
            target=receiver_address, initiator=sender, asset=asset,
            amount=amount, premium=premium, referral_code=referral_code,
        )
