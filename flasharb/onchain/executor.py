# flasharb/onchain/executor.py
"""
Flashloan Arbitrage Executor (contract model)

executeWithAave borrows through flashLoanSimple, replays the swap legs inside
executeOperation and only settles when the borrowed-token balance gained
since the loan was requested covers principal + premium + minimum profit.
Anything else reverts the whole transaction through the chain's transaction
scope.

Phases per call: IDLE -> ARMED -> IN_CALLBACK -> SETTLED -> IDLE
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from flasharb.calldata import (
    ArbitrageParams, SwapInstruction,
    decode_callback_payload, decode_execute_with_aave, encode_callback_payload,
)
from flasharb.config import ZERO_ADDRESS
from flasharb.onchain.errors import (
    ContractPaused, EmptySwaps, InsufficientProfit, InvalidCallbackCaller,
    InvalidVault, ReentrancyDetected, Revert, SwapFailed, Unauthorized,
    ZeroBorrowAmount,
)
from flasharb.onchain.ledger import Chain, make_address
from flasharb.onchain.venues import SwapResult, SwapStatus, SwapVenue

logger = logging.getLogger(__name__)


class ExecutionPhase(Enum):
    IDLE = "idle"
    ARMED = "armed"
    IN_CALLBACK = "in_callback"
    SETTLED = "settled"


@dataclass
class ExecutorState:
    """Contract storage"""
    owner: str
    vault: str
    paused: bool
    min_profit_bps: int  # operator setting; settlement enforces params.min_profit
    locked: bool = False
    phase: ExecutionPhase = ExecutionPhase.IDLE
    # Borrowed-token balance held before the loan, set while ARMED
    balance_before: int = 0


class FlashloanExecutor:
    """
    Owner-operated flashloan receiver
    """

    def __init__(
        self,
        chain: Chain,
        owner: str,
        vault: str,
        lending_pool: str,
        min_profit_bps: int = 10,
        address: Optional[str] = None,
    ):
        if not vault or vault == ZERO_ADDRESS:
            raise InvalidVault("Vault cannot be the zero address")

        self.chain = chain
        self.address = address or make_address(f"FlashloanExecutor:{owner}")
        self.aave_pool = lending_pool
        self.state = ExecutorState(
            owner=owner,
            vault=vault,
            paused=False,
            min_profit_bps=min_profit_bps,
        )
        chain.register(self)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self.state.owner

    @property
    def vault(self) -> str:
        return self.state.vault

    @property
    def paused(self) -> bool:
        return self.state.paused

    @property
    def min_profit_bps(self) -> int:
        return self.state.min_profit_bps

    @property
    def locked(self) -> bool:
        return self.state.locked

    @property
    def phase(self) -> ExecutionPhase:
        return self.state.phase

    def balance_of(self, token: str) -> int:
        return self.chain.ledger.balance_of(token, self.address)

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    @contextmanager
    def _non_reentrant(self):
        if self.state.locked:
            raise ReentrancyDetected("Reentrant call")
        self.state.locked = True
        try:
            yield
        finally:
            self.state.locked = False
            self.state.phase = ExecutionPhase.IDLE
            self.state.balance_before = 0

    def _only_owner(self, sender: str):
        if sender != self.state.owner:
            raise Unauthorized(f"{sender} is not the owner")

    def _admin_guard(self, sender: str):
        # Admin calls never take the lock, but must not run while it is held
        if self.state.locked:
            raise ReentrancyDetected("Admin call during execution")
        self._only_owner(sender)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def execute_with_aave(self, params: ArbitrageParams, *, sender: str) -> int:
        """Run one flashloan arbitrage; returns the profit forwarded to the vault"""
        with self.chain.transaction():
            with self._non_reentrant():
                self._only_owner(sender)
                if self.state.paused:
                    raise ContractPaused("Executor is paused")
                if params.borrow_amount <= 0:
                    raise ZeroBorrowAmount("Borrow amount must be > 0")
                if not params.swaps:
                    raise EmptySwaps("No swaps supplied")

                token = params.borrow_token
                balance_before = self.balance_of(token)
                payload = encode_callback_payload(params.swaps, params.min_profit)

                self.state.balance_before = balance_before
                self.state.phase = ExecutionPhase.ARMED
                pool = self.chain.get_contract(self.aave_pool)
                pool.flash_loan_simple(
                    self.address, token, params.borrow_amount, payload, 0,
                    sender=self.address,
                )

                balance_after = self.balance_of(token)
                profit = balance_after - balance_before
                if profit < 0:
                    raise InsufficientProfit(actual=profit, required=0)
                if profit > 0:
                    self.chain.ledger.transfer(token, self.address, self.state.vault, profit)

                self.chain.emit(
                    self.address, "ArbitrageExecuted",
                    token=token, borrow_amount=params.borrow_amount,
                    profit=profit, vault=self.state.vault,
                )
                logger.info(f"Arbitrage settled: borrowed {params.borrow_amount}, profit {profit}")
                return profit

    def execute(self, calldata: bytes, *, sender: str) -> int:
        """Dispatch raw executeWithAave calldata"""
        return self.execute_with_aave(decode_execute_with_aave(calldata), sender=sender)

    def execute_operation(
        self,
        asset: str,
        amount: int,
        premium: int,
        initiator: str,
        params: bytes,
        *,
        sender: str,
    ) -> bool:
        """Flashloan callback"""
        if sender != self.aave_pool:
            raise InvalidCallbackCaller(f"Callback from {sender}, expected lending pool")
        if initiator != self.address:
            raise InvalidCallbackCaller(f"Flashloan initiated by {initiator}")
        if self.state.phase != ExecutionPhase.ARMED:
            raise InvalidCallbackCaller("No flashloan requested")

        self.state.phase = ExecutionPhase.IN_CALLBACK
        swaps, min_profit = decode_callback_payload(params)

        for index, swap in enumerate(swaps):
            result = self._try_swap(swap)
            if not result.ok:
                raise SwapFailed(index, result.reason)

        amount_owed = amount + premium
        required = amount_owed + min_profit
        # Tokens held before the loan never count towards repayment
        gained = self.balance_of(asset) - self.state.balance_before
        if gained < required:
            raise InsufficientProfit(actual=gained, required=required)

        self.chain.ledger.approve(asset, self.address, self.aave_pool, amount_owed)
        self.state.phase = ExecutionPhase.SETTLED
        return True

    def _try_swap(self, swap: SwapInstruction) -> SwapResult:
        amount_in = swap.amount_in or self.balance_of(swap.token_in)
        if amount_in <= 0:
            return SwapResult(SwapStatus.REVERTED, reason=f"No {swap.token_in} balance to swap")

        venue = self.chain.get_contract(swap.router)
        if not isinstance(venue, SwapVenue):
            return SwapResult(SwapStatus.UNKNOWN, reason=f"{swap.router} is not a swap venue")

        self.chain.ledger.approve(swap.token_in, self.address, swap.router, amount_in)
        try:
            with self.chain.transaction():
                amount_out = venue.exact_input_single(
                    swap.token_in, swap.token_out, swap.fee, self.address,
                    amount_in, swap.min_amount_out,
                    sender=self.address,
                )
        except Revert as e:
            return SwapResult(SwapStatus.REVERTED, reason=f"{e.kind}: {e}")
        except Exception as e:
            return SwapResult(SwapStatus.UNKNOWN, reason=repr(e))

        return SwapResult(SwapStatus.SUCCESS, amount_out=amount_out)

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    def transfer_ownership(self, new_owner: str, *, sender: str):
        with self.chain.transaction():
            self._admin_guard(sender)
            old = self.state.owner
            self.state.owner = new_owner
            self.chain.emit(self.address, "OwnershipTransferred", old=old, new=new_owner)

    def set_vault(self, new_vault: str, *, sender: str):
        with self.chain.transaction():
            self._admin_guard(sender)
            if not new_vault or new_vault == ZERO_ADDRESS:
                raise InvalidVault("Vault cannot be the zero address")
            old = self.state.vault
            self.state.vault = new_vault
            self.chain.emit(self.address, "VaultUpdated", old=old, new=new_vault)

    def toggle_pause(self, *, sender: str):
        with self.chain.transaction():
            self._admin_guard(sender)
            old = self.state.paused
            self.state.paused = not old
            self.chain.emit(self.address, "PauseToggled", old=old, new=self.state.paused)

    def set_min_profit(self, new_bps: int, *, sender: str):
        with self.chain.transaction():
            self._admin_guard(sender)
            old = self.state.min_profit_bps
            self.state.min_profit_bps = new_bps
            self.chain.emit(self.address, "MinProfitUpdated", old=old, new=new_bps)

    def emergency_withdraw(self, token: str, *, sender: str) -> int:
        with self.chain.transaction():
            self._admin_guard(sender)
            amount = self.balance_of(token)
            if amount > 0:
                self.chain.ledger.transfer(token, self.address, self.state.vault, amount)
            self.chain.emit(
                self.address, "EmergencyWithdraw",
                token=token, amount=amount, vault=self.state.vault,
            )
            return amount
