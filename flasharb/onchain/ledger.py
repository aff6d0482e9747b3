# flasharb/onchain/ledger.py
"""
In-process chain model: ERC20 balances/allowances, emitted events and a
transaction scope that restores everything when a revert escapes it
"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from web3 import Web3

from flasharb.onchain.errors import InsufficientAllowance, InsufficientBalance, Revert

logger = logging.getLogger(__name__)


def make_address(label: str) -> str:
    """Deterministic checksummed address for a label"""
    return Web3.to_checksum_address(Web3.keccak(text=label)[-20:])


# =============================================================================
# TOKEN LEDGER
# =============================================================================

class TokenLedger:
    """Balances and allowances for every ERC20 on the simulated chain"""

    def __init__(self):
        self._balances: Dict[Tuple[str, str], int] = {}
        self._allowances: Dict[Tuple[str, str, str], int] = {}

    def balance_of(self, token: str, holder: str) -> int:
        return self._balances.get((token, holder), 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances.get((token, owner, spender), 0)

    def mint(self, token: str, to: str, amount: int):
        if amount < 0:
            raise ValueError("amount must be >= 0")
        self._balances[(token, to)] = self.balance_of(token, to) + amount

    def transfer(self, token: str, sender: str, to: str, amount: int):
        balance = self.balance_of(token, sender)
        if amount < 0 or balance < amount:
            raise InsufficientBalance(
                f"{sender} holds {balance} of {token}, needs {amount}",
                {"token": token, "holder": sender, "balance": balance, "amount": amount},
            )
        self._balances[(token, sender)] = balance - amount
        self._balances[(token, to)] = self.balance_of(token, to) + amount

    def approve(self, token: str, owner: str, spender: str, amount: int):
        self._allowances[(token, owner, spender)] = amount

    def transfer_from(self, token: str, spender: str, owner: str, to: str, amount: int):
        allowed = self.allowance(token, owner, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                f"{spender} allowed {allowed} of {token}, needs {amount}",
                {"token": token, "owner": owner, "spender": spender},
            )
        self.transfer(token, owner, to, amount)
        self._allowances[(token, owner, spender)] = allowed - amount

    def snapshot(self) -> Tuple[dict, dict]:
        return dict(self._balances), dict(self._allowances)

    def restore(self, snap: Tuple[dict, dict]):
        self._balances, self._allowances = dict(snap[0]), dict(snap[1])


# =============================================================================
# CHAIN
# =============================================================================

@dataclass(frozen=True)
class Event:
    emitter: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


class Chain:
    """
    Contract registry, token ledger and event log
    Contracts expose their storage as a `state` attribute so it can be restored.
    """

    def __init__(self):
        self.ledger = TokenLedger()
        self.events: List[Event] = []
        self._contracts: Dict[str, Any] = {}
        self._depth = 0

    def register(self, contract) -> None:
        self._contracts[contract.address] = contract

    def get_contract(self, address: str):
        return self._contracts.get(address)

    def emit(self, emitter: str, name: str, **args) -> Event:
        event = Event(emitter=emitter, name=name, args=args)
        self.events.append(event)
        return event

    def events_named(self, name: str) -> List[Event]:
        return [e for e in self.events if e.name == name]

    def _snapshot(self):
        states = {
            addr: copy.deepcopy(c.state)
            for addr, c in self._contracts.items()
            if hasattr(c, "state")
        }
        return self.ledger.snapshot(), len(self.events), states

    def _restore(self, snap):
        ledger_snap, event_count, states = snap
        self.ledger.restore(ledger_snap)
        del self.events[event_count:]
        for addr, state in states.items():
            self._contracts[addr].state = state

    @contextmanager
    def transaction(self):
        """All-or-nothing scope; nested scopes behave like reverting sub-calls"""
        snap = self._snapshot()
        self._depth += 1
        try:
            yield self
        except Revert as e:
            self._restore(snap)
            if self._depth == 1:
                logger.debug(f"Transaction reverted: {e.kind}: {e}")
            raise
        except Exception:
            self._restore(snap)
            raise
        finally:
            self._depth -= 1
