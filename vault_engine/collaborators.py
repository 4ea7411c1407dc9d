"""Collaborator contracts consumed by the vault, plus an in-memory token.

The protocols describe the narrow surface the vault relies on. Web3-backed
implementations live in ``vault_engine.contracts``; ``InMemoryToken`` backs
simulations and tests.
"""

import copy
import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from vault_engine.errors import CollaboratorFailure, VaultError
from vault_engine.formatters import normalize_address

logger = logging.getLogger(__name__)


class AssetLedger(Protocol):
    """Fungible base asset, bound to the vault as the sending account."""

    address: str

    def transfer(self, to: str, amount: int) -> bool: ...

    def transfer_from(self, owner: str, to: str, amount: int) -> bool: ...

    def approve(self, spender: str, amount: int) -> bool: ...

    def balance_of(self, account: str) -> int: ...


class SwapVenue(Protocol):
    address: str

    def swap_exact(self, amount_in: int, min_amount_out: int, path: Sequence[str], deadline: int) -> int: ...


class LendingMarket(Protocol):
    address: str

    def supply(self, asset: str, amount: int, on_behalf_of: str, referral: int) -> None: ...

    def withdraw(self, asset: str, amount: int, to: str) -> int: ...

    def borrow(self, asset: str, amount: int, rate_mode: int, referral: int, on_behalf_of: str) -> None: ...

    def repay(self, asset: str, amount: int, rate_mode: int, on_behalf_of: str) -> int: ...

    def supplied_balance(self, asset: str, account: str) -> int: ...


class PriceOracle(Protocol):
    address: str

    def latest_price(self) -> tuple[int, int]: ...


class Strategy(Protocol):
    def execute(self, current_health_factor: int, target_health_factor: int) -> Any: ...


@runtime_checkable
class Journaled(Protocol):
    """Collaborator whose state can be checkpointed and rolled back with the vault."""

    def snapshot(self) -> Any: ...

    def restore(self, state: Any) -> None: ...


def call_collaborator(
    collaborator: str, operation: str, fn: Callable[..., Any], *args: Any, expect_success: bool = False
) -> Any:
    """Invoke a collaborator, mapping any foreign failure to CollaboratorFailure.

    With expect_success, an explicit False return (ERC20 style) is a failure;
    None is accepted for tokens that return nothing.
    """
    try:
        result = fn(*args)
    except VaultError:
        raise
    except Exception as ex:  # pylint: disable=broad-exception-caught
        raise CollaboratorFailure(collaborator, operation, str(ex)) from ex
    if expect_success and result is not None and not result:
        raise CollaboratorFailure(collaborator, operation, "returned false")
    return result


class InMemoryToken:
    """ERC20-like ledger kept in process memory."""

    def __init__(self, address: str, symbol: str = "TKN", decimals: int = 18):
        self.address = normalize_address(address)
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances: dict[str, int] = {}
        self.allowances: dict[tuple[str, str], int] = {}

    def mint(self, account: str, amount: int) -> None:
        account = normalize_address(account)
        self.balances[account] = self.balances.get(account, 0) + amount
        self.total_supply += amount

    def balance_of(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        sender, to = normalize_address(sender), normalize_address(to)
        balance = self.balances.get(sender, 0)
        if amount < 0 or balance < amount:
            raise ValueError(f"{self.symbol}: transfer amount {amount} exceeds balance {balance} of {sender}")
        self.balances[sender] = balance - amount
        self.balances[to] = self.balances.get(to, 0) + amount
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self.allowances[(normalize_address(owner), normalize_address(spender))] = amount
        return True

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        key = (normalize_address(owner), normalize_address(spender))
        allowed = self.allowances.get(key, 0)
        if allowed < amount:
            raise ValueError(f"{self.symbol}: insufficient allowance {allowed} < {amount}")
        self.transfer(owner, to, amount)
        self.allowances[key] = allowed - amount
        return True

    def handle(self, account: str) -> "TokenHandle":
        """View of this token that sends every call as account."""
        return TokenHandle(self, account)

    def snapshot(self) -> dict[str, Any]:
        return {
            "total_supply": self.total_supply,
            "balances": copy.copy(self.balances),
            "allowances": copy.copy(self.allowances),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self.total_supply = state["total_supply"]
        self.balances = copy.copy(state["balances"])
        self.allowances = copy.copy(state["allowances"])


class TokenHandle:
    """AssetLedger over an InMemoryToken with a fixed sender."""

    def __init__(self, token: InMemoryToken, account: str):
        self.token = token
        self.account = normalize_address(account)

    @property
    def address(self) -> str:
        return self.token.address

    def transfer(self, to: str, amount: int) -> bool:
        return self.token.transfer(self.account, to, amount)

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        return self.token.transfer_from(self.account, owner, to, amount)

    def approve(self, spender: str, amount: int) -> bool:
        return self.token.approve(self.account, spender, amount)

    def balance_of(self, account: str) -> int:
        return self.token.balance_of(account)

    def snapshot(self) -> dict[str, Any]:
        return self.token.snapshot()

    def restore(self, state: dict[str, Any]) -> None:
        self.token.restore(state)
