"""Share ledger and asset movement bookkeeping."""

import logging
from collections.abc import Callable
from typing import Any

from vault_engine.collaborators import AssetLedger, call_collaborator
from vault_engine.constants import MAX_UINT256, ZERO_ADDRESS
from vault_engine.errors import InsufficientAllowance, InsufficientBalance, ZeroAddress
from vault_engine.formatters import normalize_address
from vault_engine.models import Approval, LedgerState, Transfer

logger = logging.getLogger(__name__)

ASSET = "asset"


class VaultLedger:
    """Owns share supply, balances and allowances; moves the base asset.

    Rates are never computed here: callers hand in the already priced
    (net) asset and share amounts.
    """

    def __init__(
        self,
        asset: AssetLedger,
        vault_address: str,
        emit: Callable[[Any], None],
        deployed: Callable[[], int] | None = None,
    ):
        self.asset = asset
        self.vault_address = normalize_address(vault_address)
        self._emit = emit
        # Value of base asset held outside the vault (lending supply, external positions).
        self._deployed = deployed
        self.total_shares = 0
        self.balances: dict[str, int] = {}
        self.allowances: dict[tuple[str, str], int] = {}

    # -- views ------------------------------------------------------------

    def idle_assets(self) -> int:
        return int(call_collaborator(ASSET, "balance_of", self.asset.balance_of, self.vault_address))

    def total_assets(self) -> int:
        """Idle balance plus deployed positions; the denominator for share pricing."""
        total = self.idle_assets()
        if self._deployed is not None:
            total += self._deployed()
        return total

    def balance_of(self, account: str) -> int:
        return self.balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    # -- share token ------------------------------------------------------

    def mint(self, account: str, shares: int) -> None:
        account = normalize_address(account)
        if account == ZERO_ADDRESS:
            raise ZeroAddress("share receiver")
        self.total_shares += shares
        self.balances[account] = self.balances.get(account, 0) + shares
        self._emit(Transfer(sender=ZERO_ADDRESS, receiver=account, value=shares))

    def burn(self, account: str, shares: int) -> None:
        account = normalize_address(account)
        balance = self.balances.get(account, 0)
        if balance < shares:
            raise InsufficientBalance(account, balance, shares)
        self.balances[account] = balance - shares
        self.total_shares -= shares
        self._emit(Transfer(sender=account, receiver=ZERO_ADDRESS, value=shares))

    def transfer(self, sender: str, receiver: str, shares: int) -> None:
        sender, receiver = normalize_address(sender), normalize_address(receiver)
        if receiver == ZERO_ADDRESS:
            raise ZeroAddress("share receiver")
        balance = self.balances.get(sender, 0)
        if balance < shares:
            raise InsufficientBalance(sender, balance, shares)
        self.balances[sender] = balance - shares
        self.balances[receiver] = self.balances.get(receiver, 0) + shares
        self._emit(Transfer(sender=sender, receiver=receiver, value=shares))

    def approve(self, owner: str, spender: str, shares: int) -> None:
        owner, spender = normalize_address(owner), normalize_address(spender)
        if spender == ZERO_ADDRESS:
            raise ZeroAddress("spender")
        self.allowances[(owner, spender)] = shares
        self._emit(Approval(owner=owner, spender=spender, value=shares))

    def spend_allowance(self, owner: str, spender: str, shares: int) -> None:
        owner, spender = normalize_address(owner), normalize_address(spender)
        current = self.allowances.get((owner, spender), 0)
        # Infinite approval is never decremented.
        if current == MAX_UINT256:
            return
        if current < shares:
            raise InsufficientAllowance(owner, spender, current, shares)
        self.allowances[(owner, spender)] = current - shares

    # -- settlement -------------------------------------------------------

    def register_deposit(self, caller: str, receiver: str, net_assets: int, shares: int) -> None:
        """Pull net assets from caller into the vault and mint shares to receiver."""
        call_collaborator(
            ASSET, "transfer_from", self.asset.transfer_from, caller, self.vault_address, net_assets,
            expect_success=True,
        )
        self.mint(receiver, shares)

    def register_withdraw(self, caller: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        """Burn owner's shares and pay assets from the vault to receiver."""
        if normalize_address(caller) != normalize_address(owner):
            self.spend_allowance(owner, caller, shares)
        self.burn(owner, shares)
        call_collaborator(ASSET, "transfer", self.asset.transfer, receiver, assets, expect_success=True)

    def move_fee(self, payer: str, recipient: str, fee: int) -> bool:
        """Move fee from payer to recipient. Returns False when nothing moved."""
        payer, recipient = normalize_address(payer), normalize_address(recipient)
        if fee == 0 or payer == recipient:
            return False
        if payer == self.vault_address:
            call_collaborator(ASSET, "transfer", self.asset.transfer, recipient, fee, expect_success=True)
        else:
            call_collaborator(
                ASSET, "transfer_from", self.asset.transfer_from, payer, recipient, fee, expect_success=True
            )
        return True

    # -- checkpointing ----------------------------------------------------

    def snapshot(self) -> LedgerState:
        return LedgerState(
            total_shares=self.total_shares,
            balances=dict(self.balances),
            allowances=dict(self.allowances),
        )

    def restore(self, state: LedgerState) -> None:
        self.total_shares = state.total_shares
        self.balances = dict(state.balances)
        self.allowances = dict(state.allowances)
