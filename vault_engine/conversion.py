"""Preview and settlement math for deposit, mint, withdraw and redeem.

Rounding always favours the vault: deposit and redeem round the user's
output down, mint and withdraw round the user's input up, and both fee
helpers round the fee up.
"""

import logging
from collections.abc import Callable
from typing import Any

from vault_engine.constants import SHARE_PRICE_SCALE
from vault_engine.errors import NoSharesMinted
from vault_engine.fees import fee_on_raw, fee_on_total
from vault_engine.formatters import mul_div
from vault_engine.health_factor import HealthFactorAdapter
from vault_engine.ledger import VaultLedger
from vault_engine.models import FeeCharged, FeeConfig

logger = logging.getLogger(__name__)


class ConversionEngine:
    def __init__(
        self,
        ledger: VaultLedger,
        health_factor: HealthFactorAdapter,
        fees: FeeConfig,
        emit: Callable[[Any], None],
    ):
        self.ledger = ledger
        self.health_factor = health_factor
        self.fees = fees
        self._emit = emit

    # -- raw conversion ---------------------------------------------------

    def to_share_space(self, assets: int, *, round_up: bool = False) -> int:
        return self.health_factor.to_share_space(
            assets, self.ledger.total_assets(), self.ledger.total_shares, round_up=round_up
        )

    def to_asset_space(self, shares: int, *, round_up: bool = False) -> int:
        return self.health_factor.to_asset_space(
            shares, self.ledger.total_assets(), self.ledger.total_shares, round_up=round_up
        )

    def share_price(self) -> int:
        """Assets per share at the raw pool ratio, scaled by 1e18."""
        total_shares = self.ledger.total_shares
        if total_shares == 0:
            raise NoSharesMinted()
        return mul_div(self.ledger.total_assets(), SHARE_PRICE_SCALE, total_shares)

    # -- previews ---------------------------------------------------------

    def preview_deposit(self, assets: int) -> int:
        fee = fee_on_total(assets, self.fees.entry_fee_bp)
        shares = self.to_share_space(assets - fee)
        logger.debug("preview_deposit assets=%s fee=%s shares=%s", assets, fee, shares)
        return shares

    def preview_mint(self, shares: int) -> int:
        assets = self.to_asset_space(shares, round_up=True)
        return assets + fee_on_raw(assets, self.fees.entry_fee_bp)

    def preview_withdraw(self, assets: int) -> int:
        fee = fee_on_raw(assets, self.fees.exit_fee_bp)
        return self.to_share_space(assets + fee, round_up=True)

    def preview_redeem(self, shares: int) -> int:
        assets = self.to_asset_space(shares)
        fee = fee_on_total(assets, self.fees.exit_fee_bp)
        logger.debug("preview_redeem shares=%s assets=%s fee=%s", shares, assets, fee)
        return assets - fee

    # -- settlement -------------------------------------------------------

    def settle_deposit(self, caller: str, receiver: str, assets: int, shares: int) -> int:
        """Register a priced deposit. Returns the fee charged.

        The ledger only ever sees the net amount. The fee leg runs after the
        net settlement; when the recipient is the vault itself the fee is
        pulled into the vault and accrues to every holder.
        """
        fee = fee_on_total(assets, self.fees.entry_fee_bp)
        recipient = self.fees.entry_fee_recipient
        self.ledger.register_deposit(caller, receiver, assets - fee, shares)
        if fee > 0:
            self.ledger.move_fee(caller, recipient, fee)
            self._emit(FeeCharged(kind="entry", payer=caller, recipient=recipient, amount=fee))
        logger.info("Deposit settled: net=%s fee=%s shares=%s receiver=%s", assets - fee, fee, shares, receiver)
        return fee

    def settle_withdraw(self, caller: str, receiver: str, owner: str, assets: int, shares: int) -> int:
        """Register a priced withdrawal. Returns the fee charged.

        Receiver gets exactly assets; the fee is paid from the vault's own
        holdings on top of it, and stays in the vault when the recipient is
        the vault.
        """
        fee = fee_on_raw(assets, self.fees.exit_fee_bp)
        recipient = self.fees.exit_fee_recipient
        self.ledger.register_withdraw(caller, receiver, owner, assets, shares)
        if fee > 0 and self.ledger.move_fee(self.ledger.vault_address, recipient, fee):
            self._emit(FeeCharged(kind="exit", payer=self.ledger.vault_address, recipient=recipient, amount=fee))
        logger.info("Withdraw settled: assets=%s fee=%s shares=%s owner=%s", assets, fee, shares, owner)
        return fee
