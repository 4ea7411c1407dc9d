"""The vault: user-facing share operations, owner configuration and transactions."""

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any

from vault_engine.collaborators import AssetLedger, Journaled, LendingMarket, PriceOracle, Strategy, SwapVenue
from vault_engine.constants import MAX_UINT256
from vault_engine.conversion import ConversionEngine
from vault_engine.errors import ExceedsMaximum, ReentrantCall, ZeroAddress
from vault_engine.formatters import as_uint256, is_zero_address, normalize_address
from vault_engine.gateway import ActionGateway
from vault_engine.health_factor import HealthFactorAdapter
from vault_engine.ledger import VaultLedger
from vault_engine.models import Deposit, FeeConfig, FeeConfigUpdated, HealthFactorUpdated, VaultConfig, Withdraw
from vault_engine.roles import DEFAULT_ADMIN_ROLE, OWNER_ROLE, STRATEGY_ROLE, RoleRegistry
from vault_engine.validation import validate_basis_points, validate_health_factor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Checkpoint:
    ledger: Any
    fees: FeeConfig
    target_health_factor: int
    roles: Any
    gateway: Any
    events: int
    collaborators: list[tuple[Journaled, Any]]


class Vault:
    """Pooled-custody vault issuing shares against a single base asset.

    Every mutating call runs as one transaction: it is rejected if another
    mutating call is already in flight on this vault, and any failure
    restores the vault (and journaled collaborators) to the state before the
    call.
    """

    def __init__(
        self,
        *,
        address: str,
        asset: AssetLedger,
        owner: str,
        strategy: str | None = None,
        swap_venue: SwapVenue | None = None,
        lending_market: LendingMarket | None = None,
        price_oracle: PriceOracle | None = None,
        config: VaultConfig | None = None,
        external_valuation: Callable[[], int] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if is_zero_address(address):
            raise ZeroAddress("vault")
        if asset is None or is_zero_address(getattr(asset, "address", None)):
            raise ZeroAddress("asset")
        if is_zero_address(owner):
            raise ZeroAddress("owner")

        config = config or VaultConfig()
        validate_basis_points(config.entry_fee_bp, name="entry_fee_bp")
        validate_basis_points(config.exit_fee_bp, name="exit_fee_bp")
        validate_health_factor(config.target_health_factor)

        self.address = normalize_address(address)
        self.asset = asset
        self.name = config.name
        self.symbol = config.symbol
        self.decimals = config.decimals
        self.events: list[Any] = []
        self._in_flight: str | None = None

        fees = FeeConfig(
            entry_fee_bp=config.entry_fee_bp,
            exit_fee_bp=config.exit_fee_bp,
            entry_fee_recipient=self._recipient(config.entry_fee_recipient),
            exit_fee_recipient=self._recipient(config.exit_fee_recipient),
        )
        self.ledger = VaultLedger(asset, self.address, self._emit, deployed=self._deployed_assets)
        self.health_factor = HealthFactorAdapter(config.target_health_factor)
        self.engine = ConversionEngine(self.ledger, self.health_factor, fees, self._emit)
        self.roles = RoleRegistry(self._emit)
        self.gateway = ActionGateway(
            vault_address=self.address,
            asset=asset,
            roles=self.roles,
            health_factor=self.health_factor,
            transaction=self.transaction,
            emit=self._emit,
            swap_venue=swap_venue,
            lending_market=lending_market,
            price_oracle=price_oracle,
            max_price_age=config.max_price_age,
            external_valuation=external_valuation,
            clock=clock,
        )

        owner = normalize_address(owner)
        self.roles.assign(DEFAULT_ADMIN_ROLE, owner, owner)
        self.roles.assign(OWNER_ROLE, owner, owner)
        if strategy is not None:
            self.roles.assign(STRATEGY_ROLE, strategy, owner)
            self.gateway.strategy_address = normalize_address(strategy)
        logger.info("Vault %s initialised (owner=%s, strategy=%s)", self.address, owner, strategy)

    def _recipient(self, value: str | None) -> str:
        if value is None:
            return self.address
        if is_zero_address(value):
            raise ZeroAddress("fee recipient")
        return normalize_address(value)

    def _emit(self, event: Any) -> None:
        self.events.append(event)

    def _deployed_assets(self) -> int:
        return self.gateway.deployed_assets()

    # -- transactions -----------------------------------------------------

    def _journaled(self) -> list[Journaled]:
        seen: set[int] = set()
        out: list[Journaled] = []
        for collaborator in (self.asset, self.gateway.swap_venue, self.gateway.lending_market):
            if isinstance(collaborator, Journaled) and id(collaborator) not in seen:
                seen.add(id(collaborator))
                out.append(collaborator)
        return out

    def _checkpoint(self) -> _Checkpoint:
        return _Checkpoint(
            ledger=self.ledger.snapshot(),
            fees=self.engine.fees,
            target_health_factor=self.health_factor.target_health_factor,
            roles=self.roles.snapshot(),
            gateway=self.gateway.snapshot(),
            events=len(self.events),
            collaborators=[(c, c.snapshot()) for c in self._journaled()],
        )

    def _rollback(self, cp: _Checkpoint) -> None:
        self.ledger.restore(cp.ledger)
        self.engine.fees = cp.fees
        self.health_factor.target_health_factor = cp.target_health_factor
        self.roles.restore(cp.roles)
        self.gateway.restore(cp.gateway)
        del self.events[cp.events :]
        for collaborator, state in cp.collaborators:
            collaborator.restore(state)

    @contextmanager
    def transaction(self, operation: str) -> Iterator[None]:
        """Run a mutating operation atomically and without re-entry."""
        if self._in_flight is not None:
            raise ReentrantCall(operation)
        self._in_flight = operation
        checkpoint = self._checkpoint()
        try:
            yield
        except BaseException as ex:
            self._rollback(checkpoint)
            logger.warning("Rolled back %s: %s", operation, ex)
            raise
        finally:
            self._in_flight = None

    # -- views ------------------------------------------------------------

    @property
    def fees(self) -> FeeConfig:
        return self.engine.fees

    @property
    def target_health_factor(self) -> int:
        return self.health_factor.target_health_factor

    @property
    def strategy_address(self) -> str | None:
        return self.gateway.strategy_address

    @property
    def total_supply(self) -> int:
        return self.ledger.total_shares

    def total_assets(self) -> int:
        return self.ledger.total_assets()

    def balance_of(self, account: str) -> int:
        return self.ledger.balance_of(account)

    def allowance(self, owner: str, spender: str) -> int:
        return self.ledger.allowance(owner, spender)

    def has_role(self, role: str, account: str) -> bool:
        return self.roles.has_role(role, account)

    def share_price(self) -> int:
        return self.engine.share_price()

    def convert_to_shares(self, assets: int) -> int:
        return self.engine.to_share_space(as_uint256(assets, name="assets"))

    def convert_to_assets(self, shares: int) -> int:
        return self.engine.to_asset_space(as_uint256(shares, name="shares"))

    def preview_deposit(self, assets: int) -> int:
        return self.engine.preview_deposit(as_uint256(assets, name="assets"))

    def preview_mint(self, shares: int) -> int:
        return self.engine.preview_mint(as_uint256(shares, name="shares"))

    def preview_withdraw(self, assets: int) -> int:
        return self.engine.preview_withdraw(as_uint256(assets, name="assets"))

    def preview_redeem(self, shares: int) -> int:
        return self.engine.preview_redeem(as_uint256(shares, name="shares"))

    def max_deposit(self, receiver: str) -> int:  # pylint: disable=unused-argument
        return MAX_UINT256

    def max_mint(self, receiver: str) -> int:  # pylint: disable=unused-argument
        return MAX_UINT256

    def max_withdraw(self, owner: str) -> int:
        return self.engine.preview_redeem(self.balance_of(owner))

    def max_redeem(self, owner: str) -> int:
        return self.balance_of(owner)

    def latest_price(self) -> int:
        return self.gateway.latest_price()

    # -- user operations --------------------------------------------------

    def deposit(self, caller: str, assets: int, receiver: str | None = None) -> int:
        """Deposit exactly `assets` (fee included) and return the shares minted."""
        with self.transaction("deposit"):
            caller = normalize_address(caller)
            receiver = normalize_address(receiver or caller)
            assets = as_uint256(assets, name="assets")
            maximum = self.max_deposit(receiver)
            if assets > maximum:
                raise ExceedsMaximum("deposit", receiver, assets, maximum)
            shares = self.engine.preview_deposit(assets)
            self.engine.settle_deposit(caller, receiver, assets, shares)
            self._emit(Deposit(sender=caller, owner=receiver, assets=assets, shares=shares))
            return shares

    def mint(self, caller: str, shares: int, receiver: str | None = None) -> int:
        """Mint exactly `shares` and return the assets charged (fee included)."""
        with self.transaction("mint"):
            caller = normalize_address(caller)
            receiver = normalize_address(receiver or caller)
            shares = as_uint256(shares, name="shares")
            maximum = self.max_mint(receiver)
            if shares > maximum:
                raise ExceedsMaximum("mint", receiver, shares, maximum)
            assets = self.engine.preview_mint(shares)
            self.engine.settle_deposit(caller, receiver, assets, shares)
            self._emit(Deposit(sender=caller, owner=receiver, assets=assets, shares=shares))
            return assets

    def withdraw(self, caller: str, assets: int, receiver: str | None = None, owner: str | None = None) -> int:
        """Pay exactly `assets` to receiver and return the shares burned from owner."""
        with self.transaction("withdraw"):
            caller = normalize_address(caller)
            receiver, owner = self._exit_accounts(caller, receiver, owner)
            assets = as_uint256(assets, name="assets")
            maximum = self.max_withdraw(owner)
            if assets > maximum:
                raise ExceedsMaximum("withdraw", owner, assets, maximum)
            shares = self.engine.preview_withdraw(assets)
            self.engine.settle_withdraw(caller, receiver, owner, assets, shares)
            self._emit(Withdraw(sender=caller, receiver=receiver, owner=owner, assets=assets, shares=shares))
            return shares

    def redeem(self, caller: str, shares: int, receiver: str | None = None, owner: str | None = None) -> int:
        """Burn exactly `shares` from owner and return the assets paid to receiver."""
        with self.transaction("redeem"):
            caller = normalize_address(caller)
            receiver, owner = self._exit_accounts(caller, receiver, owner)
            shares = as_uint256(shares, name="shares")
            maximum = self.max_redeem(owner)
            if shares > maximum:
                raise ExceedsMaximum("redeem", owner, shares, maximum)
            assets = self.engine.preview_redeem(shares)
            self.engine.settle_withdraw(caller, receiver, owner, assets, shares)
            self._emit(Withdraw(sender=caller, receiver=receiver, owner=owner, assets=assets, shares=shares))
            return assets

    @staticmethod
    def _exit_accounts(caller: str, receiver: str | None, owner: str | None) -> tuple[str, str]:
        receiver = receiver or caller
        if is_zero_address(receiver):
            raise ZeroAddress("receiver")
        return normalize_address(receiver), normalize_address(owner or caller)

    # -- share token ------------------------------------------------------

    def transfer(self, caller: str, to: str, shares: int) -> bool:
        with self.transaction("transfer"):
            self.ledger.transfer(caller, to, as_uint256(shares, name="shares"))
            return True

    def approve(self, caller: str, spender: str, shares: int) -> bool:
        with self.transaction("approve"):
            self.ledger.approve(caller, spender, as_uint256(shares, name="shares"))
            return True

    def transfer_from(self, caller: str, owner: str, to: str, shares: int) -> bool:
        with self.transaction("transfer_from"):
            shares = as_uint256(shares, name="shares")
            self.ledger.spend_allowance(owner, caller, shares)
            self.ledger.transfer(owner, to, shares)
            return True

    # -- owner configuration ----------------------------------------------

    def update_fee_basis_points(self, caller: str, entry_fee_bp: int, exit_fee_bp: int) -> None:
        with self.transaction("update_fee_basis_points"):
            auth = self.roles.require(caller, OWNER_ROLE, operation="update_fee_basis_points")
            validate_basis_points(entry_fee_bp, name="entry_fee_bp")
            validate_basis_points(exit_fee_bp, name="exit_fee_bp")
            self.engine.fees = replace(self.engine.fees, entry_fee_bp=entry_fee_bp, exit_fee_bp=exit_fee_bp)
            self._emit(FeeConfigUpdated(caller=auth.account, fees=self.engine.fees))
            logger.info("Fees updated: entry=%sbp exit=%sbp", entry_fee_bp, exit_fee_bp)

    def update_fee_recipients(self, caller: str, entry_fee_recipient: str, exit_fee_recipient: str) -> None:
        with self.transaction("update_fee_recipients"):
            auth = self.roles.require(caller, OWNER_ROLE, operation="update_fee_recipients")
            if is_zero_address(entry_fee_recipient) or is_zero_address(exit_fee_recipient):
                raise ZeroAddress("fee recipient")
            self.engine.fees = replace(
                self.engine.fees,
                entry_fee_recipient=normalize_address(entry_fee_recipient),
                exit_fee_recipient=normalize_address(exit_fee_recipient),
            )
            self._emit(FeeConfigUpdated(caller=auth.account, fees=self.engine.fees))
            logger.info("Fee recipients updated: entry=%s exit=%s", entry_fee_recipient, exit_fee_recipient)

    def update_health_factor(self, caller: str, target_health_factor: int) -> None:
        with self.transaction("update_health_factor"):
            auth = self.roles.require(caller, OWNER_ROLE, operation="update_health_factor")
            target_health_factor = as_uint256(target_health_factor, name="target_health_factor")
            previous = self.health_factor.update(target_health_factor)
            self._emit(HealthFactorUpdated(caller=auth.account, previous=previous, current=target_health_factor))

    def grant_role(self, caller: str, role: str, account: str) -> bool:
        with self.transaction("grant_role"):
            return self.roles.grant_role(caller, role, account)

    def revoke_role(self, caller: str, role: str, account: str) -> bool:
        with self.transaction("revoke_role"):
            return self.roles.revoke_role(caller, role, account)

    def renounce_role(self, caller: str, role: str) -> bool:
        with self.transaction("renounce_role"):
            renounced = self.roles.renounce_role(caller, role)
            if renounced and role == STRATEGY_ROLE and normalize_address(caller) == self.gateway.strategy_address:
                self.gateway.strategy_address = None
            return renounced

    def update_amm_router(self, caller: str, router: SwapVenue) -> None:
        self.gateway.update_amm_router(caller, router)

    def update_lending_pool(self, caller: str, pool: LendingMarket) -> None:
        self.gateway.update_lending_pool(caller, pool)

    def update_price_feed(self, caller: str, feed: PriceOracle) -> None:
        self.gateway.update_price_feed(caller, feed)

    def set_strategy_executor(
        self, caller: str, executor: Strategy | None, health_check: Callable[[], int] | None = None
    ) -> None:
        self.gateway.set_strategy_executor(caller, executor, health_check)

    # -- privileged capital actions ---------------------------------------

    def swap(self, caller: str, amount_in: int, min_amount_out: int, path: Sequence[str], deadline: int) -> int:
        return self.gateway.swap(caller, amount_in, min_amount_out, path, deadline)

    def deposit_to_lending(self, caller: str, amount: int) -> None:
        self.gateway.deposit_to_lending(caller, amount)

    def withdraw_from_lending(self, caller: str, amount: int) -> int:
        return self.gateway.withdraw_from_lending(caller, amount)

    def borrow(self, caller: str, asset_to_borrow: str, amount: int, rate_mode: int) -> None:
        self.gateway.borrow(caller, asset_to_borrow, amount, rate_mode)

    def repay(self, caller: str, asset_to_repay: str, amount: int, rate_mode: int) -> int:
        return self.gateway.repay(caller, asset_to_repay, amount, rate_mode)

    def rotate_strategy(self, caller: str, new_strategy: str) -> None:
        self.gateway.rotate_strategy(caller, new_strategy)

    def rebalance(self, caller: str) -> Any:
        return self.gateway.rebalance(caller)
