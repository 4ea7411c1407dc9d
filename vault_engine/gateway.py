"""Role-gated dispatch of privileged capital actions to external collaborators."""

import logging
import time
from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager
from typing import Any

from vault_engine.collaborators import AssetLedger, LendingMarket, PriceOracle, Strategy, SwapVenue, call_collaborator
from vault_engine.constants import DEFAULT_REFERRAL_CODE
from vault_engine.errors import CollaboratorFailure, InvalidPath, ZeroAddress
from vault_engine.formatters import as_uint256, is_zero_address, normalize_address
from vault_engine.health_factor import HealthFactorAdapter
from vault_engine.models import (
    Borrowed,
    CollaboratorUpdated,
    LendingDeposited,
    LendingWithdrawn,
    Rebalanced,
    Repaid,
    StrategyRotated,
    SwapExecuted,
)
from vault_engine.roles import OWNER_ROLE, STRATEGY_ROLE, RoleRegistry

logger = logging.getLogger(__name__)


def require_collaborator(collaborator: Any, what: str) -> str | None:
    """Reject a missing collaborator or one deployed at the zero address."""
    if collaborator is None:
        raise ZeroAddress(what)
    address = getattr(collaborator, "address", None)
    if address is None:
        return None
    if is_zero_address(address):
        raise ZeroAddress(what)
    return normalize_address(address)


class ActionGateway:
    """Forwards OWNER/STRATEGY instructions to the swap, lending and oracle services.

    Each mutating action runs inside the vault transaction supplied at
    construction, so a collaborator failure undoes every effect of the call.
    """

    def __init__(
        self,
        *,
        vault_address: str,
        asset: AssetLedger,
        roles: RoleRegistry,
        health_factor: HealthFactorAdapter,
        transaction: Callable[[str], AbstractContextManager],
        emit: Callable[[Any], None],
        swap_venue: SwapVenue | None = None,
        lending_market: LendingMarket | None = None,
        price_oracle: PriceOracle | None = None,
        max_price_age: int | None = None,
        external_valuation: Callable[[], int] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.vault_address = normalize_address(vault_address)
        self.asset = asset
        self.roles = roles
        self.health_factor = health_factor
        self._transaction = transaction
        self._emit = emit
        self.swap_venue = swap_venue
        self.lending_market = lending_market
        self.price_oracle = price_oracle
        self.max_price_age = max_price_age
        self.external_valuation = external_valuation
        self._clock = clock
        self.strategy_address: str | None = None
        self.strategy_executor: Strategy | None = None
        self.health_check: Callable[[], int] | None = None

    def _require_capital_role(self, caller: str, operation: str) -> str:
        return self.roles.require(caller, OWNER_ROLE, STRATEGY_ROLE, operation=operation).account

    def _approve(self, spender: str | None, amount: int) -> None:
        if spender is None:
            return
        call_collaborator("asset", "approve", self.asset.approve, spender, amount, expect_success=True)

    def _lending(self) -> LendingMarket:
        if self.lending_market is None:
            raise CollaboratorFailure("lending_market", "lookup", "no lending pool configured")
        return self.lending_market

    # -- valuation --------------------------------------------------------

    def deployed_assets(self) -> int:
        """Base-asset value held outside the vault.

        Counts the lending supply when the market reports it, plus whatever the
        optional external valuation returns (swapped holdings, other positions).
        """
        total = 0
        market = self.lending_market
        if market is not None and hasattr(market, "supplied_balance"):
            supplied = call_collaborator(
                "lending_market", "supplied_balance", market.supplied_balance, self.asset.address, self.vault_address
            )
            total += int(supplied)
        if self.external_valuation is not None:
            value = int(call_collaborator("external_valuation", "value", self.external_valuation))
            if value < 0:
                raise CollaboratorFailure("external_valuation", "value", f"negative valuation {value}")
            total += value
        return total

    # -- capital actions --------------------------------------------------

    def swap(self, caller: str, amount_in: int, min_amount_out: int, path: Sequence[str], deadline: int) -> int:
        """Swap amount_in of path[0] for at least min_amount_out of path[-1]."""
        with self._transaction("swap"):
            caller = self._require_capital_role(caller, "swap")
            amount_in = as_uint256(amount_in, name="amount_in")
            min_amount_out = as_uint256(min_amount_out, name="min_amount_out")
            path = list(path)
            if len(path) < 2:
                raise InvalidPath(len(path))
            if self.swap_venue is None:
                raise CollaboratorFailure("swap_venue", "lookup", "no AMM router configured")
            # Approve-then-pull only applies to the asset the vault itself holds.
            if normalize_address(path[0]) == normalize_address(self.asset.address):
                self._approve(getattr(self.swap_venue, "address", None), amount_in)
            amount_out = call_collaborator(
                "swap_venue", "swap_exact", self.swap_venue.swap_exact, amount_in, min_amount_out, path, deadline
            )
            amount_out = int(amount_out)
            self._emit(SwapExecuted(caller=caller, amount_in=amount_in, min_amount_out=min_amount_out, amount_out=amount_out))
            logger.info("Swap by %s: %s -> %s (min %s)", caller, amount_in, amount_out, min_amount_out)
            return amount_out

    def deposit_to_lending(self, caller: str, amount: int) -> None:
        with self._transaction("deposit_to_lending"):
            caller = self._require_capital_role(caller, "deposit_to_lending")
            amount = as_uint256(amount)
            market = self._lending()
            self._approve(getattr(market, "address", None), amount)
            call_collaborator(
                "lending_market", "supply", market.supply,
                self.asset.address, amount, self.vault_address, DEFAULT_REFERRAL_CODE,
            )
            self._emit(LendingDeposited(caller=caller, amount=amount))
            logger.info("Supplied %s to lending market by %s", amount, caller)

    def withdraw_from_lending(self, caller: str, amount: int) -> int:
        with self._transaction("withdraw_from_lending"):
            caller = self._require_capital_role(caller, "withdraw_from_lending")
            amount = as_uint256(amount)
            market = self._lending()
            withdrawn = call_collaborator(
                "lending_market", "withdraw", market.withdraw, self.asset.address, amount, self.vault_address
            )
            withdrawn = amount if withdrawn is None else int(withdrawn)
            self._emit(LendingWithdrawn(caller=caller, amount=amount, withdrawn=withdrawn))
            logger.info("Withdrew %s from lending market by %s", withdrawn, caller)
            return withdrawn

    def borrow(self, caller: str, asset_to_borrow: str, amount: int, rate_mode: int) -> None:
        with self._transaction("borrow"):
            caller = self._require_capital_role(caller, "borrow")
            amount = as_uint256(amount)
            market = self._lending()
            call_collaborator(
                "lending_market", "borrow", market.borrow,
                asset_to_borrow, amount, rate_mode, DEFAULT_REFERRAL_CODE, self.vault_address,
            )
            self._emit(Borrowed(caller=caller, asset=asset_to_borrow, amount=amount, rate_mode=rate_mode))
            logger.info("Borrowed %s of %s (rate mode %s) by %s", amount, asset_to_borrow, rate_mode, caller)

    def repay(self, caller: str, asset_to_repay: str, amount: int, rate_mode: int) -> int:
        with self._transaction("repay"):
            caller = self._require_capital_role(caller, "repay")
            amount = as_uint256(amount)
            market = self._lending()
            if normalize_address(asset_to_repay) == normalize_address(self.asset.address):
                self._approve(getattr(market, "address", None), amount)
            repaid = call_collaborator(
                "lending_market", "repay", market.repay, asset_to_repay, amount, rate_mode, self.vault_address
            )
            repaid = amount if repaid is None else int(repaid)
            self._emit(Repaid(caller=caller, asset=asset_to_repay, amount=amount, rate_mode=rate_mode, repaid=repaid))
            logger.info("Repaid %s of %s by %s", repaid, asset_to_repay, caller)
            return repaid

    # -- strategy ---------------------------------------------------------

    def rotate_strategy(self, caller: str, new_strategy: str) -> None:
        """Move the STRATEGY role from the current holder to new_strategy."""
        with self._transaction("rotate_strategy"):
            auth = self.roles.require(caller, OWNER_ROLE, operation="rotate_strategy")
            if is_zero_address(new_strategy):
                raise ZeroAddress("strategy")
            new_strategy = normalize_address(new_strategy)
            previous = self.strategy_address
            if previous is not None and previous != new_strategy:
                self.roles.unassign(STRATEGY_ROLE, previous, auth.account)
            self.roles.assign(STRATEGY_ROLE, new_strategy, auth.account)
            self.strategy_address = new_strategy
            self._emit(StrategyRotated(caller=auth.account, previous=previous, current=new_strategy))
            logger.info("Strategy rotated %s -> %s", previous, new_strategy)

    def set_strategy_executor(
        self, caller: str, executor: Strategy | None, health_check: Callable[[], int] | None = None
    ) -> None:
        """Plug in the rebalancing policy and the source of the current health factor."""
        with self._transaction("set_strategy_executor"):
            auth = self.roles.require(caller, OWNER_ROLE, operation="set_strategy_executor")
            self.strategy_executor = executor
            self.health_check = health_check
            address = getattr(executor, "address", None)
            self._emit(CollaboratorUpdated(caller=auth.account, kind="strategy_executor", address=address))

    def rebalance(self, caller: str) -> Any:
        """Extension point: hand current and target health factors to the strategy.

        Without an executor and a health check this is a no-op.
        """
        with self._transaction("rebalance"):
            auth = self.roles.require(caller, OWNER_ROLE, operation="rebalance")
            if self.strategy_executor is None or self.health_check is None:
                logger.info("Rebalance requested by %s but no strategy executor is configured", auth.account)
                return None
            current = int(call_collaborator("health_check", "current", self.health_check))
            target = self.health_factor.target_health_factor
            result = call_collaborator("strategy", "execute", self.strategy_executor.execute, current, target)
            self._emit(Rebalanced(caller=auth.account, current_health_factor=current, target_health_factor=target))
            logger.info("Rebalanced: current=%s target=%s", current, target)
            return result

    # -- price feed -------------------------------------------------------

    def latest_price(self) -> int:
        """Read the oracle price, rejecting non-positive or stale answers."""
        if self.price_oracle is None:
            raise CollaboratorFailure("price_oracle", "lookup", "no price feed configured")
        price, updated_at = call_collaborator("price_oracle", "latest_price", self.price_oracle.latest_price)
        if price <= 0:
            raise CollaboratorFailure("price_oracle", "latest_price", f"non-positive price {price}")
        if self.max_price_age is not None:
            age = self._clock() - updated_at
            if age > self.max_price_age:
                raise CollaboratorFailure("price_oracle", "latest_price", f"price is stale ({int(age)}s old)")
        return int(price)

    # -- collaborator updates ---------------------------------------------

    def _update(self, caller: str, kind: str, attr: str, collaborator: Any) -> None:
        with self._transaction(f"update_{kind}"):
            auth = self.roles.require(caller, OWNER_ROLE, operation=f"update_{kind}")
            address = require_collaborator(collaborator, kind)
            setattr(self, attr, collaborator)
            self._emit(CollaboratorUpdated(caller=auth.account, kind=kind, address=address))
            logger.info("Updated %s to %s", kind, address)

    def update_amm_router(self, caller: str, router: SwapVenue) -> None:
        self._update(caller, "amm_router", "swap_venue", router)

    def update_lending_pool(self, caller: str, pool: LendingMarket) -> None:
        self._update(caller, "lending_pool", "lending_market", pool)

    def update_price_feed(self, caller: str, feed: PriceOracle) -> None:
        self._update(caller, "price_feed", "price_oracle", feed)

    def snapshot(self) -> dict[str, Any]:
        return {
            "swap_venue": self.swap_venue,
            "lending_market": self.lending_market,
            "price_oracle": self.price_oracle,
            "strategy_address": self.strategy_address,
            "strategy_executor": self.strategy_executor,
            "health_check": self.health_check,
        }

    def restore(self, state: dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)
