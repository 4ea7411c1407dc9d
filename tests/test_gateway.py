from types import SimpleNamespace

import pytest

from vault_engine.constants import NEUTRAL_HEALTH_FACTOR, VARIABLE_RATE_MODE, ZERO_ADDRESS
from vault_engine.errors import AccessDenied, CollaboratorFailure, InvalidPath, ZeroAddress
from vault_engine.models import (
    Borrowed,
    CollaboratorUpdated,
    LendingDeposited,
    LendingWithdrawn,
    Rebalanced,
    RoleGranted,
    StrategyRotated,
    SwapExecuted,
)
from vault_engine.roles import STRATEGY_ROLE
from vault_engine.vault import Vault


@pytest.fixture
def funded_vault(vault, accounts):
    vault.deposit(accounts.alice, 10_000)
    return vault


def test_swap_by_strategy(funded_vault, token, swap_venue, accounts):
    out = funded_vault.swap(accounts.strategy, 1_000, 900, [accounts.asset, accounts.other_token], 123)
    assert out == 950
    assert swap_venue.calls == [(1_000, 900, [accounts.asset, accounts.other_token], 123)]
    assert token.balance_of(accounts.vault) == 9_000
    assert funded_vault.events[-1] == SwapExecuted(
        caller=accounts.strategy, amount_in=1_000, min_amount_out=900, amount_out=950
    )


def test_swap_slippage_failure_is_wrapped_and_rolled_back(funded_vault, token, accounts):
    events_before = len(funded_vault.events)
    with pytest.raises(CollaboratorFailure) as excinfo:
        funded_vault.swap(accounts.owner, 1_000, 1_000, [accounts.asset, accounts.other_token], 123)
    assert "INSUFFICIENT_OUTPUT_AMOUNT" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert token.balance_of(accounts.vault) == 10_000
    assert token.balance_of(accounts.router) == 0
    assert token.allowance(accounts.vault, accounts.router) == 0
    assert len(funded_vault.events) == events_before


@pytest.mark.parametrize("path_length", [0, 1])
def test_swap_rejects_short_path(funded_vault, accounts, path_length):
    path = [accounts.asset] * path_length
    with pytest.raises(InvalidPath):
        funded_vault.swap(accounts.owner, 1_000, 0, path, 123)


def test_swap_requires_owner_or_strategy(funded_vault, accounts):
    with pytest.raises(AccessDenied) as excinfo:
        funded_vault.swap(accounts.stranger, 1_000, 0, [accounts.asset, accounts.other_token], 123)
    assert excinfo.value.operation == "swap"
    assert excinfo.value.roles == ("OWNER", "STRATEGY")


def test_swap_without_router(token, accounts):
    vault = Vault(address=accounts.vault, asset=token.handle(accounts.vault), owner=accounts.owner)
    with pytest.raises(CollaboratorFailure):
        vault.swap(accounts.owner, 1, 0, [accounts.asset, accounts.other_token], 123)


def test_lending_round_trip(funded_vault, token, lending_market, accounts):
    funded_vault.deposit_to_lending(accounts.owner, 4_000)
    assert lending_market.calls[-1] == ("supply", accounts.asset, 4_000, accounts.vault, 0)
    assert token.balance_of(accounts.vault) == 6_000
    assert funded_vault.events[-1] == LendingDeposited(caller=accounts.owner, amount=4_000)

    withdrawn = funded_vault.withdraw_from_lending(accounts.strategy, 1_500)
    assert withdrawn == 1_500
    assert token.balance_of(accounts.vault) == 7_500
    assert funded_vault.events[-1] == LendingWithdrawn(caller=accounts.strategy, amount=1_500, withdrawn=1_500)


@pytest.mark.parametrize("rate_mode", [VARIABLE_RATE_MODE, 7])
def test_borrow_forwards_rate_mode_verbatim(funded_vault, lending_market, accounts, rate_mode):
    funded_vault.borrow(accounts.owner, accounts.other_token, 500, rate_mode)
    assert lending_market.calls[-1] == ("borrow", accounts.other_token, 500, rate_mode, 0, accounts.vault)
    assert funded_vault.events[-1] == Borrowed(
        caller=accounts.owner, asset=accounts.other_token, amount=500, rate_mode=rate_mode
    )


def test_repay_base_asset(funded_vault, token, lending_market, accounts):
    repaid = funded_vault.repay(accounts.strategy, accounts.asset, 300, VARIABLE_RATE_MODE)
    assert repaid == 300
    assert token.balance_of(accounts.vault) == 9_700
    assert token.balance_of(lending_market.address) == 300


def test_lending_requires_role(funded_vault, accounts):
    with pytest.raises(AccessDenied):
        funded_vault.deposit_to_lending(accounts.alice, 1)
    with pytest.raises(AccessDenied):
        funded_vault.borrow(accounts.alice, accounts.other_token, 1, VARIABLE_RATE_MODE)


def test_rotate_strategy_moves_role(vault, accounts):
    vault.rotate_strategy(accounts.owner, accounts.bob)
    assert vault.strategy_address == accounts.bob
    assert vault.roles.accounts_with(STRATEGY_ROLE) == [accounts.bob]
    assert vault.events[-1] == StrategyRotated(caller=accounts.owner, previous=accounts.strategy, current=accounts.bob)
    with pytest.raises(AccessDenied):
        vault.swap(accounts.strategy, 1, 0, [accounts.asset, accounts.other_token], 123)


def test_rotate_strategy_to_same_address_is_idempotent(vault, accounts):
    vault.rotate_strategy(accounts.owner, accounts.bob)
    grants = sum(isinstance(e, RoleGranted) for e in vault.events)
    vault.rotate_strategy(accounts.owner, accounts.bob)
    assert vault.roles.accounts_with(STRATEGY_ROLE) == [accounts.bob]
    assert sum(isinstance(e, RoleGranted) for e in vault.events) == grants


def test_rotate_strategy_guards(vault, accounts):
    with pytest.raises(ZeroAddress):
        vault.rotate_strategy(accounts.owner, ZERO_ADDRESS)
    with pytest.raises(AccessDenied):
        vault.rotate_strategy(accounts.strategy, accounts.bob)
    assert vault.strategy_address == accounts.strategy


def test_rebalance_without_executor_is_noop(vault, accounts):
    assert vault.rebalance(accounts.owner) is None
    assert not any(isinstance(e, Rebalanced) for e in vault.events)


def test_rebalance_hands_health_factors_to_executor(vault, accounts):
    executor = SimpleNamespace(calls=[])
    executor.execute = lambda current, target: executor.calls.append((current, target)) or "executed"
    vault.set_strategy_executor(accounts.owner, executor, lambda: 15 * 10**17)

    assert vault.rebalance(accounts.owner) == "executed"
    assert executor.calls == [(15 * 10**17, NEUTRAL_HEALTH_FACTOR)]
    assert vault.events[-1] == Rebalanced(
        caller=accounts.owner, current_health_factor=15 * 10**17, target_health_factor=NEUTRAL_HEALTH_FACTOR
    )


def test_rebalance_is_owner_only(vault, accounts):
    with pytest.raises(AccessDenied):
        vault.rebalance(accounts.strategy)


def test_rebalance_health_check_failure_is_wrapped(vault, accounts):
    def broken_check():
        raise RuntimeError("rpc down")

    executor = SimpleNamespace(execute=lambda current, target: None)
    vault.set_strategy_executor(accounts.owner, executor, broken_check)
    with pytest.raises(CollaboratorFailure):
        vault.rebalance(accounts.owner)


def test_latest_price(vault):
    assert vault.latest_price() == 2_000 * 10**8


def test_latest_price_rejects_stale_and_non_positive(make_vault, price_oracle):
    assert make_vault(max_price_age=60, clock=lambda: 1_030.0).latest_price() == price_oracle.price

    stale = make_vault(max_price_age=60, clock=lambda: 2_000.0)
    with pytest.raises(CollaboratorFailure):
        stale.latest_price()

    price_oracle.price = 0
    with pytest.raises(CollaboratorFailure):
        make_vault().latest_price()


def test_latest_price_without_feed(token, accounts):
    vault = Vault(address=accounts.vault, asset=token.handle(accounts.vault), owner=accounts.owner)
    with pytest.raises(CollaboratorFailure):
        vault.latest_price()


@pytest.mark.parametrize("method", ["update_amm_router", "update_lending_pool", "update_price_feed"])
def test_collaborator_updates_reject_zero_address(vault, accounts, method):
    update = getattr(vault, method)
    with pytest.raises(ZeroAddress):
        update(accounts.owner, SimpleNamespace(address=ZERO_ADDRESS))
    with pytest.raises(ZeroAddress):
        update(accounts.owner, None)
    with pytest.raises(AccessDenied):
        update(accounts.strategy, SimpleNamespace(address=accounts.bob))


def test_update_lending_pool_replaces_market(vault, accounts):
    pool = SimpleNamespace(address=accounts.bob)
    vault.update_lending_pool(accounts.owner, pool)
    assert vault.gateway.lending_market is pool
    assert vault.events[-1] == CollaboratorUpdated(caller=accounts.owner, kind="lending_pool", address=accounts.bob)


def test_lent_capital_keeps_backing_shares(funded_vault, accounts):
    funded_vault.deposit_to_lending(accounts.owner, 4_000)
    assert funded_vault.ledger.idle_assets() == 6_000
    assert funded_vault.total_assets() == 10_000
    assert funded_vault.share_price() == 10**18

    assert funded_vault.deposit(accounts.bob, 6_000) == 6_000
    funded_vault.withdraw_from_lending(accounts.owner, 4_000)

    assert funded_vault.total_assets() == 16_000
    assert funded_vault.preview_redeem(funded_vault.balance_of(accounts.bob)) == 6_000
    assert funded_vault.preview_redeem(funded_vault.balance_of(accounts.alice)) == 10_000


def test_external_valuation_counts_toward_total_assets(make_vault, accounts):
    holdings = {"value": 0}
    vault = make_vault(external_valuation=lambda: holdings["value"])
    vault.deposit(accounts.alice, 10_000)

    holdings["value"] = 2_500
    assert vault.total_assets() == 12_500
    assert vault.preview_redeem(10_000) == 12_499

    holdings["value"] = -1
    with pytest.raises(CollaboratorFailure):
        vault.total_assets()
