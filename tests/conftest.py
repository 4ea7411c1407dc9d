from types import SimpleNamespace

import pytest

from vault_engine.collaborators import InMemoryToken
from vault_engine.constants import MAX_UINT256
from vault_engine.models import VaultConfig
from vault_engine.vault import Vault

# Digit-only addresses are already in checksum form, so they compare equal to
# what the vault normalises them to.
ACCOUNTS = SimpleNamespace(
    owner="0x" + "11" * 20,
    strategy="0x" + "22" * 20,
    alice="0x" + "33" * 20,
    bob="0x" + "44" * 20,
    treasury="0x" + "55" * 20,
    vault="0x" + "66" * 20,
    asset="0x" + "77" * 20,
    router="0x" + "88" * 20,
    pool="0x" + "99" * 20,
    a_token="0x" + "17" * 20,
    feed="0x" + "12" * 20,
    other_token="0x" + "13" * 20,
    stranger="0x" + "14" * 20,
    zero="0x" + "00" * 20,
)

STARTING_BALANCE = 1_000_000


class FakeSwapVenue:
    """Pulls the input via allowance and reports a fixed-rate output."""

    def __init__(self, token: InMemoryToken, address: str, vault: str, rate_bp: int = 10_000):
        self.token = token
        self.address = address
        self.vault = vault
        self.rate_bp = rate_bp
        self.calls: list[tuple] = []

    def swap_exact(self, amount_in, min_amount_out, path, deadline):
        self.calls.append((amount_in, min_amount_out, list(path), deadline))
        self.token.transfer_from(self.address, self.vault, self.address, amount_in)
        amount_out = amount_in * self.rate_bp // 10_000
        if amount_out < min_amount_out:
            raise RuntimeError("UniswapV2Router: INSUFFICIENT_OUTPUT_AMOUNT")
        return amount_out


class FakeLendingMarket:
    def __init__(self, token: InMemoryToken, address: str):
        self.token = token
        self.address = address
        self.supplied: dict[str, int] = {}
        self.calls: list[tuple] = []

    def supply(self, asset, amount, on_behalf_of, referral):
        self.calls.append(("supply", asset, amount, on_behalf_of, referral))
        self.token.transfer_from(self.address, on_behalf_of, self.address, amount)
        self.supplied[on_behalf_of] = self.supplied.get(on_behalf_of, 0) + amount

    def withdraw(self, asset, amount, to):
        self.calls.append(("withdraw", asset, amount, to))
        self.token.transfer(self.address, to, amount)
        self.supplied[to] = self.supplied.get(to, 0) - amount
        return amount

    def borrow(self, asset, amount, rate_mode, referral, on_behalf_of):
        self.calls.append(("borrow", asset, amount, rate_mode, referral, on_behalf_of))

    def repay(self, asset, amount, rate_mode, on_behalf_of):
        self.calls.append(("repay", asset, amount, rate_mode, on_behalf_of))
        self.token.transfer_from(self.address, on_behalf_of, self.address, amount)
        return amount

    def supplied_balance(self, asset, account):
        return self.supplied.get(account, 0)

    def snapshot(self):
        return dict(self.supplied)

    def restore(self, state):
        self.supplied = dict(state)


class FakePriceOracle:
    def __init__(self, address: str, price: int, updated_at: int):
        self.address = address
        self.price = price
        self.updated_at = updated_at

    def latest_price(self):
        return self.price, self.updated_at


@pytest.fixture
def accounts():
    return ACCOUNTS


@pytest.fixture
def token():
    t = InMemoryToken(ACCOUNTS.asset, symbol="USDC", decimals=6)
    for who in (ACCOUNTS.alice, ACCOUNTS.bob):
        t.mint(who, STARTING_BALANCE)
        t.approve(who, ACCOUNTS.vault, MAX_UINT256)
    return t


@pytest.fixture
def swap_venue(token):
    return FakeSwapVenue(token, ACCOUNTS.router, ACCOUNTS.vault, rate_bp=9_500)


@pytest.fixture
def lending_market(token):
    return FakeLendingMarket(token, ACCOUNTS.pool)


@pytest.fixture
def price_oracle():
    return FakePriceOracle(ACCOUNTS.feed, price=2_000 * 10**8, updated_at=1_000)


@pytest.fixture
def make_vault(token, swap_venue, lending_market, price_oracle):
    def _make(*, clock=lambda: 1_000.0, external_valuation=None, **config) -> Vault:
        return Vault(
            address=ACCOUNTS.vault,
            asset=token.handle(ACCOUNTS.vault),
            owner=ACCOUNTS.owner,
            strategy=ACCOUNTS.strategy,
            swap_venue=swap_venue,
            lending_market=lending_market,
            price_oracle=price_oracle,
            config=VaultConfig(**config),
            external_valuation=external_valuation,
            clock=clock,
        )

    return _make


@pytest.fixture
def vault(make_vault):
    return make_vault()
