"""Data models for the vault engine."""

from dataclasses import dataclass, field

from vault_engine.constants import (
    DEFAULT_SHARE_DECIMALS,
    DEFAULT_SHARE_NAME,
    DEFAULT_SHARE_SYMBOL,
    NEUTRAL_HEALTH_FACTOR,
)


@dataclass(frozen=True)
class VaultConfig:
    """Initial configuration for a vault.

    Fee recipients left as None default to the vault's own address.
    """

    name: str = DEFAULT_SHARE_NAME
    symbol: str = DEFAULT_SHARE_SYMBOL
    decimals: int = DEFAULT_SHARE_DECIMALS
    entry_fee_bp: int = 0
    exit_fee_bp: int = 0
    entry_fee_recipient: str | None = None
    exit_fee_recipient: str | None = None
    target_health_factor: int = NEUTRAL_HEALTH_FACTOR
    # Seconds; None disables the oracle staleness check.
    max_price_age: int | None = None


@dataclass(frozen=True)
class FeeConfig:
    """Directional fee settings currently in force."""

    entry_fee_bp: int
    exit_fee_bp: int
    entry_fee_recipient: str
    exit_fee_recipient: str


@dataclass(frozen=True)
class Authorization:
    """Outcome of a role check."""

    account: str
    granted: bool
    # Role that satisfied the check, if any.
    role: str | None = None
    required: tuple[str, ...] = ()


@dataclass(frozen=True)
class LedgerState:
    """Point-in-time copy of the share ledger used for rollback."""

    total_shares: int
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[tuple[str, str], int] = field(default_factory=dict)


# Events mirror the logs the on-chain vault emits.


@dataclass(frozen=True)
class Deposit:
    sender: str
    owner: str
    assets: int
    shares: int


@dataclass(frozen=True)
class Withdraw:
    sender: str
    receiver: str
    owner: str
    assets: int
    shares: int


@dataclass(frozen=True)
class Transfer:
    sender: str
    receiver: str
    value: int


@dataclass(frozen=True)
class Approval:
    owner: str
    spender: str
    value: int


@dataclass(frozen=True)
class FeeCharged:
    kind: str  # "entry" or "exit"
    payer: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class SwapExecuted:
    caller: str
    amount_in: int
    min_amount_out: int
    amount_out: int


@dataclass(frozen=True)
class LendingDeposited:
    caller: str
    amount: int


@dataclass(frozen=True)
class LendingWithdrawn:
    caller: str
    amount: int
    withdrawn: int


@dataclass(frozen=True)
class Borrowed:
    caller: str
    asset: str
    amount: int
    rate_mode: int


@dataclass(frozen=True)
class Repaid:
    caller: str
    asset: str
    amount: int
    rate_mode: int
    repaid: int


@dataclass(frozen=True)
class StrategyRotated:
    caller: str
    previous: str | None
    current: str


@dataclass(frozen=True)
class RoleGranted:
    role: str
    account: str
    sender: str


@dataclass(frozen=True)
class RoleRevoked:
    role: str
    account: str
    sender: str


@dataclass(frozen=True)
class FeeConfigUpdated:
    caller: str
    fees: FeeConfig


@dataclass(frozen=True)
class HealthFactorUpdated:
    caller: str
    previous: int
    current: int


@dataclass(frozen=True)
class CollaboratorUpdated:
    caller: str
    kind: str  # "amm_router", "lending_pool", "price_feed", "strategy_executor"
    address: str | None


@dataclass(frozen=True)
class Rebalanced:
    caller: str
    current_health_factor: int
    target_health_factor: int
