"""Validation logic for vault configuration and ledger invariants."""

from typing import TYPE_CHECKING

from vault_engine.constants import MAX_UINT256, TOTAL_BASIS_POINTS
from vault_engine.errors import DivisionByZeroHealthFactor, InvalidBasisPoints
from vault_engine.roles import STRATEGY_ROLE

if TYPE_CHECKING:
    from vault_engine.vault import Vault  # pragma: no cover


def validate_basis_points(value: int, *, name: str) -> int:
    """Reject fee rates outside [0, 10000]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > TOTAL_BASIS_POINTS:
        raise InvalidBasisPoints(name, value)
    return value


def validate_health_factor(value: int) -> int:
    if value == 0:
        raise DivisionByZeroHealthFactor()
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"target health factor out of uint256 range: {value}")
    return value


def validate_vault_invariants(vault: "Vault", *, warn_only: bool = False) -> list[str]:
    """
    Check ledger and configuration invariants of a vault.

    Returns list of issues. If warn_only=False, raises ValueError on the first one.
    """
    issues: list[str] = []

    def report(msg: str) -> None:
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)

    # 1. Share supply equals the sum of balances.
    balances_sum = sum(vault.ledger.balances.values())
    if balances_sum != vault.total_supply:
        report(f"share supply mismatch: total_shares={vault.total_supply} != sum(balances)={balances_sum}")

    # 2. Non-negative balances.
    for account, balance in vault.ledger.balances.items():
        if balance < 0:
            report(f"negative share balance for {account}: {balance}")

    # 3. Fee rates in range.
    fees = vault.fees
    for name, bp in (("entry_fee_bp", fees.entry_fee_bp), ("exit_fee_bp", fees.exit_fee_bp)):
        if bp < 0 or bp > TOTAL_BASIS_POINTS:
            report(f"{name} out of range: {bp}")

    # 4. Health factor usable for conversions.
    if vault.target_health_factor <= 0:
        report(f"target health factor must be > 0, got {vault.target_health_factor}")

    # 5. Outstanding shares must be backed by some assets.
    total_assets = vault.total_assets()
    if vault.total_supply > 0 and total_assets == 0:
        report(f"{vault.total_supply} shares outstanding with zero total assets")

    # 6. At most one rotation-held strategy, and it holds the role.
    strategy = vault.strategy_address
    if strategy is not None and not vault.roles.has_role(STRATEGY_ROLE, strategy):
        report(f"current strategy {strategy} does not hold the STRATEGY role")

    return issues
