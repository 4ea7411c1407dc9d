"""Directional entry/exit fee math.

Both helpers round the fee up, so sub-unit dust always lands with the fee
recipient and never with the user.
"""

from vault_engine.constants import TOTAL_BASIS_POINTS
from vault_engine.formatters import mul_div


def fee_on_raw(amount: int, basis_points: int) -> int:
    """Fee to add on top of an amount that does not include it yet.

    Used for mint and withdraw, where the caller names the clean amount.
    """
    _check(amount, basis_points)
    return mul_div(amount, basis_points, TOTAL_BASIS_POINTS, round_up=True)


def fee_on_total(amount: int, basis_points: int) -> int:
    """Fee contained in an amount that already includes it.

    Used for deposit and redeem, where the caller names the gross amount.
    """
    _check(amount, basis_points)
    return mul_div(amount, basis_points, basis_points + TOTAL_BASIS_POINTS, round_up=True)


def _check(amount: int, basis_points: int) -> None:
    if amount < 0:
        raise ValueError(f"amount must be >= 0, got {amount}")
    if basis_points < 0:
        raise ValueError(f"basis points must be >= 0, got {basis_points}")
