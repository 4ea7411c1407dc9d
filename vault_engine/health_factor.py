"""Health-factor adjusted share/asset conversion."""

import logging

from vault_engine.constants import DECIMALS_OFFSET, HEALTH_FACTOR_SCALE, NEUTRAL_HEALTH_FACTOR
from vault_engine.errors import DivisionByZeroHealthFactor
from vault_engine.formatters import mul_div

logger = logging.getLogger(__name__)


def convert_to_shares(assets: int, total_assets: int, total_shares: int, *, round_up: bool = False) -> int:
    """Assets to shares at the pool ratio, with one virtual share and one virtual asset.

    The virtual offset keeps the first deposit priced 1:1 and blunts donation
    attacks on an empty vault.
    """
    return mul_div(assets, total_shares + 10**DECIMALS_OFFSET, total_assets + 1, round_up=round_up)


def convert_to_assets(shares: int, total_assets: int, total_shares: int, *, round_up: bool = False) -> int:
    """Shares to assets at the pool ratio (inverse of convert_to_shares)."""
    return mul_div(shares, total_assets + 1, total_shares + 10**DECIMALS_OFFSET, round_up=round_up)


class HealthFactorAdapter:
    """Applies the target health factor before the pool-ratio conversion.

    A factor above 1e18 makes each asset worth more shares (and each share
    fewer assets); below 1e18 does the opposite. At 1e18 the adapter is the
    identity on the underlying conversion. The adjustment and the pool-ratio
    step both round in the requested direction, so a rounded-up quote never
    collapses to zero for a non-zero amount.
    """

    def __init__(self, target_health_factor: int = NEUTRAL_HEALTH_FACTOR):
        self.target_health_factor = target_health_factor

    def _factor(self) -> int:
        if self.target_health_factor == 0:
            raise DivisionByZeroHealthFactor()
        return self.target_health_factor

    def adjust_assets(self, assets: int, *, round_up: bool = False) -> int:
        return mul_div(assets, self._factor(), HEALTH_FACTOR_SCALE, round_up=round_up)

    def adjust_shares(self, shares: int, *, round_up: bool = False) -> int:
        return mul_div(shares, HEALTH_FACTOR_SCALE, self._factor(), round_up=round_up)

    def to_share_space(self, assets: int, total_assets: int, total_shares: int, *, round_up: bool = False) -> int:
        adjusted = self.adjust_assets(assets, round_up=round_up)
        return convert_to_shares(adjusted, total_assets, total_shares, round_up=round_up)

    def to_asset_space(self, shares: int, total_assets: int, total_shares: int, *, round_up: bool = False) -> int:
        adjusted = self.adjust_shares(shares, round_up=round_up)
        return convert_to_assets(adjusted, total_assets, total_shares, round_up=round_up)

    def update(self, target_health_factor: int) -> int:
        """Set a new target. Returns the previous one."""
        if target_health_factor == 0:
            raise DivisionByZeroHealthFactor()
        previous = self.target_health_factor
        self.target_health_factor = target_health_factor
        logger.info("Target health factor %s -> %s", previous, target_health_factor)
        return previous
