"""
Share accounting for the vault.

Shares are an ERC20 claim on `total_assets()`. Conversions are plain integer fixed point:
anything paid out to a user rounds down and anything charged to a user rounds up, so no
sequence of conversions can create assets out of rounding.
"""
import logging
from enum import Enum

from .env import Env
from .tokens import ERC20

logger = logging.getLogger(__name__)


class Rounding(Enum):
    DOWN = "down"
    UP = "up"


def mul_div(x: int, y: int, denominator: int, rounding: Rounding = Rounding.DOWN) -> int:
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")
    result, remainder = divmod(x * y, denominator)
    if rounding is Rounding.UP and remainder:
        result += 1
    return result


class ShareLedger(ERC20):
    def __init__(self, env: Env, name: str = "", symbol: str = "", decimals: int = 0, address=None):
        super().__init__(env, name, symbol, decimals, address)

    def total_assets(self) -> int:
        raise NotImplementedError

    def _convert_to_shares(self, assets: int, rounding: Rounding) -> int:
        supply = self.total_supply
        total = self.total_assets()
        if supply == 0:
            return assets
        if total == 0:
            # shares outstanding but nothing backing them, new assets would be captured by old holders
            return 0
        return mul_div(assets, supply, total, rounding)

    def _convert_to_assets(self, shares: int, rounding: Rounding) -> int:
        supply = self.total_supply
        if supply == 0:
            return shares
        return mul_div(shares, self.total_assets(), supply, rounding)

    def convert_to_shares(self, assets: int) -> int:
        return self._convert_to_shares(assets, Rounding.DOWN)

    def convert_to_assets(self, shares: int) -> int:
        return self._convert_to_assets(shares, Rounding.DOWN)

    def preview_deposit(self, assets: int) -> int:
        return self._convert_to_shares(assets, Rounding.DOWN)

    def preview_mint(self, shares: int) -> int:
        return self._convert_to_assets(shares, Rounding.UP)

    def preview_withdraw(self, assets: int) -> int:
        return self._convert_to_shares(assets, Rounding.UP)

    def preview_redeem(self, shares: int) -> int:
        return self._convert_to_assets(shares, Rounding.DOWN)

    def price_per_share(self) -> int:
        """Assets backing one whole share (10**decimals units)."""
        return self._convert_to_assets(10**self.decimals, Rounding.DOWN)
