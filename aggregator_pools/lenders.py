"""
Yield sources a vault can lend to.

`BaseLender` is the only surface the vault and the debt manager rely on. Concrete lenders
decide where the assets actually go: `MarketLender` supplies them into a `LendingMarket` that
borrowers draw from, `StaticYieldLender` just sits on them and accrues a fixed rate.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .constants import FEE_COEFFICIENT, MAX_UINT, SECONDS_PER_YEAR, UTILIZATION_PRECISION, ZERO_ADDRESS
from .env import Contract, Env, as_address, external
from .errors import InsufficientBalance, InsufficientLiquidity, InvalidLender, Unauthorized, ZeroAmount
from .shares import Rounding, mul_div
from .tokens import MockERC20

logger = logging.getLogger(__name__)


class LendingMarket(Contract):
    """
    Pooled money market with a kinked interest rate curve.

    Rates are annual and expressed in bps, utilization in `UTILIZATION_PRECISION` units.
    Interest accrues lazily on the env clock whenever the market is touched.
    """

    def __init__(
        self,
        env: Env,
        asset,
        name: str,
        base_rate: int = 0,
        slope1: int = 400,
        slope2: int = 6000,
        optimal_utilization: int = 80000,
        supply_cap: int = MAX_UINT,
        address=None,
    ):
        super().__init__(env, address)
        self.asset = env.at(asset)
        self.name = name
        self.owner = env.msg_sender
        self.base_rate = base_rate
        self.slope1 = slope1
        self.slope2 = slope2
        self.optimal_utilization = optimal_utilization
        self.supply_cap = supply_cap
        self.total_supplied = 0
        self.total_borrowed = 0
        self.total_shares = 0
        self.shares: Dict[str, int] = {}
        # borrowers hold debt shares so accrued interest is split pro rata
        self.debt_shares: Dict[str, int] = {}
        self.total_debt_shares = 0
        self.last_accrual = env.timestamp

    # rates

    def _borrow_rate(self, supplied: int, borrowed: int) -> int:
        utilization = self._utilization(supplied, borrowed)
        if utilization <= self.optimal_utilization:
            return self.base_rate + mul_div(self.slope1, utilization, self.optimal_utilization)
        excess = utilization - self.optimal_utilization
        return (
            self.base_rate
            + self.slope1
            + mul_div(self.slope2, excess, UTILIZATION_PRECISION - self.optimal_utilization)
        )

    @staticmethod
    def _utilization(supplied: int, borrowed: int) -> int:
        if supplied == 0:
            return 0
        return mul_div(borrowed, UTILIZATION_PRECISION, supplied)

    def _accrued(self):
        supplied, borrowed = self.total_supplied, self.total_borrowed
        elapsed = self.env.timestamp - self.last_accrual
        if elapsed > 0 and borrowed > 0:
            interest = mul_div(
                borrowed * self._borrow_rate(supplied, borrowed), elapsed, FEE_COEFFICIENT * SECONDS_PER_YEAR
            )
            supplied += interest
            borrowed += interest
        return supplied, borrowed

    def _accrue(self):
        self.total_supplied, self.total_borrowed = self._accrued()
        self.last_accrual = self.env.timestamp

    def totals(self):
        """(supplied, borrowed) including interest accrued since the last touch."""
        return self._accrued()

    def utilization(self) -> int:
        return self._utilization(*self._accrued())

    def borrow_rate(self) -> int:
        return self._borrow_rate(*self._accrued())

    def supply_apr(self, supplied_delta: int = 0, increase: bool = True) -> int:
        """Supplier APR in bps, optionally as if `supplied_delta` more (or less) were supplied."""
        supplied, borrowed = self._accrued()
        supplied = supplied + supplied_delta if increase else max(supplied - supplied_delta, 0)
        if supplied == 0:
            return 0
        return mul_div(self._borrow_rate(supplied, borrowed), self._utilization(supplied, borrowed), UTILIZATION_PRECISION)

    # balances

    def liquidity(self) -> int:
        supplied, borrowed = self._accrued()
        return supplied - borrowed

    def max_supply(self) -> int:
        supplied, _ = self._accrued()
        return max(self.supply_cap - supplied, 0)

    def balance_of_underlying(self, account) -> int:
        supplied, _ = self._accrued()
        if self.total_shares == 0:
            return 0
        return mul_div(self.shares.get(as_address(account), 0), supplied, self.total_shares)

    def debt_of(self, account) -> int:
        _, borrowed = self._accrued()
        if self.total_debt_shares == 0:
            return 0
        return mul_div(self.debt_shares.get(as_address(account), 0), borrowed, self.total_debt_shares, Rounding.UP)

    # actions

    @external
    def supply(self, amount: int, on_behalf):
        if amount == 0:
            raise ZeroAmount("supply")
        self._accrue()
        if amount > self.supply_cap - self.total_supplied:
            raise InsufficientLiquidity(f"{self.name} supply cap {self.supply_cap} reached")
        on_behalf = as_address(on_behalf)
        if self.total_shares == 0 or self.total_supplied == 0:
            minted = amount
        else:
            minted = mul_div(amount, self.total_shares, self.total_supplied)
        self.shares[on_behalf] = self.shares.get(on_behalf, 0) + minted
        self.total_shares += minted
        self.total_supplied += amount
        self.asset.transfer_from(self.msg_sender, self.address, amount, sender=self.address)
        self._log("Supply", sender=self.msg_sender, on_behalf=on_behalf, amount=amount, shares=minted)
        return minted

    @external
    def redeem(self, amount: int, receiver) -> int:
        if amount == 0:
            raise ZeroAmount("redeem")
        self._accrue()
        if amount > self.total_supplied - self.total_borrowed:
            raise InsufficientLiquidity(f"{self.name} has {self.total_supplied - self.total_borrowed} cash")
        burned = mul_div(amount, self.total_shares, self.total_supplied, Rounding.UP)
        held = self.shares.get(self.msg_sender, 0)
        if burned > held:
            raise InsufficientBalance(f"{self.msg_sender} holds {held} market shares, needs {burned}")
        self.shares[self.msg_sender] = held - burned
        self.total_shares -= burned
        self.total_supplied -= amount
        self.asset.transfer(receiver, amount, sender=self.address)
        self._log("Redeem", sender=self.msg_sender, receiver=as_address(receiver), amount=amount, shares=burned)
        return amount

    @external
    def borrow(self, amount: int, receiver):
        if amount == 0:
            raise ZeroAmount("borrow")
        self._accrue()
        cash = self.total_supplied - self.total_borrowed
        if amount > cash:
            raise InsufficientLiquidity(f"{self.name} has {cash} cash, {amount} requested")
        if self.total_debt_shares == 0 or self.total_borrowed == 0:
            minted = amount
        else:
            minted = mul_div(amount, self.total_debt_shares, self.total_borrowed, Rounding.UP)
        self.debt_shares[self.msg_sender] = self.debt_shares.get(self.msg_sender, 0) + minted
        self.total_debt_shares += minted
        self.total_borrowed += amount
        self.asset.transfer(receiver, amount, sender=self.address)
        logger.debug("%s borrowed %s from %s, utilization %s", self.msg_sender, amount, self.name, self.utilization())
        self._log("Borrow", borrower=self.msg_sender, receiver=as_address(receiver), amount=amount)

    @external
    def repay(self, amount: int, on_behalf) -> int:
        if amount == 0:
            raise ZeroAmount("repay")
        self._accrue()
        on_behalf = as_address(on_behalf)
        held = self.debt_shares.get(on_behalf, 0)
        owed = self.debt_of(on_behalf)
        if amount >= owed:
            amount, burned = owed, held
        else:
            burned = mul_div(amount, self.total_debt_shares, self.total_borrowed)
        self.debt_shares[on_behalf] = held - burned
        self.total_debt_shares -= burned
        self.total_borrowed -= min(amount, self.total_borrowed)
        self.asset.transfer_from(self.msg_sender, self.address, amount, sender=self.address)
        self._log("Repay", sender=self.msg_sender, on_behalf=on_behalf, amount=amount)
        return amount

    @external
    def write_off(self, amount: int):
        """Forgive `amount` of bad debt, the loss is socialized across suppliers."""
        if self.msg_sender != self.owner:
            raise Unauthorized(f"{self.msg_sender} is not {self.name} owner")
        self._accrue()
        amount = min(amount, self.total_borrowed)
        self.total_borrowed -= amount
        self.total_supplied -= amount
        if self.total_borrowed == 0:
            self.debt_shares = {}
            self.total_debt_shares = 0
        logger.warning("%s wrote off %s of bad debt", self.name, amount)
        self._log("WriteOff", amount=amount)


class BaseLender(Contract, ABC):
    """
    Capability interface for a yield source.

    Only the bound aggregator may move funds in and out. Assets arrive by transfer right before
    `deposit` is called and `withdraw` sends whatever it could free back to the aggregator.
    """

    def __init__(self, env: Env, aggregator, name: str, asset, address=None):
        super().__init__(env, address)
        self.aggregator = as_address(aggregator) if aggregator else ZERO_ADDRESS
        self.name = name
        self.asset = env.at(asset)
        self.owner = env.msg_sender

    def _only_aggregator(self):
        if self.msg_sender != self.aggregator:
            raise Unauthorized(f"{self.msg_sender} is not the aggregator of {self.name}")

    @abstractmethod
    def total_assets(self) -> int:
        ...

    @abstractmethod
    def apr(self) -> int:
        ...

    @abstractmethod
    def apr_after_debt_change(self, delta: int, increase: bool) -> int:
        ...

    @abstractmethod
    def max_deposit(self) -> int:
        ...

    @abstractmethod
    def max_withdraw(self) -> int:
        ...

    @abstractmethod
    def _deploy(self, amount: int):
        ...

    @abstractmethod
    def _free(self, amount: int):
        ...

    def _clone_args(self) -> dict:
        return {}

    @external
    def deposit(self, amount: int):
        self._only_aggregator()
        self._deploy(amount)
        self._log("Deposited", amount=amount)

    @external
    def withdraw(self, amount: int) -> int:
        self._only_aggregator()
        amount = min(amount, self.max_withdraw())
        if amount:
            self._free(amount)
            amount = min(amount, self.asset.balance_of(self.address))
            self.asset.transfer(self.aggregator, amount, sender=self.address)
        self._log("Withdrawn", amount=amount)
        return amount

    @external
    def clone(self, aggregator, name: str, **overrides) -> "BaseLender":
        """Deploy a fresh lender of the same kind and configuration bound to `aggregator`."""
        aggregator = as_address(aggregator)
        args = {**self._clone_args(), **overrides}
        address = self.env.derive_address(self.address, f"{aggregator}:{name}")
        lender = type(self)(self.env, aggregator, name, self.asset, address=address, **args)
        lender.owner = self.owner
        logger.info("cloned %s into %s for %s", self.name, lender.address, aggregator)
        self._log("Cloned", lender=lender.address, aggregator=aggregator)
        return lender


class MarketLender(BaseLender):
    def __init__(self, env: Env, aggregator, name: str, asset, market=None, address=None):
        super().__init__(env, aggregator, name, asset, address)
        self.market = env.at(market)

    def _clone_args(self) -> dict:
        return {"market": self.market}

    def total_assets(self) -> int:
        return self.market.balance_of_underlying(self.address) + self.asset.balance_of(self.address)

    def apr(self) -> int:
        return self.market.supply_apr()

    def apr_after_debt_change(self, delta: int, increase: bool) -> int:
        return self.market.supply_apr(delta, increase)

    def max_deposit(self) -> int:
        return self.market.max_supply()

    def max_withdraw(self) -> int:
        return min(self.market.balance_of_underlying(self.address), self.market.liquidity())

    def _deploy(self, amount: int):
        self.asset.approve(self.market.address, amount, sender=self.address)
        self.market.supply(amount, self.address, sender=self.address)

    def _free(self, amount: int):
        self.market.redeem(amount, self.address, sender=self.address)


class StaticYieldLender(BaseLender):
    """
    Holds the asset itself and earns `rate` bps a year, paid out of the asset faucet.

    Simulation only: yield is minted and slashes are burned, so the asset has to be a `MockERC20`.
    """

    def __init__(
        self, env: Env, aggregator, name: str, asset, rate: int = 0, deposit_limit: Optional[int] = None, address=None
    ):
        if not isinstance(env.at(asset), MockERC20):
            raise InvalidLender(f"{name} needs a mintable asset, got {asset}")
        super().__init__(env, aggregator, name, asset, address)
        self.rate = rate
        self.deposit_limit = deposit_limit
        # only funds that came in through `deposit`, donations earn nothing
        self.principal = 0
        self.last_harvest = env.timestamp

    def _clone_args(self) -> dict:
        return {"rate": self.rate, "deposit_limit": self.deposit_limit}

    def _pending(self) -> int:
        elapsed = self.env.timestamp - self.last_harvest
        return mul_div(self.principal * self.rate, elapsed, FEE_COEFFICIENT * SECONDS_PER_YEAR)

    def total_assets(self) -> int:
        return self.principal + self._pending()

    def apr(self) -> int:
        return self.rate

    def apr_after_debt_change(self, delta: int, increase: bool) -> int:
        return self.rate

    def max_deposit(self) -> int:
        if self.deposit_limit is None:
            return MAX_UINT
        return max(self.deposit_limit - self.total_assets(), 0)

    def max_withdraw(self) -> int:
        return self.total_assets()

    @external
    def harvest(self) -> int:
        earned = self._pending()
        self.last_harvest = self.env.timestamp
        if earned:
            self.principal += earned
            self.asset.mint(self.address, earned, sender=self.address)
        self._log("Harvested", amount=earned)
        return earned

    @external
    def slash(self, amount: int):
        if self.msg_sender != self.owner:
            raise Unauthorized(f"{self.msg_sender} is not {self.name} owner")
        self.harvest(sender=self.address)
        amount = min(amount, self.principal)
        self.principal -= amount
        self.asset.burn(self.address, amount, sender=self.address)
        logger.warning("%s slashed by %s", self.name, amount)
        self._log("Slashed", amount=amount)

    def _deploy(self, amount: int):
        # settle yield on the old principal before it grows
        self.harvest(sender=self.address)
        self.principal += amount

    def _free(self, amount: int):
        self.harvest(sender=self.address)
        self.principal -= amount
