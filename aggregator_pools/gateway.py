import logging

from .constants import UTILIZATION_PRECISION
from .env import Contract, Env, as_address, external
from .errors import InvalidLimit, Unauthorized
from .shares import Rounding, mul_div

logger = logging.getLogger(__name__)


class LiquidityGateway(Contract):
    """
    Borrower entrypoint in front of market lenders.

    Before a borrow pushes a market past `utilization_limit` the gateway asks the debt manager
    to supply the missing amount through that market's lender, then borrows.
    """

    def __init__(self, env: Env, manager, utilization_limit: int, owner=None, address=None):
        self._check_limit(utilization_limit)
        super().__init__(env, address)
        self.manager = env.at(manager)
        self.owner = as_address(owner) if owner else env.msg_sender
        self.utilization_limit = utilization_limit

    @staticmethod
    def _check_limit(limit: int):
        if not 0 < limit <= UTILIZATION_PRECISION:
            raise InvalidLimit(f"utilization limit {limit} outside (0, {UTILIZATION_PRECISION}]")

    @external
    def set_utilization_limit(self, limit: int):
        if self.msg_sender != self.owner:
            raise Unauthorized(f"{self.msg_sender} is not gateway owner")
        self._check_limit(limit)
        self.utilization_limit = limit
        self._log("UtilizationLimitSet", limit=limit)

    def utilization(self, lender) -> int:
        return self.env.at(lender).market.utilization()

    def shortfall(self, lender, amount: int) -> int:
        """Supply the market needs so that borrowing `amount` stays at the utilization limit."""
        market = self.env.at(lender).market
        supplied, borrowed = market.totals()
        borrowed += amount
        required = mul_div(borrowed, UTILIZATION_PRECISION, self.utilization_limit, Rounding.UP)
        return max(required - supplied, 0)

    @external
    def borrow_asset(self, lender, amount: int, receiver) -> int:
        lender = self.env.at(lender)
        needed = self.shortfall(lender, amount)
        added = 0
        if needed:
            added = self.manager.request_liquidity(needed, lender.address, sender=self.address)
            logger.info("requested %s for %s, got %s", needed, lender.name, added)
        lender.market.borrow(amount, receiver, sender=self.address)
        self._log("Borrowed", lender=lender.address, receiver=as_address(receiver), amount=amount, added=added)
        return added
