import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List

from .env import Contract, Env, as_address, external
from .errors import (
    CapExceeded,
    LenderAlreadyAdded,
    NotRegisteredInVault,
    NotWhitelisted,
    Unauthorized,
    UnknownLender,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    lender: str
    debt: int


class DebtManager(Contract):
    """
    Allocator for one vault.

    Keeps its own whitelist of lenders it may move debt between and of gateways allowed to
    pull liquidity just in time. All ledger changes go through `Vault.update_debt`.
    """

    def __init__(self, env: Env, vault, address=None):
        super().__init__(env, address)
        self.vault = env.at(vault)
        self.lenders: List[str] = []
        self.gateways: Dict[str, bool] = {}

    def _only_vault_admin(self):
        if self.msg_sender != self.vault.admin:
            raise Unauthorized(f"{self.msg_sender} is not admin of {self.vault.address}")

    def _require_whitelisted(self, lender: str):
        if lender not in self.lenders:
            raise NotWhitelisted(f"{lender} is not managed by {self.address}")

    def get_lenders(self) -> List[str]:
        return list(self.lenders)

    def is_gateway(self, gateway) -> bool:
        return self.gateways.get(as_address(gateway), False)

    @external
    def add_lender(self, lender):
        self._only_vault_admin()
        lender = as_address(lender)
        if lender not in self.vault.registry:
            raise NotRegisteredInVault(lender)
        if lender in self.lenders:
            raise LenderAlreadyAdded(lender)
        self.lenders.append(lender)
        self._log("LenderAdded", lender=lender)

    @external
    def remove_lender(self, lender):
        lender = as_address(lender)
        if lender not in self.lenders:
            raise UnknownLender(lender)
        # once the vault dropped the lender there is nothing left to protect
        if lender in self.vault.registry:
            self._only_vault_admin()
        self.lenders.remove(lender)
        self._log("LenderRemoved", lender=lender)

    @external
    def set_whitelisted_gateway(self, gateway, allowed: bool):
        self._only_vault_admin()
        gateway = as_address(gateway)
        self.gateways[gateway] = allowed
        self._log("GatewayWhitelisted", gateway=gateway, allowed=allowed)

    @external
    def manual_allocation(self, positions: Iterable[Position]) -> List[int]:
        """
        Apply `positions` in the given order as one batch.

        Order is the caller's business: an increase listed before the decrease that would fund
        it just gets capped by idle. Going over a lender's max debt or its deposit limit fails
        the whole batch.
        """
        self._only_vault_admin()
        positions = [Position(as_address(p.lender), p.debt) for p in positions]
        moved = []
        for position in positions:
            self._require_whitelisted(position.lender)
            entry = self.vault.get_lender_data(position.lender)
            if position.debt > entry.max_debt:
                raise CapExceeded(f"{position.lender} max debt {entry.max_debt}, {position.debt} requested")
            increase = position.debt - entry.current_debt
            if increase > 0:
                limit = self.env.at(position.lender).max_deposit()
                if increase > limit:
                    raise CapExceeded(f"{position.lender} takes at most {limit}, {increase} requested")
            moved.append(self.vault.update_debt(position.lender, position.debt, sender=self.address))

        for lender in {p.lender for p in positions}:
            entry = self.vault.get_lender_data(lender)
            if entry.current_debt > entry.max_debt:
                raise CapExceeded(f"{lender} ended at {entry.current_debt} over max debt {entry.max_debt}")

        logger.info("allocated %s positions, moved %s", len(positions), moved)
        self._log("Allocated", positions=positions, moved=moved)
        return moved

    @external
    def request_liquidity(self, amount: int, lender) -> int:
        """Top `lender` up by as much of `amount` as the vault can spare right now."""
        if not self.gateways.get(self.msg_sender, False):
            raise Unauthorized(f"{self.msg_sender} is not a whitelisted gateway")
        lender = as_address(lender)
        self._require_whitelisted(lender)
        if self.vault.is_shutdown or amount == 0:
            return 0
        entry = self.vault.get_lender_data(lender)
        added = self.vault.update_debt(lender, entry.current_debt + amount, sender=self.address)
        if added < amount:
            logger.warning("liquidity request for %s filled %s of %s", lender, added, amount)
        self._log("LiquidityRequested", gateway=self.msg_sender, lender=lender, requested=amount, added=added)
        return added
