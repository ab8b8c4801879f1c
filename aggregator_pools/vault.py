"""
Aggregator vault.

Holds the idle base asset, issues shares against it and lends it out to registered lenders.
The ledger is two numbers - `total_idle` (assets sitting in the vault) and `total_debt`
(assets the vault believes each lender holds) - and `total_assets()` is always their sum.
Lender balances drift from recorded debt as they earn or lose, `process_report` is the only
thing that brings the two back together and turns the difference into share price.
"""
import dataclasses
import logging
from typing import List, Tuple

from .constants import API_VERSION, CONTRACT_NAME, FEE_COEFFICIENT, MAX_UINT, ZERO_ADDRESS
from .env import Env, as_address, external, nonreentrant
from .errors import (
    AlreadyInitialized,
    InsufficientLiquidity,
    InsufficientShares,
    InvalidFee,
    InvalidLender,
    NonZeroDebt,
    NotInitialized,
    Shutdown,
    Unauthorized,
    ZeroAmount,
)
from .lenders import BaseLender
from .registry import LenderEntry, LenderRegistry
from .shares import ShareLedger, mul_div

logger = logging.getLogger(__name__)


class Vault(ShareLedger):
    CONTRACT_NAME = CONTRACT_NAME
    API_VERSION = API_VERSION
    FEE_COEFFICIENT = FEE_COEFFICIENT

    def __init__(self, env: Env, admin=None, address=None):
        super().__init__(env, address=address)
        self.asset = None
        self.initialized = False
        self.admin = as_address(admin) if admin else env.msg_sender
        self.admin_fee = 0
        self.treasury = ZERO_ADDRESS
        self.protocol_fee = 0
        self.manager = ZERO_ADDRESS
        self.total_debt = 0
        self.total_idle = 0
        self.minimum_total_idle = 0
        self.is_shutdown = False
        self.registry = LenderRegistry()

    ###########
    # Roles
    ###########

    def _only_admin(self):
        if self.msg_sender != self.admin:
            raise Unauthorized(f"{self.msg_sender} is not vault admin")

    def _only_admin_or_manager(self):
        if self.msg_sender not in (self.admin, self.manager):
            raise Unauthorized(f"{self.msg_sender} is not vault admin or manager")

    def _require_initialized(self):
        if not self.initialized:
            raise NotInitialized(self.address)

    @staticmethod
    def _check_fees(admin_fee: int, protocol_fee: int):
        if admin_fee < 0 or protocol_fee < 0 or admin_fee + protocol_fee > FEE_COEFFICIENT:
            raise InvalidFee(f"admin {admin_fee} + protocol {protocol_fee} bps over {FEE_COEFFICIENT}")

    ###########
    # Admin
    ###########

    @external
    def init(self, asset, name: str, symbol: str, decimals: int):
        if self.initialized:
            raise AlreadyInitialized(self.address)
        self._only_admin()
        self.asset = self.env.at(asset)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.initialized = True
        logger.info("vault %s initialized for %s as %s", self.address, self.asset.symbol, symbol)
        self._log("Initialized", asset=self.asset.address, name=name, symbol=symbol, decimals=decimals)

    @external
    def set_admin(self, new_admin, admin_fee: int):
        self._only_admin()
        self._check_fees(admin_fee, self.protocol_fee)
        self.admin = as_address(new_admin)
        self.admin_fee = admin_fee
        self._log("AdminSet", admin=self.admin, fee=admin_fee)

    @external
    def set_treasury(self, treasury, protocol_fee: int):
        self._only_admin()
        self._check_fees(self.admin_fee, protocol_fee)
        if protocol_fee and as_address(treasury) == ZERO_ADDRESS:
            raise InvalidFee("protocol fee needs a treasury")
        self.treasury = as_address(treasury)
        self.protocol_fee = protocol_fee
        self._log("TreasurySet", treasury=self.treasury, fee=protocol_fee)

    @external
    def set_minimum_total_idle(self, amount: int):
        self._only_admin()
        self.minimum_total_idle = amount
        self._log("MinimumTotalIdleSet", amount=amount)

    @external
    def set_manager(self, manager):
        self._only_admin()
        self.manager = as_address(manager)
        self._log("ManagerSet", manager=self.manager)

    @external
    def set_shutdown(self, shutdown: bool):
        self._only_admin()
        if self.is_shutdown and not shutdown:
            raise Shutdown("shutdown is permanent")
        if shutdown and not self.is_shutdown:
            logger.warning("vault %s shutting down with %s debt outstanding", self.address, self.total_debt)
        self.is_shutdown = shutdown
        self._log("Shutdown", shutdown=shutdown)

    ###########
    # ERC4626
    ###########

    def total_assets(self) -> int:
        return self.total_idle + self.total_debt

    def max_deposit(self, receiver=None) -> int:
        return 0 if self.is_shutdown else MAX_UINT

    def max_withdraw(self, owner) -> int:
        return min(self.convert_to_assets(self.balance_of(owner)), self.total_idle)

    @external
    @nonreentrant
    def deposit(self, assets: int, receiver) -> int:
        self._require_initialized()
        if assets == 0:
            raise ZeroAmount("deposit")
        if self.is_shutdown:
            raise Shutdown("no deposits after shutdown")
        shares = self.preview_deposit(assets)
        if shares == 0:
            raise ZeroAmount(f"{assets} assets mint no shares")
        self._deposit(self.msg_sender, as_address(receiver), assets, shares)
        return shares

    @external
    @nonreentrant
    def mint(self, shares: int, receiver) -> int:
        self._require_initialized()
        if shares == 0:
            raise ZeroAmount("mint")
        if self.is_shutdown:
            raise Shutdown("no deposits after shutdown")
        assets = self.preview_mint(shares)
        if assets == 0:
            raise ZeroAmount(f"{shares} shares cost no assets")
        self._deposit(self.msg_sender, as_address(receiver), assets, shares)
        return assets

    def _deposit(self, sender: str, receiver: str, assets: int, shares: int):
        self.total_idle += assets
        self._mint(receiver, shares)
        self.asset.transfer_from(sender, self.address, assets, sender=self.address)
        logger.debug("%s deposited %s for %s shares to %s", sender, assets, shares, receiver)
        self._log("Deposit", sender=sender, owner=receiver, assets=assets, shares=shares)

    @external
    @nonreentrant
    def withdraw(self, assets: int, receiver, owner) -> int:
        self._require_initialized()
        if assets == 0:
            raise ZeroAmount("withdraw")
        owner = as_address(owner)
        if self.convert_to_assets(self.balance_of(owner)) < assets:
            raise InsufficientShares(f"{owner} cant withdraw {assets}")
        if assets > self.total_idle:
            raise InsufficientLiquidity(f"{assets} requested, {self.total_idle} idle")
        shares = self.preview_withdraw(assets)
        self._withdraw(self.msg_sender, as_address(receiver), owner, assets, shares)
        return shares

    @external
    @nonreentrant
    def redeem(self, shares: int, receiver, owner) -> int:
        self._require_initialized()
        if shares == 0:
            raise ZeroAmount("redeem")
        owner = as_address(owner)
        if self.balance_of(owner) < shares:
            raise InsufficientShares(f"{owner} cant redeem {shares}")
        assets = self.preview_redeem(shares)
        if assets == 0:
            raise ZeroAmount(f"{shares} shares redeem no assets")
        if assets > self.total_idle:
            raise InsufficientLiquidity(f"{assets} requested, {self.total_idle} idle")
        self._withdraw(self.msg_sender, as_address(receiver), owner, assets, shares)
        return assets

    def _withdraw(self, sender: str, receiver: str, owner: str, assets: int, shares: int):
        if sender != owner:
            self._spend_allowance(owner, sender, shares)
        self._burn(owner, shares)
        self.total_idle -= assets
        self.asset.transfer(receiver, assets, sender=self.address)
        logger.debug("%s withdrew %s for %s shares of %s", sender, assets, shares, owner)
        self._log("Withdraw", sender=sender, receiver=receiver, owner=owner, assets=assets, shares=shares)

    ###########
    # Lenders
    ###########

    def get_lenders(self) -> List[str]:
        return self.registry.lenders()

    def get_lender_data(self, lender) -> LenderEntry:
        return dataclasses.replace(self.registry.get(as_address(lender)))

    @external
    def add_lender(self, lender, max_debt: int):
        self._only_admin()
        self._require_initialized()
        if self.is_shutdown:
            raise Shutdown("cant add lenders after shutdown")
        lender = self.env.at(lender)
        if not isinstance(lender, BaseLender):
            raise InvalidLender(f"{lender} is not a lender")
        if lender.asset.address != self.asset.address:
            raise InvalidLender(f"{lender} lends {lender.asset.symbol}, vault holds {self.asset.symbol}")
        if lender.aggregator != self.address:
            raise InvalidLender(f"{lender} reports to {lender.aggregator}")
        self.registry.add(lender.address, max_debt)
        logger.info("vault %s added lender %s (%s) max debt %s", self.address, lender.name, lender.address, max_debt)
        self._log("LenderAdded", lender=lender.address, max_debt=max_debt)

    @external
    def remove_lender(self, lender, force: bool = False):
        lender = as_address(lender)
        entry = self.registry.get(lender)
        if self.msg_sender != self.admin:
            # manager may only clean up lenders that carry no debt
            if self.msg_sender != self.manager or entry.current_debt != 0:
                raise Unauthorized(f"{self.msg_sender} cant remove {lender}")
        if entry.current_debt != 0:
            if not force:
                raise NonZeroDebt(f"{lender} still owes {entry.current_debt}")
            self._report(entry)
            if entry.current_debt != 0:
                raise NonZeroDebt(f"{lender} still holds {entry.current_debt} after report")
        self.registry.remove(lender)
        logger.info("vault %s removed lender %s", self.address, lender)
        self._log("LenderRemoved", lender=lender, forced=force)

    @external
    def update_max_debt_for_lender(self, lender, new_max_debt: int):
        self._only_admin()
        entry = self.registry.get(as_address(lender))
        entry.max_debt = new_max_debt
        self._log("UpdatedMaxDebt", lender=entry.lender, max_debt=new_max_debt)

    @external
    @nonreentrant
    def update_debt(self, lender, target_debt: int) -> int:
        """
        Move the lender's debt toward `target_debt` as far as caps and liquidity allow.

        Returns the amount of assets actually moved in either direction. Hitting a cap is
        not an error, the caller gets a smaller number back.
        """
        self._only_admin_or_manager()
        entry = self.registry.get(as_address(lender))
        lender = self.env.at(entry.lender)
        current = entry.current_debt

        if target_debt > current:
            if self.is_shutdown:
                raise Shutdown("cant increase debt after shutdown")
            moved = min(
                target_debt - current,
                max(entry.max_debt - current, 0),
                max(self.total_idle - self.minimum_total_idle, 0),
                lender.max_deposit(),
            )
            if moved == 0:
                logger.info("no debt available for %s: target %s current %s", entry.lender, target_debt, current)
                return 0
            # book it before the lender gets control
            entry.current_debt += moved
            self.total_debt += moved
            self.total_idle -= moved
            self.asset.transfer(lender.address, moved, sender=self.address)
            lender.deposit(moved, sender=self.address)
        elif target_debt < current:
            requested = min(current - target_debt, lender.max_withdraw())
            if requested == 0:
                logger.info("%s has nothing withdrawable toward target %s", entry.lender, target_debt)
                return 0
            before = self.asset.balance_of(self.address)
            lender.withdraw(requested, sender=self.address)
            moved = self.asset.balance_of(self.address) - before
            repaid = min(moved, entry.current_debt)
            entry.current_debt -= repaid
            self.total_debt -= repaid
            self.total_idle += moved
            if moved < requested:
                logger.warning("%s returned %s of %s requested", entry.lender, moved, requested)
        else:
            return 0

        logger.debug("debt of %s %s -> %s", entry.lender, current, entry.current_debt)
        self._log("DebtUpdated", lender=entry.lender, current_debt=current, new_debt=entry.current_debt)
        return moved

    ###########
    # Reporting
    ###########

    @external
    @nonreentrant
    def process_report(self, lender) -> Tuple[int, int]:
        self._only_admin_or_manager()
        return self._report(self.registry.get(as_address(lender)))

    def _report(self, entry: LenderEntry) -> Tuple[int, int]:
        live = self.env.at(entry.lender).total_assets()
        gain = loss = 0
        fee_shares = 0
        if live > entry.current_debt:
            gain = live - entry.current_debt
            entry.current_debt += gain
            self.total_debt += gain
            fee_shares = self._mint_fees(gain * (self.admin_fee + self.protocol_fee) // FEE_COEFFICIENT)
        elif live < entry.current_debt:
            loss = entry.current_debt - live
            entry.current_debt -= loss
            self.total_debt -= loss
            logger.warning("lender %s reported a loss of %s", entry.lender, loss)

        self._log("Reported", lender=entry.lender, gain=gain, loss=loss,
                  current_debt=entry.current_debt, fee_shares=fee_shares)
        return gain, loss

    def _mint_fees(self, fee_assets: int) -> int:
        """Mint shares worth exactly `fee_assets` at the post-gain price, rounded down."""
        if fee_assets == 0:
            return 0
        supply = self.total_supply
        if supply == 0:
            fee_shares = fee_assets
        else:
            fee_shares = mul_div(fee_assets, supply, max(self.total_assets() - fee_assets, 1))
        admin_shares = mul_div(fee_shares, self.admin_fee, self.admin_fee + self.protocol_fee)
        protocol_shares = fee_shares - admin_shares
        if admin_shares:
            self._mint(self.admin, admin_shares)
        if protocol_shares:
            self._mint(self.treasury, protocol_shares)
        logger.info("minted fee shares admin %s protocol %s for %s assets", admin_shares, protocol_shares, fee_assets)
        return fee_shares
