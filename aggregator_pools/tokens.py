import logging
from typing import Dict, Tuple

from .constants import MAX_UINT, ZERO_ADDRESS
from .env import Contract, Env, as_address, external
from .errors import InsufficientAllowance, InsufficientBalance, InvalidAmount, InvalidReceiver, Unauthorized

logger = logging.getLogger(__name__)


class ERC20(Contract):
    """
    Fungible balance sheet. Base asset tokens and vault shares both use it.

    Emits `Transfer(sender, receiver, amount)` and `Approval(owner, spender, amount)`.
    """

    def __init__(self, env: Env, name: str, symbol: str, decimals: int, address=None):
        super().__init__(env, address)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.total_supply = 0

    def balance_of(self, owner) -> int:
        return self.balances.get(as_address(owner), 0)

    def allowance(self, owner, spender) -> int:
        return self.allowances.get((as_address(owner), as_address(spender)), 0)

    @external
    def transfer(self, receiver, amount: int) -> bool:
        self._transfer(self.msg_sender, as_address(receiver), amount)
        return True

    @external
    def transfer_from(self, owner, receiver, amount: int) -> bool:
        owner = as_address(owner)
        # owner moving their own tokens needs no approval
        if self.msg_sender != owner:
            self._spend_allowance(owner, self.msg_sender, amount)
        self._transfer(owner, as_address(receiver), amount)
        return True

    @external
    def approve(self, spender, amount: int) -> bool:
        self._approve(self.msg_sender, as_address(spender), amount)
        return True

    @external
    def increase_allowance(self, spender, amount: int) -> bool:
        spender = as_address(spender)
        self._approve(self.msg_sender, spender, min(self.allowance(self.msg_sender, spender) + amount, MAX_UINT))
        return True

    def _approve(self, owner: str, spender: str, amount: int):
        if amount < 0:
            raise InvalidAmount("negative allowance")
        self.allowances[(owner, spender)] = amount
        self._log("Approval", owner=owner, spender=spender, amount=amount)

    def _spend_allowance(self, owner: str, spender: str, amount: int):
        allowed = self.allowance(owner, spender)
        if allowed == MAX_UINT:
            return
        if allowed < amount:
            raise InsufficientAllowance(f"{spender} can spend {allowed} of {owner}, needs {amount}")
        self.allowances[(owner, spender)] = allowed - amount

    def _transfer(self, sender: str, receiver: str, amount: int):
        if amount < 0:
            raise InvalidAmount("negative transfer")
        if receiver == ZERO_ADDRESS:
            raise InvalidReceiver("transfer to zero address")
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalance(f"{sender} holds {balance} {self.symbol}, needs {amount}")
        self.balances[sender] = balance - amount
        self.balances[receiver] = self.balance_of(receiver) + amount
        self._log("Transfer", sender=sender, receiver=receiver, amount=amount)

    def _mint(self, receiver: str, amount: int):
        self.total_supply += amount
        self.balances[receiver] = self.balance_of(receiver) + amount
        self._log("Transfer", sender=ZERO_ADDRESS, receiver=receiver, amount=amount)

    def _burn(self, owner: str, amount: int):
        balance = self.balance_of(owner)
        if balance < amount:
            raise InsufficientBalance(f"{owner} holds {balance} {self.symbol}, cant burn {amount}")
        self.balances[owner] = balance - amount
        self.total_supply -= amount
        self._log("Transfer", sender=owner, receiver=ZERO_ADDRESS, amount=amount)


class MockERC20(ERC20):
    """Base asset for tests and simulations. Anyone can mint, only the holder (or minter) burns."""

    def __init__(self, env: Env, name: str, symbol: str, decimals: int, address=None):
        super().__init__(env, name, symbol, decimals, address)
        self.minter = env.msg_sender

    @external
    def mint(self, receiver, amount: int):
        self._mint(as_address(receiver), amount)

    @external
    def burn(self, owner, amount: int):
        owner = as_address(owner)
        if self.msg_sender not in (owner, self.minter):
            raise Unauthorized(f"{self.msg_sender} cant burn for {owner}")
        self._burn(owner, amount)
