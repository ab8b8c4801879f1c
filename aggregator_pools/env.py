"""
Execution environment every pool component runs in.

An ``Env`` plays the part of the ledger: it hands out identities, keeps the clock, owns the
arena of deployed instances and records events. State-changing entrypoints are wrapped with
``external`` so that each top-level call is one transaction - if anything raises inside it,
every instance touched by the call (and any instance created by it) is put back exactly as it
was before the call started.
"""
import copy
import functools
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from eth_utils import is_address, keccak, to_bytes, to_checksum_address

from .errors import Reentrancy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    name: str
    address: str
    args_map: Dict[str, Any] = field(default_factory=dict)


class Env:
    def __init__(self, seed: str = "aggregator-pools", timestamp: Optional[int] = None):
        self.seed = seed
        self.timestamp = int(time.time()) if timestamp is None else timestamp
        self._nonce = 0
        self._contracts: Dict[str, "Contract"] = {}
        self._senders: List[str] = []
        self._logs: List[Event] = []
        self._last_logs: List[Event] = []
        self.eoa = self.generate_address("eoa")

    # identities

    def generate_address(self, alias: Optional[str] = None) -> str:
        self._nonce += 1
        digest = keccak(text=f"{self.seed}:{alias or ''}:{self._nonce}")
        return to_checksum_address(digest[-20:])

    def derive_address(self, deployer: str, salt: str) -> str:
        """CREATE2 style address for an instance deployed by `deployer`."""
        digest = keccak(to_bytes(hexstr=deployer) + keccak(text=salt))
        return to_checksum_address(digest[-20:])

    @contextmanager
    def prank(self, address: str):
        """Use `address` as the default caller inside the block."""
        previous = self.eoa
        self.eoa = to_checksum_address(address)
        try:
            yield self.eoa
        finally:
            self.eoa = previous

    # clock

    def time_travel(self, seconds: int):
        if seconds < 0:
            raise ValueError("cant travel back in time")
        self.timestamp += seconds

    # arena

    def register(self, contract: "Contract", address: Optional[str] = None) -> str:
        address = to_checksum_address(address) if address else self.generate_address(type(contract).__name__)
        if address in self._contracts:
            raise ValueError(f"address {address} already deployed")
        self._contracts[address] = contract
        logger.debug("deployed %s at %s", type(contract).__name__, address)
        return address

    def at(self, target: Union[str, "Contract"]) -> "Contract":
        if isinstance(target, Contract):
            return target
        if not is_address(target):
            raise ValueError(f"not an address: {target}")
        return self._contracts[to_checksum_address(target)]

    def contracts(self) -> List["Contract"]:
        return list(self._contracts.values())

    # call context

    @property
    def msg_sender(self) -> str:
        return self._senders[-1] if self._senders else self.eoa

    @property
    def in_transaction(self) -> bool:
        return bool(self._senders)

    @contextmanager
    def transaction(self, sender: str):
        outermost = not self._senders
        if outermost:
            snapshot = self._snapshot()
            self._logs = []
        self._senders.append(sender)
        try:
            yield self
        except Exception as e:
            if outermost:
                logger.debug("reverting transaction from %s: %r", sender, e)
                self._restore(snapshot)
                self._logs = []
                self._last_logs = []
            raise
        else:
            if outermost:
                self._last_logs = self._logs
        finally:
            self._senders.pop()

    @contextmanager
    def anchor(self):
        """Undo every state change made inside the block, transactions included."""
        snapshot = self._snapshot()
        timestamp, eoa = self.timestamp, self.eoa
        try:
            yield self
        finally:
            self._restore(snapshot)
            self.timestamp, self.eoa = timestamp, eoa
            self._logs, self._last_logs = [], []

    def _snapshot(self):
        # instances keep referencing each other, only their own state is copied
        memo = {id(self): self}
        for contract in self._contracts.values():
            memo[id(contract)] = contract
        states = {
            address: copy.deepcopy(dict(vars(contract)), memo)
            for address, contract in self._contracts.items()
        }
        return dict(self._contracts), states

    def _restore(self, snapshot):
        arena, states = snapshot
        for address, state in states.items():
            contract = arena[address]
            contract.__dict__.clear()
            contract.__dict__.update(state)
        self._contracts = arena

    # events

    def log(self, event: Event):
        self._logs.append(event)

    def get_logs(self) -> List[Event]:
        return list(self._last_logs)


class Contract:
    """Anything deployed into an `Env`: has an address, emits events, takes calls."""

    def __init__(self, env: Env, address: Optional[str] = None):
        self.env = env
        self.address = env.register(self, address)

    @property
    def msg_sender(self) -> str:
        return self.env.msg_sender

    def _log(self, event: str, /, **args):
        self.env.log(Event(event, self.address, args))

    def get_logs(self) -> List[Event]:
        """Events this instance emitted in the last completed transaction."""
        return [e for e in self.env.get_logs() if e.address == self.address]

    def __repr__(self):
        return f"<{type(self).__name__} {self.address}>"


def as_address(target: Union[str, Contract]) -> str:
    if isinstance(target, Contract):
        return target.address
    return to_checksum_address(target)


def external(fn):
    """Make `fn` a transactional entrypoint called as `fn(..., sender=caller)`."""
    @functools.wraps(fn)
    def entrypoint(self, *args, sender=None, **kwargs):
        caller = self.env.eoa if sender is None else as_address(sender)
        with self.env.transaction(caller):
            return fn(self, *args, **kwargs)
    return entrypoint


def nonreentrant(fn):
    @functools.wraps(fn)
    def guarded(self, *args, **kwargs):
        if getattr(self, "_entered", False):
            raise Reentrancy(f"{type(self).__name__}.{fn.__name__}")
        self._entered = True
        try:
            return fn(self, *args, **kwargs)
        finally:
            self._entered = False
    return guarded
