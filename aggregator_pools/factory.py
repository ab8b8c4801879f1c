import logging
from typing import Iterable, List

from .config import AggregatorConfig
from .constants import ZERO_ADDRESS
from .env import Contract, Env, as_address, external
from .errors import Unauthorized
from .vault import Vault

logger = logging.getLogger(__name__)


class DataProvider(Contract):
    """Discovery service listing every vault the factory created."""

    def __init__(self, env: Env, owner=None, address=None):
        super().__init__(env, address)
        self.owner = as_address(owner) if owner else env.msg_sender
        self.factory = ZERO_ADDRESS
        self.aggregators: List[str] = []

    @external
    def set_factory(self, factory):
        if self.msg_sender != self.owner:
            raise Unauthorized(f"{self.msg_sender} is not data provider owner")
        self.factory = as_address(factory)
        self._log("FactorySet", factory=self.factory)

    @external
    def register_aggregator(self, vault):
        if self.msg_sender != self.factory:
            raise Unauthorized(f"{self.msg_sender} is not the registered factory")
        self.aggregators.append(as_address(vault))
        self._log("AggregatorRegistered", aggregator=as_address(vault))

    def get_aggregators(self) -> List[str]:
        return list(self.aggregators)


class AggregatorFactory(Contract):
    def __init__(self, env: Env, data_provider, address=None):
        super().__init__(env, address)
        self.owner = env.msg_sender
        self.data_provider = env.at(data_provider)

    @external
    def create(self, config: AggregatorConfig, asset, silos: Iterable = ()) -> Vault:
        """
        Deploy and wire a vault in one transaction.

        Each silo is a template lender, it gets cloned for the new vault and added with zero max
        debt so nothing is allocated until the admin raises the caps. Admin rights move to
        `config.admin` (the caller when unset) as the last step.
        """
        if self.msg_sender != self.owner:
            raise Unauthorized(f"{self.msg_sender} is not factory owner")
        config.validate()
        creator = self.msg_sender

        vault = Vault(self.env, admin=self.address)
        vault.init(asset, config.name, config.symbol, config.decimals, sender=self.address)
        if config.treasury != ZERO_ADDRESS:
            vault.set_treasury(config.treasury, config.protocol_fee, sender=self.address)
        vault.set_minimum_total_idle(config.minimum_total_idle, sender=self.address)

        for silo in silos:
            template = self.env.at(silo)
            lender = template.clone(vault.address, f"{config.symbol} {template.name}", sender=self.address)
            vault.add_lender(lender, 0, sender=self.address)

        admin = config.admin if config.admin != ZERO_ADDRESS else creator
        vault.set_admin(admin, config.admin_fee, sender=self.address)
        self.data_provider.register_aggregator(vault, sender=self.address)

        logger.info("created aggregator %s (%s) with %s lenders", vault.address, config.symbol, len(vault.registry))
        self._log("AggregatorCreated", aggregator=vault.address, asset=vault.asset.address, admin=admin)
        return vault
