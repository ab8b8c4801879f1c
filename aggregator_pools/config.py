import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from eth_utils import to_checksum_address

from .constants import FEE_COEFFICIENT, ZERO_ADDRESS
from .errors import InvalidConfig, InvalidFee

logger = logging.getLogger(__name__)


@dataclass
class AggregatorConfig:
    """Everything needed to stand up a new aggregator vault."""

    name: str
    symbol: str
    decimals: int = 18
    admin_fee: int = 0
    protocol_fee: int = 0
    minimum_total_idle: int = 0
    treasury: str = ZERO_ADDRESS
    admin: str = ZERO_ADDRESS

    def __post_init__(self):
        self.treasury = to_checksum_address(self.treasury)
        self.admin = to_checksum_address(self.admin)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AggregatorConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise InvalidConfig(f"unknown aggregator config keys: {sorted(unknown)}")
        return cls(**raw)

    def validate(self) -> "AggregatorConfig":
        if self.admin_fee < 0 or self.protocol_fee < 0:
            raise InvalidFee("fees cant be negative")
        if self.admin_fee + self.protocol_fee > FEE_COEFFICIENT:
            raise InvalidFee(f"admin {self.admin_fee} + protocol {self.protocol_fee} bps over {FEE_COEFFICIENT}")
        if self.protocol_fee and self.treasury == ZERO_ADDRESS:
            raise InvalidConfig("protocol fee needs a treasury")
        if self.minimum_total_idle < 0:
            raise InvalidConfig("minimum total idle cant be negative")
        return self
