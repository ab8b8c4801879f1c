from .config import AggregatorConfig
from .constants import FEE_COEFFICIENT, MAX_UINT, UTILIZATION_PRECISION, ZERO_ADDRESS
from .env import Contract, Env, Event
from .errors import AggregatorError
from .factory import AggregatorFactory, DataProvider
from .gateway import LiquidityGateway
from .lenders import BaseLender, LendingMarket, MarketLender, StaticYieldLender
from .manager import DebtManager, Position
from .registry import LenderEntry, LenderRegistry
from .tokens import ERC20, MockERC20
from .vault import Vault

__all__ = [
    "AggregatorConfig",
    "AggregatorError",
    "AggregatorFactory",
    "BaseLender",
    "Contract",
    "DataProvider",
    "DebtManager",
    "Env",
    "ERC20",
    "Event",
    "FEE_COEFFICIENT",
    "LenderEntry",
    "LenderRegistry",
    "LendingMarket",
    "LiquidityGateway",
    "MarketLender",
    "MAX_UINT",
    "MockERC20",
    "Position",
    "StaticYieldLender",
    "UTILIZATION_PRECISION",
    "Vault",
    "ZERO_ADDRESS",
]
