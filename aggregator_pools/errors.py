class AggregatorError(Exception):
    """Base class for every failure that aborts a transaction."""


class Unauthorized(AggregatorError):
    pass


class AlreadyInitialized(AggregatorError):
    pass


class NotInitialized(AggregatorError):
    pass


class ZeroAmount(AggregatorError):
    pass


class InsufficientShares(AggregatorError):
    pass


class InsufficientLiquidity(AggregatorError):
    pass


class InsufficientBalance(AggregatorError):
    pass


class InsufficientAllowance(AggregatorError):
    pass


class CapExceeded(AggregatorError):
    pass


class NonZeroDebt(AggregatorError):
    pass


class Shutdown(AggregatorError):
    pass


class NotRegisteredInVault(AggregatorError):
    pass


class NotWhitelisted(AggregatorError):
    pass


class UnknownLender(AggregatorError):
    pass


class LenderAlreadyAdded(AggregatorError):
    pass


class InvalidLender(AggregatorError):
    pass


class InvalidFee(AggregatorError):
    pass


class InvalidLimit(AggregatorError):
    pass


class Reentrancy(AggregatorError):
    pass


class InvalidAmount(AggregatorError, ValueError):
    pass


class InvalidReceiver(AggregatorError, ValueError):
    pass


class InvalidConfig(AggregatorError, ValueError):
    pass
