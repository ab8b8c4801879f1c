ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT = 2**256 - 1

FEE_COEFFICIENT = 10000  # 100% in bps
UTILIZATION_PRECISION = 100000  # 100% with 3 decimals, 80000 = 80%
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

CONTRACT_NAME = "Aggregator Pool"
API_VERSION = "0.0.001"
