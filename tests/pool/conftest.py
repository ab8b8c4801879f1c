import pytest
from aggregator_pools import LendingMarket, LiquidityGateway, MarketLender, StaticYieldLender
from aggregator_pools.manager import Position

ONE_YEAR_IN_SEC = 60*60*24*365
STATIC_RATE = 1000  # 10% apr in bps
UTILIZATION_LIMIT = 80000  # 80%
MAX_DEBT = 8000
MINIMUM_TOTAL_IDLE = 1000


@pytest.fixture(scope="module")
def borrower(env):
    return env.generate_address("borrower")

@pytest.fixture
def market(env, admin, base_asset):
    with env.prank(admin):
        return LendingMarket(env, base_asset, "LEND money market")

@pytest.fixture
def market_lender(env, admin, vault, base_asset, market):
    with env.prank(admin):
        return MarketLender(env, vault, "Market Lender", base_asset, market=market)

@pytest.fixture
def static_lender(env, admin, vault, base_asset):
    with env.prank(admin):
        return StaticYieldLender(env, vault, "Static Lender", base_asset, rate=STATIC_RATE)

@pytest.fixture
def lenders(vault, manager, admin, market_lender, static_lender):
    """ same shape every aggregator starts with, one lender open and one capped at zero """
    vault.add_lender(market_lender, MAX_DEBT, sender=admin)
    vault.add_lender(static_lender, 0, sender=admin)
    manager.add_lender(market_lender, sender=admin)
    manager.add_lender(static_lender, sender=admin)
    return [market_lender, static_lender]

@pytest.fixture
def gateway(env, admin, manager):
    gateway = LiquidityGateway(env, manager, UTILIZATION_LIMIT, owner=admin)
    manager.set_whitelisted_gateway(gateway, True, sender=admin)
    return gateway

###########
# Higher Order Function Helper Fixtures
###########

@pytest.fixture
def _allocate(manager, admin):
    def allocate(*targets):
        return manager.manual_allocation([Position(lender.address, debt) for lender, debt in targets], sender=admin)
    return allocate

@pytest.fixture
def _assert_conserved(vault, base_asset):
    def check():
        entries = [vault.get_lender_data(l) for l in vault.get_lenders()]
        assert vault.total_debt == sum(e.current_debt for e in entries)
        assert vault.total_assets() == vault.total_idle + sum(e.current_debt for e in entries)
        # idle is always backed by tokens the vault actually holds
        assert base_asset.balance_of(vault) >= vault.total_idle
    return check
