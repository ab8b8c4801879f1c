import logging
import pytest
from aggregator_pools import DebtManager, Env, MockERC20, Vault
from aggregator_pools.constants import MAX_UINT, ZERO_ADDRESS

logging.basicConfig(format='%(asctime)s - %(message)s', level=logging.INFO)

INIT_POOL_BALANCE = 10**25  # 1M @ 18 decimals
INIT_USER_POOL_BALANCE = 5*10**24
POOL_PRICE_DECIMALS = 10**18
ADMIN_FEE = 1000  # 10% in bps
PROTOCOL_FEE = 1000  # 10% in bps
GENESIS = 1_700_000_000


# one ledger per test module, every test gets freshly deployed instances on it
@pytest.fixture(scope="module")
def env():
    return Env(seed="aggregator-pools-tests", timestamp=GENESIS)

# dummy addresses, nothing signs anything
@pytest.fixture(scope="module")
def me(env):
    return env.generate_address("me")

@pytest.fixture(scope="module")
def admin(env):
    return env.generate_address("admin")

@pytest.fixture(scope="module")
def treasury(env):
    return env.generate_address("treasury")

@pytest.fixture(scope="module")
def alice(env):
    return env.generate_address("alice")

@pytest.fixture(scope="module")
def bob(env):
    return env.generate_address("bob")

@pytest.fixture
def base_asset(env, admin):
    with env.prank(admin):
        return MockERC20(env, "Lending Token", "LEND", 18)

@pytest.fixture
def vault(env, admin, treasury, base_asset):
    with env.prank(admin):
        vault = Vault(env)
    vault.init(base_asset, "Aggregator LEND", "agLEND", 18, sender=admin)
    vault.set_admin(admin, ADMIN_FEE, sender=admin)
    vault.set_treasury(treasury, PROTOCOL_FEE, sender=admin)
    return vault

@pytest.fixture
def manager(env, vault, admin):
    manager = DebtManager(env, vault)
    vault.set_manager(manager, sender=admin)
    return manager

@pytest.fixture
def all_erc20_tokens(base_asset, vault):
    return [base_asset, vault]

@pytest.fixture
def all_erc4626_tokens(vault):
    return [vault]

###########
# Higher Order Function Helper Fixtures
###########

@pytest.fixture
def _deposit(vault, base_asset):
    def deposit(amount, receiver):
        base_asset.mint(receiver, amount)
        base_asset.approve(vault, amount, sender=receiver)
        return vault.deposit(amount, receiver, sender=receiver)
    return deposit

@pytest.fixture
def init_token_balances(_deposit, admin, me):
    shares = _deposit(INIT_USER_POOL_BALANCE, me)
    shares2 = _deposit(INIT_USER_POOL_BALANCE, admin)

    assert shares == INIT_USER_POOL_BALANCE  # shares should be 1:1
    assert shares == shares2  # share price shouldnt change

    return INIT_USER_POOL_BALANCE
