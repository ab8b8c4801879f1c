import pytest
from aggregator_pools import DebtManager, StaticYieldLender
from aggregator_pools.errors import (
    CapExceeded,
    LenderAlreadyAdded,
    NotRegisteredInVault,
    NotWhitelisted,
    Unauthorized,
    UnknownLender,
)
from aggregator_pools.manager import Position
from ..utils.events import _find_event, _find_event_by, _find_events
from .conftest import MAX_DEBT


@pytest.mark.manager
def test_manager_whitelist(env, vault, manager, admin, me, base_asset, market_lender):
    with pytest.raises(NotRegisteredInVault):
        manager.add_lender(market_lender, sender=admin)

    vault.add_lender(market_lender, MAX_DEBT, sender=admin)
    with pytest.raises(Unauthorized):
        manager.add_lender(market_lender, sender=me)

    manager.add_lender(market_lender, sender=admin)
    assert manager.get_lenders() == [market_lender.address]
    assert _find_event('LenderAdded', manager.get_logs()).args_map['lender'] == market_lender.address

    with pytest.raises(LenderAlreadyAdded):
        manager.add_lender(market_lender, sender=admin)


@pytest.mark.manager
def test_manager_remove_lender(vault, manager, admin, me, lenders):
    market_lender, static_lender = lenders

    # still listed by the vault, only admin may drop it
    with pytest.raises(Unauthorized):
        manager.remove_lender(static_lender, sender=me)

    # once the vault let go anyone can clean up
    vault.remove_lender(static_lender, False, sender=admin)
    manager.remove_lender(static_lender, sender=me)
    assert manager.get_lenders() == [market_lender.address]

    with pytest.raises(UnknownLender):
        manager.remove_lender(static_lender, sender=admin)

    manager.remove_lender(market_lender, sender=admin)
    assert manager.get_lenders() == []


@pytest.mark.manager
def test_manual_allocation_is_privileged(manager, me, lenders):
    with pytest.raises(Unauthorized):
        manager.manual_allocation([Position(lenders[0].address, 100)], sender=me)


@pytest.mark.manager
def test_manual_allocation_requires_whitelist(env, vault, manager, admin, me, base_asset, lenders, _deposit):
    _deposit(15000, me)
    with env.prank(admin):
        unmanaged = StaticYieldLender(env, vault, "Unmanaged", base_asset)
    vault.add_lender(unmanaged, MAX_DEBT, sender=admin)

    with pytest.raises(NotWhitelisted):
        manager.manual_allocation([Position(unmanaged.address, 100)], sender=admin)
    assert vault.total_debt == 0


@pytest.mark.manager
def test_cap_breach_reverts_whole_batch(vault, manager, admin, me, lenders, _deposit, _allocate):
    market_lender, static_lender = lenders
    _deposit(15000, me)

    # first position is fine on its own, the second one is over its zero cap
    with pytest.raises(CapExceeded):
        _allocate((market_lender, 5000), (static_lender, 100))

    assert vault.get_lender_data(market_lender).current_debt == 0
    assert vault.total_idle == 15000
    assert vault.total_debt == 0
    assert market_lender.total_assets() == 0

    with pytest.raises(CapExceeded):
        _allocate((market_lender, MAX_DEBT + 1))


@pytest.mark.manager
def test_deposit_limit_breach_reverts(env, vault, manager, admin, me, base_asset, _deposit):
    with env.prank(admin):
        small = StaticYieldLender(env, vault, "Small Lender", base_asset, deposit_limit=3000)
    vault.add_lender(small, MAX_DEBT, sender=admin)
    manager.add_lender(small, sender=admin)
    _deposit(15000, me)

    with pytest.raises(CapExceeded):
        manager.manual_allocation([Position(small.address, 4000)], sender=admin)
    assert manager.manual_allocation([Position(small.address, 3000)], sender=admin) == [3000]


@pytest.mark.manager
def test_allocation_order_is_authoritative(vault, manager, admin, me, lenders, _deposit, _allocate,
                                           _assert_conserved):
    market_lender, static_lender = lenders
    vault.update_max_debt_for_lender(static_lender, MAX_DEBT, sender=admin)
    _deposit(15000, me)
    _allocate((market_lender, 8000))
    assert vault.total_idle == 7000

    # increase listed first only gets what is idle at that moment
    moved = _allocate((static_lender, 8000), (market_lender, 0))
    assert moved == [7000, 8000]
    assert vault.get_lender_data(static_lender).current_debt == 7000
    assert vault.total_idle == 8000

    event = _find_event('Allocated', manager.get_logs())
    assert event.args_map['moved'] == [7000, 8000]
    _assert_conserved()


@pytest.mark.manager
def test_decrease_first_frees_idle(vault, manager, admin, me, lenders, _deposit, _allocate):
    market_lender, static_lender = lenders
    vault.update_max_debt_for_lender(static_lender, MAX_DEBT, sender=admin)
    _deposit(15000, me)
    _allocate((market_lender, 8000))

    moved = _allocate((market_lender, 0), (static_lender, 8000))
    assert moved == [8000, 8000]
    assert vault.get_lender_data(static_lender).current_debt == 8000
    assert vault.total_idle == 7000

    updates = _find_events('DebtUpdated', vault.get_logs())
    assert [e.args_map['lender'] for e in updates] == [market_lender.address, static_lender.address]
    assert _find_event_by({'lender': static_lender.address}, updates)['new_debt'] == 8000


@pytest.mark.manager
def test_gateway_whitelist(manager, admin, me, alice):
    with pytest.raises(Unauthorized):
        manager.set_whitelisted_gateway(alice, True, sender=me)

    manager.set_whitelisted_gateway(alice, True, sender=admin)
    assert manager.is_gateway(alice)
    manager.set_whitelisted_gateway(alice, False, sender=admin)
    assert not manager.is_gateway(alice)


@pytest.mark.manager
def test_request_liquidity_only_for_gateways(manager, admin, alice, me, lenders, _deposit):
    market_lender, static_lender = lenders
    _deposit(15000, me)

    with pytest.raises(Unauthorized):
        manager.request_liquidity(1000, market_lender, sender=alice)

    manager.set_whitelisted_gateway(alice, True, sender=admin)
    assert manager.request_liquidity(1000, market_lender, sender=alice) == 1000
    # zero cap lender gets nothing but the call still succeeds
    assert manager.request_liquidity(1000, static_lender, sender=alice) == 0


@pytest.mark.manager
def test_manager_is_bound_to_vault_admin(env, vault, admin, me):
    other = DebtManager(env, vault)
    assert other.vault is vault
    # manager follows admin changes on the vault
    vault.set_admin(me, 0, sender=admin)
    other.set_whitelisted_gateway(admin, True, sender=me)
    with pytest.raises(Unauthorized):
        other.set_whitelisted_gateway(admin, False, sender=admin)
