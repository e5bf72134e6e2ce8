"""Tests for the order state machine and its authorization rules."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from checkout_service.db.schemas import Actor, Order, OrderItem, OrderStatus, Role
from checkout_service.errors import (
    AuthorizationError,
    InvalidTransitionError,
    OrderNotFoundError,
    PersistenceError,
    UnauthorizedError,
)
from checkout_service.lifecycle import OrderLifecycleManager, allowed_transitions
from factories import SELLER_ID, VENDOR_A, VENDOR_B

CREATED = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
LATER = CREATED + timedelta(hours=3)


def _seed(orders, order_id="o1", status=OrderStatus.pending, vendor_id=VENDOR_A, created_at=CREATED):
    order = Order(
        id=order_id,
        seller_id=SELLER_ID,
        vendor_id=vendor_id,
        delivery_address="12 Market St",
        total_amount=Decimal("100"),
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )
    item = OrderItem(
        id=f"{order_id}-i1",
        order_id=order_id,
        product_id="p1",
        quantity=2,
        unit_price=Decimal("50"),
        subtotal=Decimal("100"),
    )
    orders.add(order, [item])
    return order


@pytest.fixture
def manager(orders):
    return OrderLifecycleManager(orders, clock=lambda: LATER)


class TestStateMachine:
    def test_pending_can_be_delivered_or_cancelled(self):
        assert allowed_transitions(OrderStatus.pending) == {OrderStatus.delivered, OrderStatus.cancelled}

    @pytest.mark.parametrize("status", [OrderStatus.delivered, OrderStatus.cancelled])
    def test_terminal_states(self, status):
        assert allowed_transitions(status) == set()


class TestTransition:
    @pytest.mark.parametrize("target", [OrderStatus.delivered, OrderStatus.cancelled])
    async def test_vendor_moves_pending_order(self, manager, orders, vendor_a, target):
        _seed(orders)

        result = await manager.transition(vendor_a, "o1", target)

        assert result.ok
        assert result.value.status == target
        assert orders.orders["o1"].status == target
        assert orders.orders["o1"].updated_at == LATER

    async def test_transition_leaves_amounts_and_items_alone(self, manager, orders, vendor_a):
        _seed(orders)
        await manager.mark_delivered(vendor_a, "o1")
        order = orders.orders["o1"]
        assert order.total_amount == Decimal("100")
        assert order.delivery_address == "12 Market St"
        assert order.created_at == CREATED
        assert len(await orders.select_items_for_order("o1")) == 1

    async def test_accepts_status_string(self, manager, orders, vendor_a):
        _seed(orders)
        result = await manager.transition(vendor_a, "o1", "cancelled")
        assert result.value.status == OrderStatus.cancelled

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.delivered, OrderStatus.cancelled),
            (OrderStatus.cancelled, OrderStatus.delivered),
            (OrderStatus.delivered, OrderStatus.delivered),
            (OrderStatus.cancelled, OrderStatus.cancelled),
            (OrderStatus.delivered, OrderStatus.pending),
        ],
    )
    async def test_terminal_orders_cannot_move(self, manager, orders, vendor_a, current, target):
        _seed(orders, status=current)

        result = await manager.transition(vendor_a, "o1", target)

        assert isinstance(result.error, InvalidTransitionError)
        assert orders.orders["o1"].status == current
        assert orders.orders["o1"].updated_at == CREATED
        assert not any(call["method"] == "update_order_status" for call in orders.calls)

    async def test_pending_to_pending_is_rejected(self, manager, orders, vendor_a):
        _seed(orders)
        result = await manager.transition(vendor_a, "o1", OrderStatus.pending)
        assert isinstance(result.error, InvalidTransitionError)

    async def test_unknown_status(self, manager, orders, vendor_a):
        _seed(orders)
        result = await manager.transition(vendor_a, "o1", "shipped")
        assert isinstance(result.error, InvalidTransitionError)

    async def test_unknown_order(self, manager, vendor_a):
        result = await manager.transition(vendor_a, "missing", OrderStatus.delivered)
        assert isinstance(result.error, OrderNotFoundError)


class TestAuthorization:
    async def test_other_vendor_is_rejected(self, manager, orders, vendor_b):
        _seed(orders)
        result = await manager.cancel(vendor_b, "o1")
        assert isinstance(result.error, UnauthorizedError)
        assert isinstance(result.error, AuthorizationError)
        assert orders.orders["o1"].status == OrderStatus.pending

    async def test_buyer_cannot_change_status(self, manager, orders, seller):
        _seed(orders)
        result = await manager.cancel(seller, "o1")
        assert isinstance(result.error, AuthorizationError)
        assert orders.orders["o1"].status == OrderStatus.pending

    async def test_seller_role_with_vendor_id_is_still_rejected(self, manager, orders):
        _seed(orders)
        impostor = Actor(user_id=VENDOR_A, role=Role.seller)
        result = await manager.mark_delivered(impostor, "o1")
        assert isinstance(result.error, AuthorizationError)

    async def test_authorization_is_checked_before_state(self, manager, orders, vendor_b):
        _seed(orders, status=OrderStatus.delivered)
        result = await manager.cancel(vendor_b, "o1")
        assert isinstance(result.error, AuthorizationError)


class TestStoreBehaviour:
    async def test_concurrent_change_is_detected(self, manager, orders, vendor_a):
        _seed(orders)
        original_select = orders.select_order

        async def stale_select(order_id):
            order = await original_select(order_id)
            # someone else cancels between the read and the write
            orders.orders[order_id] = order.model_copy(update={"status": OrderStatus.cancelled})
            return order

        orders.select_order = stale_select
        result = await manager.mark_delivered(vendor_a, "o1")

        assert isinstance(result.error, InvalidTransitionError)
        assert orders.orders["o1"].status == OrderStatus.cancelled

    async def test_store_failure(self, manager, orders, vendor_a):
        _seed(orders)
        orders.configure(fail_status_updates=True)
        result = await manager.mark_delivered(vendor_a, "o1")
        assert isinstance(result.error, PersistenceError)
        assert orders.orders["o1"].status == OrderStatus.pending


class TestQueries:
    async def test_orders_for_seller_and_vendor(self, manager, orders, seller, vendor_a, vendor_b):
        _seed(orders, "o1", vendor_id=VENDOR_A, created_at=CREATED)
        _seed(orders, "o2", vendor_id=VENDOR_B, created_at=LATER)

        assert [o.id for o in (await manager.orders_for(seller)).unwrap()] == ["o2", "o1"]
        assert [o.id for o in (await manager.orders_for(vendor_a)).unwrap()] == ["o1"]
        assert [o.id for o in (await manager.orders_for(vendor_b)).unwrap()] == ["o2"]

    async def test_order_details_for_either_party(self, manager, orders, seller, vendor_a):
        _seed(orders)
        for actor in (seller, vendor_a):
            details = (await manager.order_details(actor, "o1")).unwrap()
            assert details.order.id == "o1"
            assert [item.product_id for item in details.items] == ["p1"]

    async def test_order_details_for_stranger(self, manager, orders, vendor_b):
        _seed(orders)
        result = await manager.order_details(vendor_b, "o1")
        assert isinstance(result.error, UnauthorizedError)

    async def test_order_details_unknown_order(self, manager, seller):
        result = await manager.order_details(seller, "missing")
        assert isinstance(result.error, OrderNotFoundError)
        with pytest.raises(OrderNotFoundError):
            result.unwrap()

    async def test_inconsistent_order_is_reported(self, manager, orders, seller):
        order = _seed(orders)
        orders.items.clear()
        result = await manager.order_details(seller, order.id)
        assert isinstance(result.error, PersistenceError)
