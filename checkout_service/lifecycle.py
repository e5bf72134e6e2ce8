"""Order lifecycle after checkout.

State machine:
    pending -> delivered
    pending -> cancelled
delivered and cancelled are terminal. Only the order's vendor may move an
order; either party may read it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, assert_never

import pydantic
import structlog

from checkout_service.db.schemas import Actor, Order, OrderStatus, OrderWithItems, Role
from checkout_service.errors import (
    InvalidTransitionError,
    MarketplaceError,
    OrderNotFoundError,
    PersistenceError,
    UnauthorizedError,
)
from checkout_service.ports import OrderStore

logger = structlog.get_logger(__name__)

# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.pending: {OrderStatus.delivered, OrderStatus.cancelled},
    OrderStatus.delivered: set(),  # Terminal
    OrderStatus.cancelled: set(),  # Terminal
}


def allowed_transitions(status: OrderStatus) -> set:
    return set(_VALID_TRANSITIONS[OrderStatus(status)])


def is_order_vendor(actor: Actor, order: Order) -> bool:
    if actor.role is Role.vendor:
        return actor.user_id == order.vendor_id
    elif actor.role is Role.seller:
        return False
    else:
        assert_never(actor.role)


def is_order_party(actor: Actor, order: Order) -> bool:
    if actor.role is Role.vendor:
        return actor.user_id == order.vendor_id
    elif actor.role is Role.seller:
        return actor.user_id == order.seller_id
    else:
        assert_never(actor.role)


@dataclass
class LifecycleResult:
    """Outcome of a lifecycle operation or order query."""

    value: Any = None
    error: Optional[MarketplaceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderLifecycleManager:
    def __init__(self, orders: OrderStore, clock: Callable[[], datetime] = _utcnow):
        self.orders = orders
        self.clock = clock

    async def _load(self, order_id: str) -> Order:
        try:
            order = await self.orders.select_order(order_id)
        except Exception as exc:
            raise PersistenceError("Could not read order") from exc
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def transition(self, actor: Actor, order_id: str, target) -> LifecycleResult:
        """Move an order to ``target``; the value is the updated ``Order``.

        Re-applying the status an order already has is rejected, not ignored.
        """
        try:
            target = OrderStatus(target)
        except ValueError:
            return LifecycleResult(error=InvalidTransitionError(message=f"Unknown order status: {target!r}"))

        try:
            order = await self._load(order_id)
        except MarketplaceError as exc:
            return LifecycleResult(error=exc)

        if not is_order_vendor(actor, order):
            logger.warning("Rejected order transition", order_id=order_id, actor_id=actor.user_id, target=target.value)
            return LifecycleResult(error=UnauthorizedError("Only the order's vendor can change its status."))
        if target not in _VALID_TRANSITIONS[order.status]:
            return LifecycleResult(error=InvalidTransitionError(order.status, target))

        updated_at = self.clock()
        try:
            changed = await self.orders.update_order_status(
                order.id, target, updated_at, expected_status=order.status
            )
        except Exception as exc:
            logger.error("Order status update failed", order_id=order_id, error=str(exc))
            error = PersistenceError("Order update failed.")
            error.__cause__ = exc
            return LifecycleResult(error=error)
        if not changed:
            # another request moved the order first
            return LifecycleResult(
                error=InvalidTransitionError(message=f"Order {order_id} is no longer {order.status.value}")
            )

        logger.info("Order status changed", order_id=order_id, status=target.value)
        return LifecycleResult(value=order.model_copy(update={"status": target, "updated_at": updated_at}))

    async def mark_delivered(self, actor: Actor, order_id: str) -> LifecycleResult:
        return await self.transition(actor, order_id, OrderStatus.delivered)

    async def cancel(self, actor: Actor, order_id: str) -> LifecycleResult:
        return await self.transition(actor, order_id, OrderStatus.cancelled)

    async def orders_for(self, actor: Actor) -> LifecycleResult:
        """Orders the actor placed or received, newest first."""
        try:
            orders = await self.orders.select_orders_for_actor(actor.user_id)
        except Exception as exc:
            error = PersistenceError("Could not load orders")
            error.__cause__ = exc
            return LifecycleResult(error=error)
        return LifecycleResult(value=[o for o in orders if is_order_party(actor, o)])

    async def order_details(self, actor: Actor, order_id: str) -> LifecycleResult:
        """The order with its items; the value is an ``OrderWithItems``."""
        try:
            order = await self._load(order_id)
        except MarketplaceError as exc:
            return LifecycleResult(error=exc)
        if not is_order_party(actor, order):
            return LifecycleResult(error=UnauthorizedError("Order belongs to other users."))
        try:
            items = await self.orders.select_items_for_order(order.id)
        except Exception as exc:
            error = PersistenceError("Could not load order items")
            error.__cause__ = exc
            return LifecycleResult(error=error)
        try:
            details = OrderWithItems(order=order, items=list(items))
        except pydantic.ValidationError as exc:
            logger.error("Inconsistent order record", order_id=order_id, error=str(exc))
            error = PersistenceError("Order record is inconsistent")
            error.__cause__ = exc
            return LifecycleResult(error=error)
        return LifecycleResult(value=details)
