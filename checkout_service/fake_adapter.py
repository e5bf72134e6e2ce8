"""In-memory store adapters for development and testing.

These implement the store ports without a database. Each one records the
calls it receives and can be told to fail, which makes the partial-write
paths of checkout reproducible.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from uuid import uuid4

from checkout_service.db.schemas import Order, OrderItem, Product, Profile
from checkout_service.ports import OrderStore, ProductStore, ProfileService


class StoreUnavailable(ConnectionError):
    """Raised by the fakes when configured to fail."""


class FakeProductStore(ProductStore):
    def __init__(self, products=()) -> None:
        self.products: dict[str, Product] = {}
        self.should_fail: bool = False
        self.calls: list[dict] = []
        for product in products:
            self.put(product)

    def put(self, product: Product) -> None:
        self.products[product.id] = product

    def delete(self, product_id: str) -> None:
        self.products.pop(product_id, None)

    async def select_by_id(self, ids):
        ids = list(ids)
        self.calls.append({"method": "select_by_id", "ids": ids})
        if self.should_fail:
            raise StoreUnavailable("catalog unavailable")
        return [self.products[product_id] for product_id in ids if product_id in self.products]


class FakeProfileService(ProfileService):
    def __init__(self, profiles=()) -> None:
        self.profiles: dict[str, Profile] = {profile.user_id: profile for profile in profiles}
        self.should_fail: bool = False
        self.calls: list[dict] = []

    async def get_profile(self, user_id):
        self.calls.append({"method": "get_profile", "user_id": user_id})
        if self.should_fail:
            raise StoreUnavailable("profile service unavailable")
        return self.profiles.get(user_id)

    async def update_profile(self, user_id, changes):
        self.calls.append({"method": "update_profile", "user_id": user_id, "changes": dict(changes)})
        if self.should_fail:
            raise StoreUnavailable("profile service unavailable")
        if user_id not in self.profiles:
            raise LookupError(f"Profile {user_id} not found")
        self.profiles[user_id] = self.profiles[user_id].model_copy(update=changes)
        return self.profiles[user_id]


class FakeOrderStore(OrderStore):
    """Configurable in-memory order store.

    ``fail_orders_for`` and ``fail_items_for`` hold vendor ids whose order
    header or item writes raise. ``atomic_groups=False`` keeps whatever a
    failed vendor group already wrote, the way a store without transactions
    would.
    """

    def __init__(self, atomic_groups: bool = True) -> None:
        self.orders: dict[str, Order] = {}
        self.items: dict[str, OrderItem] = {}
        self.atomic_groups = atomic_groups
        self.fail_orders_for: set[str] = set()
        self.fail_items_for: set[str] = set()
        self.fail_status_updates: bool = False
        self.calls: list[dict] = []
        self._group: list[tuple[str, str]] | None = None

    def configure(self, fail_orders_for=(), fail_items_for=(), fail_status_updates=False) -> None:
        """Configure store failures at runtime."""
        self.fail_orders_for = set(fail_orders_for)
        self.fail_items_for = set(fail_items_for)
        self.fail_status_updates = fail_status_updates

    def add(self, order: Order, items=()) -> None:
        """Seed an order directly, bypassing checkout."""
        self.orders[order.id] = order
        for item in items:
            self.items[item.id] = item

    @asynccontextmanager
    async def vendor_group(self):
        if self._group is not None:
            raise RuntimeError("Vendor groups cannot be nested")
        self._group = []
        try:
            yield self
        except BaseException:
            if self.atomic_groups:
                for kind, key in self._group:
                    (self.orders if kind == "order" else self.items).pop(key, None)
            raise
        finally:
            self._group = None

    def _track(self, kind: str, key: str) -> None:
        if self._group is not None:
            self._group.append((kind, key))

    async def insert_order(self, seller_id, vendor_id, delivery_address, total_amount, status):
        self.calls.append({"method": "insert_order", "vendor_id": vendor_id, "total_amount": total_amount})
        if vendor_id in self.fail_orders_for:
            raise StoreUnavailable(f"cannot insert order for vendor {vendor_id}")
        now = datetime.now(timezone.utc)
        order = Order(
            id=str(uuid4()),
            seller_id=seller_id,
            vendor_id=vendor_id,
            delivery_address=delivery_address,
            total_amount=total_amount,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.orders[order.id] = order
        self._track("order", order.id)
        return order

    async def insert_order_item(self, order_id, product_id, quantity, unit_price, subtotal):
        self.calls.append({"method": "insert_order_item", "order_id": order_id, "product_id": product_id})
        order = self.orders.get(order_id)
        if order is not None and order.vendor_id in self.fail_items_for:
            raise StoreUnavailable(f"cannot insert items for order {order_id}")
        item = OrderItem(
            id=str(uuid4()),
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=subtotal,
        )
        self.items[item.id] = item
        self._track("item", item.id)
        return item

    async def update_order_status(self, order_id, status, updated_at, expected_status=None):
        self.calls.append({"method": "update_order_status", "order_id": order_id, "status": status})
        if self.fail_status_updates:
            raise StoreUnavailable("cannot update order status")
        order = self.orders.get(order_id)
        if order is None or (expected_status is not None and order.status != expected_status):
            return False
        self.orders[order_id] = order.model_copy(update={"status": status, "updated_at": updated_at})
        return True

    async def select_order(self, order_id):
        return self.orders.get(order_id)

    async def select_orders_for_actor(self, actor_id):
        orders = [o for o in self.orders.values() if actor_id in (o.seller_id, o.vendor_id)]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def select_items_for_order(self, order_id):
        return [item for item in self.items.values() if item.order_id == order_id]
