"""Store ports (abstract interfaces) consumed by the checkout engine.

The orchestrator and lifecycle manager only talk to these contracts. The
SQLAlchemy adapters in ``checkout_service.db.functions`` back them in
production; ``checkout_service.fake_adapter`` backs them in tests.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from checkout_service.db.schemas import Order, OrderItem, OrderStatus, Product, Profile


class ProductStore(ABC):
    """Read-only view of the product catalog."""

    @abstractmethod
    async def select_by_id(self, ids: Iterable[str]) -> Sequence[Product]:
        """Return the products whose id is in ``ids``; unknown ids are absent."""
        ...


class OrderStore(ABC):
    """Persistence for orders and their line items."""

    @abstractmethod
    def vendor_group(self) -> AbstractAsyncContextManager:
        """Unit of work for one vendor group's order header and items.

        Everything written inside the block is committed together when it
        exits normally and discarded when it raises.
        """
        ...

    @abstractmethod
    async def insert_order(
        self,
        seller_id: str,
        vendor_id: str,
        delivery_address: str,
        total_amount: Decimal,
        status: OrderStatus,
    ) -> Order:
        ...

    @abstractmethod
    async def insert_order_item(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        unit_price: Decimal,
        subtotal: Decimal,
    ) -> OrderItem:
        ...

    @abstractmethod
    async def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        updated_at: datetime,
        expected_status: Optional[OrderStatus] = None,
    ) -> bool:
        """Set the status; returns False when no row matched ``expected_status``."""
        ...

    @abstractmethod
    async def select_order(self, order_id: str) -> Optional[Order]:
        ...

    @abstractmethod
    async def select_orders_for_actor(self, actor_id: str) -> Sequence[Order]:
        """Orders where ``actor_id`` is the seller or the vendor, newest first."""
        ...

    @abstractmethod
    async def select_items_for_order(self, order_id: str) -> Sequence[OrderItem]:
        ...


class ProfileService(ABC):
    """The auth/profile collaborator, as far as checkout needs it."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        ...

    @abstractmethod
    async def update_profile(self, user_id: str, changes: dict) -> Profile:
        ...
