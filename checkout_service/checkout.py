"""Cart-to-order checkout.

A cart spanning several vendors becomes one pending order per vendor. Each
vendor's order header and items are written as one unit; vendor groups are
independent of each other, so a failure in one group does not undo the
orders already placed with other vendors.
"""

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Union

import structlog

from checkout_service.cart import CartStore, is_valid_quantity
from checkout_service.catalog import CatalogReader
from checkout_service.db.schemas import OrderStatus
from checkout_service.errors import (
    EmptyCartError,
    InvalidAddressError,
    InvalidCartError,
    MarketplaceError,
    PartialCheckoutFailure,
    PersistenceError,
)
from checkout_service.money import from_minor_units, to_minor_units
from checkout_service.ports import OrderStore, ProductStore, ProfileService
from checkout_service.splitter import VendorGroup, split

logger = structlog.get_logger(__name__)


@dataclass
class CheckoutResult:
    """Outcome of a checkout attempt."""

    order_ids: List[str] = field(default_factory=list)
    error: Optional[MarketplaceError] = None
    cart_cleared: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> List[str]:
        if self.error is not None:
            raise self.error
        return self.order_ids


class CheckoutOrchestrator:
    def __init__(
        self,
        products: ProductStore,
        orders: OrderStore,
        profiles: Optional[ProfileService] = None,
    ):
        self.catalog = CatalogReader(products)
        self.orders = orders
        self.profiles = profiles

    async def checkout(
        self,
        seller_id: str,
        cart: Union[CartStore, Mapping[str, int]],
        delivery_address: str,
    ) -> CheckoutResult:
        """Place one order per vendor for everything in ``cart``.

        ``cart`` is either the shopper's ``CartStore``, which is cleared once
        every vendor group has been stored, or a plain snapshot mapping
        product id to quantity, which is left to the caller.

        On ``PartialCheckoutFailure`` the cart is kept so the shopper can
        retry, and retrying places the already-succeeded vendor orders again.
        If the orders are placed but clearing the cart fails, the cart keeps its
        lines and ``cart_cleared`` is ``False``.
        """
        address = (delivery_address or "").strip()
        if not address:
            return CheckoutResult(error=InvalidAddressError())

        snapshot = cart.snapshot() if isinstance(cart, CartStore) else dict(cart)
        if not snapshot:
            return CheckoutResult(error=EmptyCartError())

        invalid = [product_id for product_id, qty in snapshot.items() if not is_valid_quantity(qty)]
        if invalid:
            return CheckoutResult(error=InvalidCartError(invalid))

        log = logger.bind(seller_id=seller_id)
        log.info("Checkout started", lines=len(snapshot))

        try:
            products = await self.catalog.resolve(snapshot)
        except PersistenceError as exc:
            log.error("Checkout aborted, catalog unavailable", error=str(exc.__cause__ or exc))
            return CheckoutResult(error=exc)

        groups = split(snapshot, products)
        if not groups:
            return CheckoutResult(error=EmptyCartError("None of the products in the cart are available anymore."))

        await self._remember_address(seller_id, address)

        order_ids, succeeded, failed = [], [], []
        last_exc = None
        for vendor_id, group in groups.items():
            try:
                order_id = await self._place_vendor_group(seller_id, address, group)
            except Exception as exc:
                log.exception("Vendor order failed", vendor_id=vendor_id)
                failed.append(vendor_id)
                last_exc = exc
                continue
            log.info("Vendor order placed", vendor_id=vendor_id, order_id=order_id, total=str(group.total))
            succeeded.append(vendor_id)
            order_ids.append(order_id)

        if failed:
            if not succeeded:
                error = PersistenceError()
                error.__cause__ = last_exc
                return CheckoutResult(error=error)
            log.warning("Checkout partially failed", succeeded=succeeded, failed=failed)
            return CheckoutResult(
                order_ids=order_ids,
                error=PartialCheckoutFailure(succeeded, failed, order_ids),
            )

        cart_cleared = False
        if isinstance(cart, CartStore):
            try:
                cart.clear()
                cart_cleared = True
            except OSError:
                log.exception("Orders placed but the cart could not be cleared")
        log.info("Checkout completed", order_ids=order_ids)
        return CheckoutResult(order_ids=order_ids, cart_cleared=cart_cleared)

    async def _place_vendor_group(self, seller_id: str, address: str, group: VendorGroup) -> str:
        async with self.orders.vendor_group():
            order = await self.orders.insert_order(
                seller_id=seller_id,
                vendor_id=group.vendor_id,
                delivery_address=address,
                total_amount=group.total,
                status=OrderStatus.pending,
            )
            for product, quantity in group.lines:
                # unit price is frozen at checkout time
                await self.orders.insert_order_item(
                    order_id=order.id,
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=product.price,
                    subtotal=from_minor_units(to_minor_units(product.price) * quantity),
                )
        return order.id

    async def _remember_address(self, seller_id: str, address: str) -> None:
        """Best effort: a failure here never aborts checkout."""
        if self.profiles is None:
            return
        try:
            profile = await self.profiles.get_profile(seller_id)
            if profile is not None and profile.address != address:
                await self.profiles.update_profile(seller_id, {"address": address})
        except Exception as exc:
            logger.warning("Could not save delivery address to profile", seller_id=seller_id, error=str(exc))
