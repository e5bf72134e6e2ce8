# checkout_service/errors.py
"""Failure taxonomy for checkout and order lifecycle operations.

Operations hand these back inside result values; only ``unwrap()`` raises them.
"""


class MarketplaceError(Exception):
    """Base class for every failure reported by the checkout engine."""

    message = "Marketplace operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


# Pre-write failures caused by caller input
class ValidationError(MarketplaceError):
    message = "Invalid request"


class InvalidAddressError(ValidationError):
    message = "Please enter a delivery address."


class EmptyCartError(ValidationError):
    message = "Cart is empty."


class InvalidCartError(ValidationError):
    message = "Cart contains invalid quantities."

    def __init__(self, product_ids=(), message: str | None = None):
        self.product_ids = list(product_ids)
        if message is None and self.product_ids:
            message = f"Invalid quantity for products {', '.join(map(str, self.product_ids))}"
        super().__init__(message)


class InvalidTransitionError(ValidationError):
    message = "Order status transition is not allowed."

    def __init__(self, current_status=None, target_status=None, message: str | None = None):
        self.current_status = current_status
        self.target_status = target_status
        if message is None and current_status is not None and target_status is not None:
            message = f"Cannot move order from {_value(current_status)} to {_value(target_status)}"
        super().__init__(message)


class AuthorizationError(MarketplaceError):
    message = "Actor is not allowed to perform this operation."


class UnauthorizedError(AuthorizationError):
    pass


class OrderNotFoundError(MarketplaceError):
    message = "Order not found"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class PartialFailure(MarketplaceError):
    message = "Operation was only partially applied."


class PartialCheckoutFailure(PartialFailure):
    """Some vendor groups were persisted, others were not.

    The succeeded orders are not rolled back. Retrying the same cart creates
    those orders a second time.
    """

    def __init__(self, succeeded_vendor_ids, failed_vendor_ids, order_ids=()):
        self.succeeded_vendor_ids = list(succeeded_vendor_ids)
        self.failed_vendor_ids = list(failed_vendor_ids)
        self.order_ids = list(order_ids)
        super().__init__(
            f"Checkout failed for vendors {', '.join(self.failed_vendor_ids)}; "
            f"orders already placed with vendors {', '.join(self.succeeded_vendor_ids)}"
        )


class TransientStoreError(MarketplaceError):
    message = "Data store is unavailable."


class PersistenceError(TransientStoreError):
    message = "Order failed. Please try again."


def _value(status):
    return getattr(status, "value", status)
