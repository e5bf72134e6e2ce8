# checkout_service/db/schemas.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from checkout_service.money import from_minor_units, to_minor_units


# Роль пользователя: покупатель (seller) или поставщик (vendor)
class Role(str, Enum):
    seller = "seller"
    vendor = "vendor"


class OrderStatus(str, Enum):
    pending = "pending"
    delivered = "delivered"
    cancelled = "cancelled"


def _check_money(value: Decimal) -> Decimal:
    # to_minor_units rejects negative and sub-paisa amounts
    return from_minor_units(to_minor_units(value))


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)


class Product(BaseModel):
    id: str
    name: str
    price: Decimal = Field(ge=0)
    stock_quantity: int = Field(ge=0)
    unit: str
    image_url: Optional[str] = None
    vendor_id: str

    class Config:
        from_attributes = True
        frozen = True

    @field_validator("price")
    @classmethod
    def price_in_paise(cls, value: Decimal) -> Decimal:
        return _check_money(value)


class Profile(BaseModel):
    user_id: str
    role: Role
    full_name: Optional[str] = None
    address: Optional[str] = None

    class Config:
        from_attributes = True


class Actor(BaseModel):
    """Authenticated caller of a checkout or lifecycle operation."""

    user_id: str
    role: Role

    class Config:
        frozen = True


class Order(BaseModel):
    id: str
    seller_id: str
    vendor_id: str
    delivery_address: str
    total_amount: Decimal = Field(ge=0)
    status: OrderStatus = OrderStatus.pending
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_validator("delivery_address")
    @classmethod
    def address_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("delivery address must not be blank")
        return value

    @field_validator("total_amount")
    @classmethod
    def total_in_paise(cls, value: Decimal) -> Decimal:
        return _check_money(value)


class OrderItem(BaseModel):
    id: str
    order_id: str
    product_id: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    subtotal: Decimal = Field(ge=0)

    class Config:
        from_attributes = True
        frozen = True

    @field_validator("unit_price", "subtotal")
    @classmethod
    def amount_in_paise(cls, value: Decimal) -> Decimal:
        return _check_money(value)

    @model_validator(mode="after")
    def subtotal_matches_line(self) -> "OrderItem":
        if to_minor_units(self.subtotal) != to_minor_units(self.unit_price) * self.quantity:
            raise ValueError("subtotal must equal quantity * unit_price")
        return self


class OrderWithItems(BaseModel):
    order: Order
    items: List[OrderItem] = []

    @model_validator(mode="after")
    def total_matches_items(self) -> "OrderWithItems":
        if any(item.order_id != self.order.id for item in self.items):
            raise ValueError("items must belong to the order")
        total = sum(to_minor_units(item.subtotal) for item in self.items)
        if total != to_minor_units(self.order.total_amount):
            raise ValueError("total_amount must equal the sum of item subtotals")
        return self
