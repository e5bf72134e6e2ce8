# checkout_service/db/models.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from checkout_service.db.database import Base
from checkout_service.db.schemas import OrderStatus, Role


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# Профиль пользователя (покупатель или поставщик)
class Profile(Base):
    __tablename__ = "profiles"

    user_id = Column(String(36), primary_key=True, default=_new_id)
    role = Column(Enum(Role), nullable=False, default=Role.seller)
    full_name = Column(String, nullable=True)
    address = Column(String, nullable=True)


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, index=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)  # Количество в наличии
    unit = Column(String, nullable=False, default="kg")
    image_url = Column(String, nullable=True)
    vendor_id = Column(String(36), ForeignKey("profiles.user_id"), index=True, nullable=False)


# Модель заказов: один заказ на одного поставщика
class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    seller_id = Column(String(36), ForeignKey("profiles.user_id"), index=True, nullable=False)
    vendor_id = Column(String(36), ForeignKey("profiles.user_id"), index=True, nullable=False)
    delivery_address = Column(String, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.pending)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship("OrderItem", back_populates="order")


# Модель элементов в заказе; цена фиксируется в момент оформления
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), index=True, nullable=False)
    product_id = Column(String(36), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
