# checkout_service/db/functions.py
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from checkout_service.db import models
from checkout_service.db.schemas import Order, OrderItem, OrderStatus, Product, Profile
from checkout_service.ports import OrderStore, ProductStore, ProfileService

PROFILE_FIELDS = ("full_name", "address")


# Получение товаров по списку ID; отсутствующие ID просто не попадают в результат
async def get_products_by_ids(db: AsyncSession, ids: Iterable[str]):
    ids = list(ids)
    if not ids:
        return []
    result = await db.execute(select(models.Product).filter(models.Product.id.in_(ids)))
    return [Product.model_validate(product) for product in result.scalars().all()]


async def get_profile_by_user_id(db: AsyncSession, user_id: str):
    profile = await db.get(models.Profile, user_id)
    return Profile.model_validate(profile) if profile else None


# Обновление профиля (только разрешённые поля)
async def update_profile(db: AsyncSession, user_id: str, changes: dict):
    profile = await db.get(models.Profile, user_id)
    if not profile:
        raise LookupError(f"Profile {user_id} not found")
    for field, value in changes.items():
        if field not in PROFILE_FIELDS:
            raise ValueError(f"Profile field {field!r} cannot be updated")
        setattr(profile, field, value)
    await db.commit()
    await db.refresh(profile)
    return Profile.model_validate(profile)


# Создание заголовка заказа (без commit: вызывающий решает, когда фиксировать)
async def add_order(db: AsyncSession, seller_id: str, vendor_id: str, delivery_address: str,
                    total_amount: Decimal, status: OrderStatus):
    now = datetime.now(timezone.utc)
    order = models.Order(
        id=models._new_id(),
        seller_id=seller_id,
        vendor_id=vendor_id,
        delivery_address=delivery_address,
        total_amount=total_amount,
        status=status,
        created_at=now,
        updated_at=now,
    )
    db.add(order)
    await db.flush()
    return order


async def add_order_item(db: AsyncSession, order_id: str, product_id: str, quantity: int,
                         unit_price: Decimal, subtotal: Decimal):
    item = models.OrderItem(
        id=models._new_id(),
        order_id=order_id,
        product_id=product_id,
        quantity=quantity,
        unit_price=unit_price,
        subtotal=subtotal,
    )
    db.add(item)
    await db.flush()
    return item


# Обновление статуса заказа; expected_status защищает от одновременных переходов
async def set_order_status(db: AsyncSession, order_id: str, status: OrderStatus, updated_at: datetime,
                           expected_status: Optional[OrderStatus] = None):
    statement = update(models.Order).where(models.Order.id == order_id)
    if expected_status is not None:
        statement = statement.where(models.Order.status == expected_status)
    result = await db.execute(statement.values(status=status, updated_at=updated_at))
    await db.commit()
    return result.rowcount == 1


async def get_order_by_id(db: AsyncSession, order_id: str):
    order = await db.get(models.Order, order_id, populate_existing=True)
    return Order.model_validate(order) if order else None


# Заказы пользователя: как покупателя, так и поставщика
async def get_orders_for_actor(db: AsyncSession, actor_id: str):
    result = await db.execute(
        select(models.Order)
        .filter(or_(models.Order.seller_id == actor_id, models.Order.vendor_id == actor_id))
        .order_by(models.Order.created_at.desc())
    )
    return [Order.model_validate(order) for order in result.scalars().all()]


async def get_order_items(db: AsyncSession, order_id: str):
    result = await db.execute(select(models.OrderItem).filter(models.OrderItem.order_id == order_id))
    return [OrderItem.model_validate(item) for item in result.scalars().all()]


class SqlProductStore(ProductStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def select_by_id(self, ids):
        return await get_products_by_ids(self.db, ids)


class SqlProfileService(ProfileService):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id):
        return await get_profile_by_user_id(self.db, user_id)

    async def update_profile(self, user_id, changes):
        try:
            return await update_profile(self.db, user_id, changes)
        except Exception:
            await self.db.rollback()
            raise


class SqlOrderStore(OrderStore):
    """Order persistence on one ``AsyncSession``.

    Writes made inside ``vendor_group()`` share a transaction; writes outside
    of it are committed one by one.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self._in_group = False

    @asynccontextmanager
    async def vendor_group(self):
        if self._in_group:
            raise RuntimeError("Vendor groups cannot be nested")
        self._in_group = True
        try:
            yield self
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            raise
        finally:
            self._in_group = False

    async def _write(self, coro):
        try:
            row = await coro
            if not self._in_group:
                await self.db.commit()
            return row
        except Exception:
            if not self._in_group:
                await self.db.rollback()
            raise

    async def insert_order(self, seller_id, vendor_id, delivery_address, total_amount, status):
        order = await self._write(add_order(self.db, seller_id, vendor_id, delivery_address, total_amount, status))
        return Order.model_validate(order)

    async def insert_order_item(self, order_id, product_id, quantity, unit_price, subtotal):
        item = await self._write(add_order_item(self.db, order_id, product_id, quantity, unit_price, subtotal))
        return OrderItem.model_validate(item)

    async def update_order_status(self, order_id, status, updated_at, expected_status=None):
        try:
            return await set_order_status(self.db, order_id, status, updated_at, expected_status)
        except Exception:
            await self.db.rollback()
            raise

    async def select_order(self, order_id):
        return await get_order_by_id(self.db, order_id)

    async def select_orders_for_actor(self, actor_id):
        return await get_orders_for_actor(self.db, actor_id)

    async def select_items_for_order(self, order_id):
        return await get_order_items(self.db, order_id)
