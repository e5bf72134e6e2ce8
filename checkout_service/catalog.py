"""Resolve cart product ids against the live catalog."""

from typing import Iterable, List

import pydantic
import structlog

from checkout_service.db.schemas import Product
from checkout_service.errors import PersistenceError
from checkout_service.ports import ProductStore

logger = structlog.get_logger(__name__)


class CatalogReader:
    """Reads products as of now; price and stock are never cached."""

    def __init__(self, products: ProductStore):
        self.products = products

    async def resolve(self, product_ids: Iterable[str]) -> List[Product]:
        """Return the products that still exist; missing ids are dropped silently.

        Raises ``PersistenceError`` when the catalog cannot be read.
        """
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return []
        try:
            products = list(await self.products.select_by_id(ids))
        except pydantic.ValidationError as exc:
            raise PersistenceError("Catalog returned an invalid product record") from exc
        except Exception as exc:
            raise PersistenceError("Could not read products from the catalog") from exc

        if len(products) < len(ids):
            found = {product.id for product in products}
            logger.info("Cart references missing products", missing=[i for i in ids if i not in found])
        return products
