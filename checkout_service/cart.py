"""Client-local shopping cart.

The cart maps product id to quantity and writes its whole snapshot through
a ``CartStorage`` on every change, so a reload never loses state.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from checkout_service.config import CART_STORAGE_PATH
from checkout_service.db.schemas import CartLine

logger = structlog.get_logger(__name__)

CART_KEY = "cart"


class CartStorage(ABC):
    """Durable key-value surface holding string values."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...


class MemoryCartStorage(CartStorage):
    def __init__(self) -> None:
        self.values: Dict[str, str] = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value

    def remove(self, key):
        self.values.pop(key, None)


class JsonFileCartStorage(CartStorage):
    """All keys live in one JSON document that is replaced atomically on write."""

    def __init__(self, path) -> None:
        self.path = Path(path)

    def _read(self) -> dict:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable cart storage, starting empty", path=str(self.path), error=str(exc))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key):
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key, value):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key):
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def is_valid_quantity(value) -> bool:
    # bool is an int subclass, and JSON true must not become one unit
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _parse_snapshot(raw: Optional[str]) -> Dict[str, int]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Discarding corrupt cart snapshot")
        return {}
    if not isinstance(data, dict):
        logger.warning("Discarding cart snapshot that is not a mapping")
        return {}
    lines = {}
    for product_id, quantity in data.items():
        if not is_valid_quantity(quantity):
            logger.warning("Dropping invalid cart line", product_id=product_id, quantity=quantity)
            continue
        lines[str(product_id)] = quantity
    return lines


class CartStore:
    """One shopper's cart, owned by a single session or device."""

    def __init__(self, storage: CartStorage, lines: Optional[Dict[str, int]] = None) -> None:
        self.storage = storage
        self._lines: Dict[str, int] = dict(lines or {})

    @classmethod
    def load(cls, storage: CartStorage) -> "CartStore":
        """Rebuild the cart from its persisted snapshot."""
        return cls(storage, _parse_snapshot(storage.get(CART_KEY)))

    def _commit(self, lines: Dict[str, int]) -> None:
        """Write ``lines`` through to storage, then make them current.

        If the write raises, the in-memory cart keeps its previous lines and
        still matches what a reload would see.
        """
        if lines:
            self.storage.set(CART_KEY, json.dumps(lines))
        else:
            self.storage.remove(CART_KEY)
        self._lines = lines

    def add(self, product_id: str, delta: int = 1) -> bool:
        """Add ``delta`` units of a product; anything but a positive int is rejected."""
        if not is_valid_quantity(delta):
            return False
        lines = dict(self._lines)
        lines[product_id] = lines.get(product_id, 0) + delta
        self._commit(lines)
        return True

    def set_quantity(self, product_id: str, qty: int) -> bool:
        # Quantities below one are rejected, not clamped; use remove() instead
        if not is_valid_quantity(qty):
            return False
        lines = dict(self._lines)
        lines[product_id] = qty
        self._commit(lines)
        return True

    def remove(self, product_id: str) -> None:
        if product_id in self._lines:
            lines = dict(self._lines)
            del lines[product_id]
            self._commit(lines)

    def clear(self) -> None:
        self._commit({})

    def snapshot(self) -> Dict[str, int]:
        return dict(self._lines)

    def lines(self) -> List[CartLine]:
        return [CartLine(product_id=product_id, quantity=qty) for product_id, qty in self._lines.items()]

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, product_id) -> bool:
        return product_id in self._lines

    def __repr__(self) -> str:
        return f"CartStore({self._lines!r})"


def open_cart(path=None) -> CartStore:
    """Load the cart kept in the JSON file at ``path`` (``CART_STORAGE_PATH`` by default)."""
    return CartStore.load(JsonFileCartStorage(path or CART_STORAGE_PATH))
