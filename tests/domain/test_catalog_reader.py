"""Tests for resolving cart ids against the catalog."""

import pytest
from checkout_service.catalog import CatalogReader
from checkout_service.errors import PersistenceError
from factories import VENDOR_A, make_product


async def test_empty_input_returns_empty_without_reading(products):
    assert await CatalogReader(products).resolve(set()) == []
    assert products.calls == []


async def test_missing_ids_are_dropped(products):
    resolved = await CatalogReader(products).resolve(["p1", "deleted", "p2"])
    assert sorted(product.id for product in resolved) == ["p1", "p2"]


async def test_reads_current_price(products):
    products.put(make_product("p1", 55, VENDOR_A))
    [product] = await CatalogReader(products).resolve({"p1"})
    assert str(product.price) == "55.00"


async def test_duplicate_ids_are_read_once(products):
    await CatalogReader(products).resolve(["p1", "p1"])
    assert products.calls == [{"method": "select_by_id", "ids": ["p1"]}]


async def test_store_failure_becomes_persistence_error(products):
    products.should_fail = True
    with pytest.raises(PersistenceError) as exc_info:
        await CatalogReader(products).resolve(["p1"])
    assert isinstance(exc_info.value.__cause__, ConnectionError)
