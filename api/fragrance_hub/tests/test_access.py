"""Restricted -> elevated fallback, on two separate SQLite stores."""
import pytest
from sqlalchemy import select

from fragrance_hub.db_models import Product
from fragrance_hub.errors import ConstraintViolation, ZeroRowsAffected
from fragrance_hub.services.access import DataGateway
from fragrance_hub.services.catalog import CatalogService
from fragrance_hub.tests.factories import product_payload


class CountingFactory:
    """Wraps a session factory and counts how often a session is opened."""

    def __init__(self, factory):
        self.factory = factory
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.factory()


@pytest.fixture
async def seeded(split_db):
    restricted, elevated = split_db
    product = await CatalogService(DataGateway(elevated)).create_product(product_payload("CH-001"))
    return restricted, elevated, product


async def test_read_falls_back_to_elevated(seeded):
    restricted, elevated, product = seeded
    products = await CatalogService(DataGateway(restricted, elevated)).get_products()
    assert [p.id for p in products] == [product.id]


async def test_read_without_elevated_returns_restricted_result(seeded):
    restricted, _, _ = seeded
    assert await CatalogService(DataGateway(restricted)).get_products() == []


async def test_read_one_falls_back(seeded):
    restricted, elevated, product = seeded
    found = await CatalogService(DataGateway(restricted, elevated)).get_product(product.id)
    assert found is not None and found.code == "CH-001"


async def test_read_that_fails_twice_is_empty(split_db):
    restricted, elevated = split_db

    async def broken(session):
        raise RuntimeError("boom")

    gateway = DataGateway(restricted, elevated)
    assert await gateway.read("broken", broken) == []
    assert await gateway.read_one("broken", broken) is None


async def test_restricted_result_served_when_not_empty(split_db):
    restricted, elevated = split_db
    await CatalogService(DataGateway(restricted)).create_product(product_payload("ONLY-R"))
    counting = CountingFactory(elevated)
    products = await CatalogService(DataGateway(restricted, counting)).get_products()
    assert [p.code for p in products] == ["ONLY-R"]
    assert counting.calls == 0


async def test_update_escalates_on_zero_rows(seeded):
    restricted, elevated, product = seeded
    counting = CountingFactory(elevated)
    service = CatalogService(DataGateway(restricted, counting))
    updated = await service.update_product(product.id, {"price": "99.50"}, user_id="u-1")
    assert counting.calls == 1
    assert str(updated.price) == "99.50"

    async with elevated() as session:
        stored = (await session.execute(select(Product).where(Product.id == product.id))).scalar_one()
    assert stored.updated_by == "u-1"


async def test_delete_escalates_on_zero_rows(seeded):
    restricted, elevated, product = seeded
    await CatalogService(DataGateway(restricted, elevated)).delete_product(product.id)
    assert await CatalogService(DataGateway(elevated)).get_products() == []


async def test_zero_rows_on_both_identities_raises(split_db):
    restricted, elevated = split_db
    with pytest.raises(ZeroRowsAffected):
        await CatalogService(DataGateway(restricted, elevated)).delete_product(12345)


async def test_constraint_violation_is_not_escalated(split_db):
    restricted, elevated = split_db
    counting = CountingFactory(elevated)
    gateway = DataGateway(restricted, counting)

    async def bad_type(session):
        session.add(Product(code="BAD", item_number="BAD", commercial_name="Bad", product_type="Candles"))
        await session.flush()

    with pytest.raises(ConstraintViolation) as info:
        await gateway.write("bad_type", bad_type)
    assert "Invalid product type" in info.value.message
    assert counting.calls == 0
