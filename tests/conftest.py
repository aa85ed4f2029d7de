import os

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from mongomock_motor import AsyncMongoMockClient

from doorstep.core.config import settings
from doorstep.db.mongo import create_indexes
from doorstep.schemas.customer import CustomerCreate
from doorstep.services.customer_service import CustomerService
from doorstep.services.pricing_service import PriceTierService, price_cache

from tests.helpers import clock_at

# Test database configuration
TEST_MONGODB_URI = os.getenv("MONGODB_URI")
TEST_MONGODB_DB = "doorstep_test"


@pytest_asyncio.fixture
async def test_db(monkeypatch) -> AsyncIOMotorDatabase:
    """Real MongoDB when MONGODB_URI is set, otherwise an in-memory store without transactions."""
    if TEST_MONGODB_URI:
        client = AsyncIOMotorClient(TEST_MONGODB_URI)
        await client.drop_database(TEST_MONGODB_DB)
    else:
        client = AsyncMongoMockClient()
        monkeypatch.setattr(settings, "MONGODB_TRANSACTIONS", False)

    db = client[TEST_MONGODB_DB]
    await create_indexes(db)

    yield db

    if TEST_MONGODB_URI:
        await client.drop_database(TEST_MONGODB_DB)
        client.close()


@pytest.fixture(autouse=True)
def reset_price_cache():
    price_cache.invalidate()
    yield
    price_cache.invalidate()


@pytest.fixture
def clock():
    return clock_at(10)


@pytest_asyncio.fixture
async def seeded_db(test_db):
    await PriceTierService(test_db).seed_default_tiers()
    return test_db


@pytest_asyncio.fixture
async def make_customer(seeded_db, clock):
    """
    Factory for an ACTIVE customer assigned to "dp-1" from today.

    The 1L deposit (two sets of one large container) is 7000, charged from
    the top-up, so the wallet ends at `top_up - 7000`.
    """
    service = CustomerService(seeded_db, clock)

    async def _make(name: str = "Asha", quantity_ml: int = 1000, top_up: int = 18000,
                    delivery_person_id: str = "dp-1"):
        customer = await service.register(CustomerCreate(name=name, phone="9800000000", address="12 Lake Road"))
        await service.subscribe(customer.id, quantity_ml)
        await service.top_up(customer.id, top_up, reference_id=f"pay-{name}")
        return await service.assign_delivery_person(customer.id, delivery_person_id, clock.today())

    return _make
