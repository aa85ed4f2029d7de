import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from doorstep.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None


mongodb = MongoDatabase()


async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URI)
    mongodb.db = mongodb.client[settings.MONGODB_DB]

    # Create indexes
    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.MONGODB_DB)


async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")


async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes, including every uniqueness rule of the ledger."""
    await db["customers"].create_index("delivery_person_id")
    await db["subscriptions"].create_index("customer_id", unique=True)

    # Wallet: one per customer, ledger rows totally ordered per wallet
    await db["wallets"].create_index("customer_id", unique=True)
    await db["wallet_transactions"].create_index([("wallet_id", 1), ("seq", 1)], unique=True)

    # Calendar: one row of each kind per (customer, date)
    await db["deliveries"].create_index([("customer_id", 1), ("delivery_date", 1)], unique=True)
    await db["deliveries"].create_index([("delivery_person_id", 1), ("delivery_date", 1)])
    await db["pauses"].create_index([("customer_id", 1), ("pause_date", 1)], unique=True)
    await db["delivery_modifications"].create_index(
        [("customer_id", 1), ("modification_date", 1)], unique=True
    )

    # Containers
    await db["container_accounts"].create_index("customer_id", unique=True)
    await db["container_ledger"].create_index([("customer_id", 1), ("seq", 1)], unique=True)

    # Billing
    await db["monthly_payments"].create_index(
        [("customer_id", 1), ("year", 1), ("month", 1)], unique=True
    )

    # Pricing
    await db["price_tiers"].create_index("quantity_ml", unique=True)
