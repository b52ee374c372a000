from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from chantier_billing.core.config import settings
from chantier_billing.core.logging import get_logger

logger = get_logger(__name__)

SCHEDULES = "payment_schedules"
INVOICES = "invoices"
PAYMENTS = "payment_history"


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    await create_indexes()
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
        mongodb.client = None
        mongodb.db = None
        logger.info("Disconnected from MongoDB")

async def create_indexes():
    """Create database indexes."""
    # One active schedule per client is looked up on every payment
    await mongodb.db[SCHEDULES].create_index([("client_id", 1), ("status", 1)])
    await mongodb.db[SCHEDULES].create_index("status")
    await mongodb.db[SCHEDULES].create_index(
        "client_id",
        unique=True,
        partialFilterExpression={"status": "active"},
        name="one_active_schedule_per_client"
    )

    # Invoice indexes
    await mongodb.db[INVOICES].create_index([("client_id", 1), ("issue_date", -1)])
    await mongodb.db[INVOICES].create_index([("client_id", 1), ("payment_status", 1)])
    await mongodb.db[INVOICES].create_index("invoice_number", unique=True)

    # Ledger indexes
    await mongodb.db[PAYMENTS].create_index([("client_id", 1), ("date", -1)])

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
