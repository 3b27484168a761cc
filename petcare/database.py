"""MongoDB database connection and setup."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import IndexModel, ASCENDING
from typing import AsyncGenerator
import logging
import certifi

from petcare.config import get_settings

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    @classmethod
    async def connect(cls) -> None:
        """Connect to MongoDB and set up indexes."""
        settings = get_settings()

        client_options: dict = {
            "serverSelectionTimeoutMS": 30000,
            "connectTimeoutMS": 20000,
            "socketTimeoutMS": 20000,
        }

        # Hosted clusters need the CA bundle for the TLS handshake.
        if settings.mongodb_url.startswith("mongodb+srv://"):
            client_options["tls"] = True
            client_options["tlsCAFile"] = certifi.where()

        cls.client = AsyncIOMotorClient(settings.mongodb_url, **client_options)
        cls.db = cls.client[settings.mongodb_database]

        await cls.client.admin.command("ping")
        logger.info(f"Connected to MongoDB database: {settings.mongodb_database}")
        await cls._create_indexes()

    @classmethod
    async def disconnect(cls) -> None:
        """Disconnect from MongoDB."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def _create_indexes(cls) -> None:
        """Create necessary indexes for all collections."""
        if cls.db is None:
            raise RuntimeError("Database not connected")

        # Profile records are keyed by uid (stored as _id), email for lookups
        await cls.db.users.create_indexes([
            IndexModel([("email", ASCENDING)]),
        ])

        # Pet names are unique per owner, case-insensitive
        await cls.db.pets.create_indexes([
            IndexModel(
                [("user_id", ASCENDING), ("name_key", ASCENDING)],
                unique=True,
                name="owner_name_unique",
            ),
            IndexModel([("user_id", ASCENDING), ("created_at", ASCENDING)]),
        ])

        logger.info("Database indexes created successfully")

    @classmethod
    def get_db(cls) -> AsyncIOMotorDatabase:
        """Get the database instance."""
        if cls.db is None:
            raise RuntimeError("Database not connected. Call Database.connect() first.")
        return cls.db


async def get_database() -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    """Dependency for getting database instance."""
    yield Database.get_db()
