"""
Tubely MongoDB Database Client Module

Async MongoDB connection management using Motor. It implements:
- Connection pooling with configurable pool size
- Health checks using the MongoDB ping command
- Accessor for the ``videos`` collection
- Index creation on startup
- Retry with exponential backoff while connecting

The client is created by the application lifespan and stored on
``app.state.db``; request dependencies read it from there.
"""

import asyncio
import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import PyMongoError

from tubely.config import Settings


logger = logging.getLogger(__name__)

VIDEOS_COLLECTION = "videos"

CONNECT_ATTEMPTS = 3
INITIAL_RETRY_DELAY_SECONDS = 1.0


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Example usage:
        ```python
        db_client = DatabaseClient(settings)
        await db_client.connect()
        videos = db_client.get_videos_collection()
        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._min_pool_size = settings.mongodb_min_pool_size
        self._max_pool_size = settings.mongodb_max_pool_size
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

    async def connect(self) -> bool:
        """
        Establish the MongoDB connection, retrying with exponential backoff.

        Returns:
            bool: True once a ping succeeds, False after all attempts failed.
        """
        retry_delay = INITIAL_RETRY_DELAY_SECONDS

        for attempt in range(1, CONNECT_ATTEMPTS + 1):
            try:
                logger.info(
                    "Attempting MongoDB connection (attempt %d/%d) to %s",
                    attempt,
                    CONNECT_ATTEMPTS,
                    self._db_name,
                )
                self._client = AsyncIOMotorClient(
                    self._mongodb_uri,
                    minPoolSize=self._min_pool_size,
                    maxPoolSize=self._max_pool_size,
                    serverSelectionTimeoutMS=5000,
                    uuidRepresentation="standard",
                )
                self._database = self._client[self._db_name]
                await self._client.admin.command("ping")

                logger.info(
                    "Connected to MongoDB database %s (pool %d-%d)",
                    self._db_name,
                    self._min_pool_size,
                    self._max_pool_size,
                )
                return True

            except PyMongoError:
                logger.exception(
                    "MongoDB connection failure (attempt %d/%d)", attempt, CONNECT_ATTEMPTS
                )
                if attempt < CONNECT_ATTEMPTS:
                    logger.warning("Retrying in %.1f seconds...", retry_delay)
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2

        logger.error(
            "Failed to connect to MongoDB after %d attempts. "
            "Check connection URI and server availability.",
            CONNECT_ATTEMPTS,
        )
        return False

    async def close(self) -> None:
        """Close the Motor client. Safe to call when not connected."""
        if self._client is None:
            return
        self._client.close()
        self._client = None
        self._database = None
        logger.info("MongoDB connection closed for database: %s", self._db_name)

    async def ping(self) -> bool:
        """Health check using the MongoDB admin ping command."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError:
            logger.exception("MongoDB ping failed")
            return False
        return True

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError(
                "MongoDB database not available. Call connect() first or check connection status."
            )
        return self._database

    def get_videos_collection(self) -> AsyncIOMotorCollection:
        """
        Get the ``videos`` collection.

        Documents are keyed by the video UUID string in ``_id`` and hold the
        owner's UUID string in ``user_id``.
        """
        return self.get_database()[VIDEOS_COLLECTION]

    async def create_indexes(self) -> None:
        """Create the ``videos`` indexes used by owner lookups."""
        videos = self.get_videos_collection()
        await videos.create_index("user_id")
        await videos.create_index([("user_id", 1), ("created_at", -1)])
        logger.info("Created indexes on %s collection", VIDEOS_COLLECTION)


async def init_db(settings: Settings) -> DatabaseClient:
    """
    Create, connect and index a DatabaseClient.

    Raises:
        RuntimeError: If the connection fails after all retries.
    """
    client = DatabaseClient(settings)
    if not await client.connect():
        raise RuntimeError(
            "Failed to establish MongoDB connection. "
            "Check mongodb_uri configuration and server availability."
        )
    await client.create_indexes()
    return client
