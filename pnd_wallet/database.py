"""
Storage initialization and health checks.

`init_store()` picks the backend named by STORAGE_BACKEND. For MongoDB it
connects with retries, registers the Beanie document models (which also
builds their indexes) and wraps the client in a MongoDocumentStore.
"""

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from pnd_wallet.core.config import AppConfig, DatabaseConfig
from pnd_wallet.core.exceptions import StorageError, ConfigurationError
from pnd_wallet.core.monitoring import monitor_errors
from pnd_wallet.models import DOCUMENT_MODELS
from pnd_wallet.storage.base import DocumentStore
from pnd_wallet.storage.memory import InMemoryDocumentStore
from pnd_wallet.storage.mongo import MongoDocumentStore
import logging
import asyncio
from datetime import datetime, timezone
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_not_exception_type
from typing import Dict, Any

logger = logging.getLogger(__name__)


@monitor_errors("database_init")
@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(ConfigurationError),
    reraise=True,
)
async def init_db(database: DatabaseConfig) -> MongoDocumentStore:
    """
    Connect to MongoDB and initialize Beanie.

    Raises:
        StorageError: If the connection or model registration fails
        ConfigurationError: If the URL is missing
    """
    if not database.url:
        raise ConfigurationError(
            "MONGO_URL environment variable is not set",
            config_key="MONGO_URL",
            expected_value="mongodb://localhost:27017/pnd",
        )

    # Transactions need a replica set; retryable writes stay on for single-op writes
    connection_kwargs = {
        "maxPoolSize": database.max_pool_size,
        "minPoolSize": database.min_pool_size,
        "maxIdleTimeMS": database.max_idle_time_ms,
        "serverSelectionTimeoutMS": database.server_selection_timeout_ms,
        "connectTimeoutMS": database.connect_timeout_ms,
        "socketTimeoutMS": database.socket_timeout_ms,
        "retryWrites": True,
        "tz_aware": True,
    }

    logger.info(
        f"Connecting to MongoDB (pool: min={database.min_pool_size}, "
        f"max={database.max_pool_size})"
    )

    client = AsyncIOMotorClient(database.url, **connection_kwargs)

    try:
        try:
            await asyncio.wait_for(client.admin.command("ping"), timeout=5.0)
        except asyncio.TimeoutError:
            raise StorageError("Database connection timeout", operation="ping_test")

        await init_beanie(
            database=client.get_default_database(),
            document_models=DOCUMENT_MODELS,
        )
    except StorageError:
        client.close()
        raise
    except Exception as e:
        client.close()
        logger.error("Failed to initialize database", exc_info=True)
        raise StorageError(
            "Database initialization failed",
            operation="init_db",
        ) from e

    logger.info("MongoDB connected and Beanie initialized successfully")
    return MongoDocumentStore(client)


async def init_store(config: AppConfig) -> DocumentStore:
    """Create the document store selected by configuration."""
    if config.storage_backend == "memory":
        logger.warning("Using in-memory document store; balances are lost on restart")
        return InMemoryDocumentStore()
    return await init_db(config.database)


async def close_store(store: DocumentStore):
    """Close the store gracefully."""
    if store is not None:
        await store.close()
        logger.info("Document store closed")


async def health_check(store: DocumentStore) -> Dict[str, Any]:
    """
    Report whether the document store is reachable.
    """
    reachable = store is not None and await store.ping()
    return {
        "status": "healthy" if reachable else "unhealthy",
        "storage": type(store).__name__ if store is not None else None,
        "database": "connected" if reachable else "disconnected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
