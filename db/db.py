import asyncio
from typing import Optional, Tuple

from fastapi import HTTPException, status
from minio import Minio
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from config import (
    DATABASE_URL,
    DATABASE_NAME,
    DB_MAX_POOL_SIZE,
    DB_MAX_RECONNECT_ATTEMPTS,
    DB_RECONNECT_DELAY,
    DB_SERVER_SELECTION_TIMEOUT_MS,
    DB_CONNECT_TIMEOUT_MS,
    MINIO_USERNAME,
    MINIO_PASSWORD,
    MINIO_SERVER,
    MINIO_BUCKET,
)
from db.init_db import init_db_indexes
from logger.logger import logger

# Process-wide clients, created at startup
client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None
minio_client: Optional[Minio] = None

async def init_db():
    """
    Connect to MongoDB with retries and make sure the messaging indexes exist.
    After the last failed attempt the service keeps running and requests
    that need the database get a 503.
    """
    global client, db

    for attempt in range(1, DB_MAX_RECONNECT_ATTEMPTS + 1):
        try:
            if client is None:
                client = AsyncIOMotorClient(
                    DATABASE_URL,
                    maxPoolSize=DB_MAX_POOL_SIZE,
                    serverSelectionTimeoutMS=DB_SERVER_SELECTION_TIMEOUT_MS,
                    connectTimeoutMS=DB_CONNECT_TIMEOUT_MS,
                    retryWrites=True,
                    retryReads=True
                )
                db = client[DATABASE_NAME]

            await client.admin.command('ping')
            await init_db_indexes(db)
            logger.info(f"Connected to MongoDB database '{DATABASE_NAME}'")
            return
        except Exception as e:
            logger.error(f"MongoDB unavailable (attempt {attempt}/{DB_MAX_RECONNECT_ATTEMPTS}): {e}")
            if attempt < DB_MAX_RECONNECT_ATTEMPTS:
                await asyncio.sleep(DB_RECONNECT_DELAY)

    logger.error("Giving up on MongoDB; messaging endpoints will answer 503")

async def get_db() -> AsyncIOMotorDatabase:
    """
    Dependency function to get database connection.
    For use with FastAPI Depends().
    """
    if client is None:
        await init_db()

    if db is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service unavailable"
        )

    return db

async def close_db_connection():
    global client, db
    if client:
        client.close()
        client = None
        db = None
        logger.info("DB connection closed")

def minio_endpoint(server: str) -> Tuple[str, bool]:
    """Split a configured server address into Minio's (host:port, secure) form"""
    if server.startswith("https://"):
        return server[len("https://"):], True
    if server.startswith("http://"):
        return server[len("http://"):], False
    return server, False

async def init_object_storage():
    """Create the attachment storage client and its bucket"""
    global minio_client

    endpoint, secure = minio_endpoint(MINIO_SERVER)
    minio_client = Minio(
        endpoint,
        access_key=MINIO_USERNAME,
        secret_key=MINIO_PASSWORD,
        secure=secure
    )

    # Text-only messaging keeps working if storage is down at startup
    try:
        if not minio_client.bucket_exists(MINIO_BUCKET):
            minio_client.make_bucket(MINIO_BUCKET)
            logger.info(f"Attachment bucket '{MINIO_BUCKET}' created")
    except Exception as e:
        logger.error(f"Object storage unavailable at startup: {e}")

async def get_object_storage() -> Minio:
    """
    Attachment storage client, created on first use if startup did not.
    """
    if minio_client is None:
        await init_object_storage()

    if minio_client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Object storage service unavailable"
        )

    return minio_client
