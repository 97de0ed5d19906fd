# src/db/database.py
from core.config import settings
from fastapi import HTTPException
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import event, text
from sqlalchemy.pool import NullPool
from utils.logger import setup_logger

logger = setup_logger("DATABASE")


def _engine_options() -> dict:
    if "sqlite" in settings.DATABASE_URL:
        return {}
    connect_args = {
        "server_settings": {
            "jit": "off",
            "application_name": "motomate_core",
        },
    }
    if settings.ENVIRONMENT == "testing":
        return {"poolclass": NullPool, "connect_args": connect_args}
    return {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
        "connect_args": connect_args,
    }


def use_immediate_transactions(target_engine) -> None:
    """SQLite only: take the write lock when a transaction begins.

    Concurrent writers then wait on the busy timeout instead of failing with
    a lock upgrade error halfway through a transaction.
    """

    @event.listens_for(target_engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# Create SQLAlchemy engine with async support
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(),
)

if "sqlite" in settings.DATABASE_URL:
    use_immediate_transactions(engine)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session per request"""
    async with AsyncSessionLocal() as session:
        try:
            logger.debug("Database session created")

            yield session

            await session.commit()

        except HTTPException:
            await session.rollback()
            # Domain errors are HTTPExceptions; the handlers render them
            raise

        except Exception as exc:
            await session.rollback()
            logger.error(f"Database session error: {exc}", exc_info=True)
            raise


async def create_tables() -> None:
    """Create all tables registered on the declarative base"""
    import models  # noqa: F401  registers every mapper on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def check_db_connection() -> bool:
    """Check database connection health"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def disconnect_db() -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
