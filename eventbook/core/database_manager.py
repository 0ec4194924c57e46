"""
Database engine and session management
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import DisconnectionError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, StaticPool

from eventbook.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class Base(DeclarativeBase):
    pass


class DatabaseManager:
    """Async engine, session factory and health reporting for one database"""

    def __init__(self, database_url: Optional[str] = None) -> None:
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._setup_engine(database_url or self._prepare_database_url())

    def _setup_engine(self, db_url: str) -> None:
        self.engine = create_async_engine(db_url, **self._get_engine_kwargs(db_url))

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        self._setup_event_listeners()

        logger.info(f"Database engine initialized with URL: {self._mask_url(db_url)}")

    def _prepare_database_url(self) -> str:
        """Prepare database URL with appropriate async driver"""
        if settings.TESTING:
            return "sqlite+aiosqlite:///:memory:"

        raw_url = settings.database.database_url
        if raw_url.startswith("postgresql://"):
            return raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if raw_url.startswith("sqlite://"):
            return raw_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return raw_url

    @property
    def is_sqlite(self) -> bool:
        return bool(self.engine and self.engine.dialect.name == "sqlite")

    def _get_engine_kwargs(self, db_url: str) -> Dict[str, Any]:
        """Get engine configuration based on database type"""
        base_kwargs: Dict[str, Any] = {"echo": settings.database.DB_ECHO}

        if db_url.startswith("sqlite"):
            sqlite_connect_args: Dict[str, Any] = {
                "check_same_thread": False,
                "timeout": settings.database.SQLITE_BUSY_TIMEOUT,
            }
            # an in-memory database only exists on its one connection
            in_memory = ":memory:" in db_url or db_url.rstrip("/").endswith("://")
            base_kwargs.update(
                {
                    "poolclass": StaticPool if in_memory else NullPool,
                    "connect_args": sqlite_connect_args,
                }
            )
        else:
            postgres_server_settings: Dict[str, str] = {
                "application_name": f"{settings.PROJECT_NAME.lower()}_app",
                "statement_timeout": str(settings.database.DB_STATEMENT_TIMEOUT),
                "lock_timeout": str(settings.database.DB_LOCK_TIMEOUT),
                "idle_in_transaction_session_timeout": str(
                    settings.database.DB_IDLE_IN_TRANSACTION_TIMEOUT
                ),
            }
            base_kwargs.update(
                {
                    "poolclass": AsyncAdaptedQueuePool,
                    "pool_size": settings.database.DB_POOL_SIZE,
                    "max_overflow": settings.database.DB_MAX_OVERFLOW,
                    "pool_timeout": settings.database.DB_POOL_TIMEOUT,
                    "pool_recycle": settings.database.DB_POOL_RECYCLE,
                    "pool_pre_ping": settings.database.DB_POOL_PRE_PING,
                    "connect_args": {
                        "command_timeout": settings.database.DB_COMMAND_TIMEOUT,
                        "server_settings": postgres_server_settings,
                    },
                }
            )

        return base_kwargs

    def _setup_event_listeners(self) -> None:
        if not self.engine:
            return

        if self.is_sqlite:

            @event.listens_for(self.engine.sync_engine, "connect")  # type: ignore
            def configure_sqlite(dbapi_connection: Any, connection_record: Any) -> None:
                """Hand transaction control to SQLAlchemy and turn on FK checks"""
                dbapi_connection.isolation_level = None
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            @event.listens_for(self.engine.sync_engine, "begin")  # type: ignore
            def begin_immediate(conn: Any) -> None:
                """Take the write lock up front, like SELECT ... FOR UPDATE"""
                conn.exec_driver_sql("BEGIN IMMEDIATE")

        @event.listens_for(self.engine.sync_engine, "checkout")  # type: ignore
        def receive_checkout(
            dbapi_connection: Any, connection_record: Any, connection_proxy: Any
        ) -> None:
            connection_record.info["checkout_time"] = time.time()

        @event.listens_for(self.engine.sync_engine, "checkin")  # type: ignore
        def receive_checkin(dbapi_connection: Any, connection_record: Any) -> None:
            checkout_time = connection_record.info.pop("checkout_time", None)
            if checkout_time is not None:
                checkout_duration = time.time() - checkout_time
                if checkout_duration > 30:
                    logger.warning(
                        f"Long-running database connection: {checkout_duration:.2f}s"
                    )

        @event.listens_for(self.engine.sync_engine, "invalidate")  # type: ignore
        def receive_invalidate(
            dbapi_connection: Any, connection_record: Any, exception: Any
        ) -> None:
            logger.warning(f"Database connection invalidated: {exception}")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session with proper error handling"""
        if not self.session_factory:
            raise RuntimeError("Database not initialized")

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """Create every table registered on ``Base`` (development and tests)"""
        if not self.engine:
            raise RuntimeError("Database not initialized")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        if not self.engine:
            raise RuntimeError("Database not initialized")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def health_check(self) -> Dict[str, Any]:
        """Database health check"""
        if not self.engine:
            return {"status": "error", "message": "Database engine not initialized"}

        try:
            start_time = time.time()

            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1 as health_check"))
                if result.scalar() != 1:
                    return {"status": "error", "message": "Health check query failed"}

            response_time = (time.time() - start_time) * 1000

            return {
                "status": "healthy",
                "response_time_ms": round(response_time, 2),
                "pool_status": self.get_pool_status(),
                "database_url": self._mask_url(str(self.engine.url)),
            }

        except DisconnectionError as e:
            logger.error(f"Database disconnection error: {e}")
            return {"status": "error", "message": "Database disconnected"}
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "error", "message": str(e)}

    def get_pool_status(self) -> Dict[str, Any]:
        if not self.engine:
            return {}

        pool = self.engine.pool
        if not isinstance(pool, AsyncAdaptedQueuePool):
            return {"pool_class": pool.__class__.__name__}
        return {
            "pool_class": pool.__class__.__name__,
            "pool_size": pool.size(),
            "checked_in": pool.checkedin(),
            "checked_out": pool.checkedout(),
            "overflow": pool.overflow(),
        }

    async def close(self) -> None:
        """Close database engine and all connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database engine closed")

    def _mask_url(self, url: str) -> str:
        """Mask the password in a database URL"""
        if "@" in url:
            auth_part, _, host_part = url.rpartition("@")
            if ":" in auth_part.split("://", 1)[-1]:
                protocol_user = auth_part.rsplit(":", 1)[0]
                return f"{protocol_user}:***@{host_part}"
        return url


db_manager = DatabaseManager()