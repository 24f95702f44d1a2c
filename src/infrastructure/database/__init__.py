"""
Database Infrastructure
=======================

Manages database connections, session lifecycle, and engine configuration.

Uses SQLAlchemy 2.0 async engines (asyncpg for PostgreSQL). The engine is
owned by a ``Database`` instance that the application context creates at
startup and disposes on shutdown; nothing is kept in module globals.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Type

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Session

from src.config import Settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    SQLAlchemy 2.0 style using DeclarativeBase.
    All models inherit from this class.
    """
    pass


class Database:
    """
    Async engine and session factory for one application context.

    Sessions are built on ``session_class`` so that listeners registered on
    that class (auditing) apply to every write made through this database.
    """

    def __init__(self, settings: Settings, session_class: Type[Session] = Session):
        self._settings = settings
        self._session_class = session_class
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        """
        Get the database engine.

        Raises:
            RuntimeError: If the engine has not been initialized
        """
        if self._engine is None:
            raise RuntimeError("Database engine not initialized. Call connect() first.")
        return self._engine

    @property
    def session_class(self) -> Type[Session]:
        return self._session_class

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def connect(self) -> AsyncEngine:
        """
        Initialize the database engine and session maker.

        Returns:
            AsyncEngine: The initialized engine
        """
        if self._engine is not None:
            return self._engine

        # Fix asyncpg SSL: replace sslmode with ssl for asyncpg compatibility
        database_url = self._settings.database_url.replace("sslmode=", "ssl=")

        engine_options = {
            "echo": self._settings.debug,
            "pool_pre_ping": True,  # Verify connections before using
        }
        # SQLite uses a static/single-connection pool without sizing options
        if make_url(database_url).get_backend_name() != "sqlite":
            engine_options["pool_size"] = self._settings.db_pool_size
            engine_options["max_overflow"] = self._settings.db_max_overflow

        self._engine = create_async_engine(database_url, **engine_options)

        self._session_maker = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            sync_session_class=self._session_class,
            expire_on_commit=False,  # Prevent lazy loading after commit
            autoflush=False,
        )

        return self._engine

    async def verify(self) -> None:
        """Open a connection and run a trivial query."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_tables(self) -> None:
        """
        Create all database tables.

        This should only be used for development/testing.
        Production should use migrations (Alembic).
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """
        Close the database engine and dispose of connections.

        Safe to call more than once.
        """
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Async context manager for database sessions.

        Commits on success, rolls back on error.

        Usage:
            async with database.session() as session:
                session.add(model)

        Yields:
            AsyncSession: SQLAlchemy async session
        """
        if self._session_maker is None:
            raise RuntimeError("Database not initialized. Call connect() first.")

        async with self._session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Async generator for database sessions.

    For use with FastAPI's Depends() - FastAPI handles the lifecycle.

    Usage in FastAPI:
        @router.get("/products")
        async def list_products(session: AsyncSession = Depends(get_session)):
            result = await session.execute(select(ProductModel))
            return result.scalars().all()

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
