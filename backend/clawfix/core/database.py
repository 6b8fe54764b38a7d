from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import Optional

from clawfix.core.config import settings

# Create base class for models (can be defined before engine)
Base = declarative_base()


def get_database_url(db_url: Optional[str] = None) -> str:
    """Get properly formatted async database URL"""
    db_url = db_url if db_url is not None else settings.DATABASE_URL
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def create_engine_for(db_url: str) -> AsyncEngine:
    """
    Build an async engine for the given URL.

    Connection pooling strategy:
    - SQLite: NullPool (required for thread safety)
    - PostgreSQL: small pool, the store is written once per diagnosis
    """
    db_url = get_database_url(db_url)

    if "sqlite" in db_url:
        return create_async_engine(
            db_url,
            echo=settings.DB_ECHO,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )

    return create_async_engine(
        db_url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=0,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,  # Verify connections before use
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
