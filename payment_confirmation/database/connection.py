"""Database engine construction and schema provisioning."""
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from payment_confirmation.config import Settings
from payment_confirmation.database.models import Base


def _engine_kwargs(settings: Settings) -> Dict[str, Any]:
    """Build dialect-appropriate engine options."""
    if settings.is_sqlite:
        return {
            "poolclass": NullPool,
            "connect_args": {"timeout": settings.database_command_timeout},
        }
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_timeout": settings.database_pool_timeout,
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "connect_args": {"command_timeout": settings.database_command_timeout},
    }


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the process-wide database engine.

    Args:
        settings: Application settings

    Returns:
        AsyncEngine: SQLAlchemy async engine instance
    """
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        **_engine_kwargs(settings),
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables defined in models if they don't exist.

    Deployment-time only; request handlers never provision schema.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections and dispose of the engine."""
    await engine.dispose()
