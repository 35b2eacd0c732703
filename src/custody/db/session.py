"""
Async engine and session factory construction.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from custody.config import settings

logger = logging.getLogger(__name__)


def create_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """Create the async engine for the custody database."""
    return create_async_engine(
        database_url or settings.database_url,
        echo=settings.database_echo if echo is None else echo,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the SQL store backends."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
