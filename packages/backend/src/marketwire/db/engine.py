"""Async SQLAlchemy engine and session factory.

One engine with connection pooling for the whole process. Services take
the session factory, so tests can hand them one bound to another engine.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from marketwire.config import settings

# Connection pool: 5 steady, up to 20 under load.
# echo=True in debug to see SQL queries.
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=15,
    pool_recycle=1800,
)

# Services open one short session per call from this factory.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
