import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from vision.core.config import settings
from vision.helpers.getters import isDebugMode

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

if isDebugMode():
    logger.info("Using debug database configuration")
    engine = create_async_engine(DATABASE_URL, future=True, echo=settings.DATABASE_ECHO)
else:
    logger.info("Using production database configuration")
    engine = create_async_engine(DATABASE_URL, future=True, echo=False, pool_pre_ping=True)

SessionAsync = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Create all tables (development only, production uses migrations)."""
    from vision.db.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
