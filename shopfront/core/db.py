from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import get_settings


def _engine_options(database_url: str) -> dict:
    # SQLite (tests, local dev) does not take the pool sizing arguments
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,  # Verify connections before using them
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_size": 10,
        "max_overflow": 20,
    }


settings = get_settings()
engine = create_async_engine(
    settings.database_url,
    echo=False,
    **_engine_options(settings.database_url),
)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class Base(DeclarativeBase):
    pass


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session
