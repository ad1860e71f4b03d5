from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from apiprobe.config import get_settings

settings = get_settings()


def async_database_url(database_url: str) -> URL:
    """Use asyncpg for plain postgresql:// URLs; URLs naming a driver are kept."""
    url = make_url(database_url)
    if url.drivername == "postgresql":
        url = url.set(drivername="postgresql+asyncpg")
    return url


engine = create_async_engine(async_database_url(settings.database_url), echo=settings.database_echo)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    pass
