from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinicdesk.core.config import settings

def build_session_factory(database_url: str = settings.DATABASE_URL) -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(database_url, echo=False, future=True, pool_pre_ping=True)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
