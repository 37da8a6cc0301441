from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from cvworker.config import settings

engine = create_async_engine(settings.database_url, pool_pre_ping=True)

# Workers keep using loaded rows after commit; don't expire them.
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)
