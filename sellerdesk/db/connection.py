from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine,async_sessionmaker,AsyncSession
from sqlmodel import SQLModel
from sellerdesk.config.settings import config_settings
from sellerdesk.db.utils import _normalize_db_url

DATABASE_URL=_normalize_db_url(config_settings.DATABASE_URL)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine,class_=AsyncSession,expire_on_commit=False)


async def create_all_tables(engine: AsyncEngine) -> None:
    # table models must be imported so they register on SQLModel.metadata
    import sellerdesk.schema.full_schema  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async_engine=create_async_engine(DATABASE_URL,echo=False)

async_session=make_session_factory(async_engine)
