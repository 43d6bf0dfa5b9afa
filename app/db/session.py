from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from app.config import settings


DATABASE_URL = str(settings.DATABASE_URL)

engine_options = {"echo": settings.DEBUG}
if DATABASE_URL.startswith("sqlite"):
    # in-memory sqlite (tests) must share one connection
    engine_options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})

# create async engine
engine = create_async_engine(DATABASE_URL, **engine_options)

# session factory
async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:  # to be used as dependency
    async with async_session() as session:
        yield session
