from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from nine_worlds.config import DATABASE_URL, DB_SCHEMA, SQL_ECHO
from typing import AsyncGenerator

engine = create_async_engine(
    DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://"),
    echo=SQL_ECHO,
    future=True
)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
# every table (and "table.column" foreign key) lands in DB_SCHEMA when it is set
Base = declarative_base(metadata=MetaData(schema=DB_SCHEMA))

# Dependency for FastAPI routes
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
