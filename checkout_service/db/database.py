# checkout_service/db/database.py
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from checkout_service.config import DATABASE_URL, DATABASE_ECHO

# Настройка асинхронного движка
engine = create_async_engine(DATABASE_URL, echo=DATABASE_ECHO)

# Асинхронная фабрика сессий
SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Базовый класс для моделей
Base = declarative_base()


# Генератор сессий
async def get_db():
    async with SessionLocal() as session:
        yield session
