import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from guardbot.config import DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW
from guardbot.database.models import Base

logger = logging.getLogger(__name__)


def engine_pool_options(database_url: str) -> dict:
    """Параметры пула соединений. SQLite (локальный запуск) не поддерживает pool_size / max_overflow."""
    if database_url.startswith("sqlite"):
        return {}
    return {"pool_size": DB_POOL_SIZE, "max_overflow": DB_MAX_OVERFLOW}


# создаем движок и фабрику сессий
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    pool_pre_ping=True,  # Проверка соединения перед использованием
    pool_recycle=3600,   # Переподключение каждый час
    **engine_pool_options(DATABASE_URL),
)
async_session = async_sessionmaker(engine, expire_on_commit=False)


async def init_db():
    """Инициализация базы данных"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ База данных инициализирована")
