# tests/unit/test_database_session.py
"""
Тесты движка и фабрики сессий.

Покрывает:
- Параметры пула: из конфига для PostgreSQL, без них для SQLite
- init_db создаёт таблицы движка модерации
"""

import pytest
from sqlalchemy import inspect

from guardbot.config import DB_MAX_OVERFLOW, DB_POOL_SIZE
from guardbot.database import session as session_module


@pytest.mark.parametrize(
    "url",
    ["postgresql+asyncpg://bot:secret@db:5432/guardbot", "postgresql://localhost/guardbot"],
)
def test_pool_options_for_postgres(url):
    assert session_module.engine_pool_options(url) == {
        "pool_size": DB_POOL_SIZE,
        "max_overflow": DB_MAX_OVERFLOW,
    }


@pytest.mark.parametrize("url", ["sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///guardbot.db"])
def test_no_pool_options_for_sqlite(url):
    assert session_module.engine_pool_options(url) == {}


@pytest.mark.asyncio
async def test_init_db_creates_tables():
    """Тест: init_db создаёт все четыре таблицы."""
    await session_module.init_db()

    async with session_module.engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    assert {"chat_settings", "scheduled_actions", "captcha_challenges", "approved_users"} <= set(tables)
