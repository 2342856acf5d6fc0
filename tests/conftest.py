import os
import sys
from pathlib import Path
from typing import Callable, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

# КРИТИЧНО: DATABASE_URL до импорта guardbot.config,
# иначе движок по умолчанию смотрит в guardbot.db в корне проекта
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")

# Гарантируем, что пакет guardbot доступен для импортов из тестов
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from aiogram import Bot
from aiogram.types import User
from fakeredis import aioredis as fakeredis_aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from guardbot.database.models import Base, ChatSettings

BOT_ID = 424242
CHAT_ID = -1001234567890


@pytest.fixture
async def session_factory(tmp_path):
    """Фабрика сессий поверх отдельной SQLite базы на каждый тест."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    """Provide an isolated database session for a test."""
    session = session_factory()
    try:
        yield session
    finally:
        try:
            await session.rollback()
        finally:
            await session.close()


@pytest.fixture
async def fake_redis(monkeypatch):
    """Patch project-wide redis client with fakeredis for unit tests."""
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)

    monkeypatch.setattr("guardbot.services.redis_conn.redis", client)

    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture
def chat_members() -> Dict[int, MagicMock]:
    """Статусы участников для bot_mock.get_chat_member (по user_id)."""
    return {
        BOT_ID: make_member("administrator", can_restrict_members=True),
    }


def make_member(status: str, can_restrict_members: bool = False) -> MagicMock:
    return MagicMock(status=status, can_restrict_members=can_restrict_members)


@pytest.fixture
def bot_mock(chat_members):
    """Async mock for aiogram Bot."""
    bot = AsyncMock(spec=Bot)

    async def _get_chat_member(chat_id, user_id):
        return chat_members.get(user_id, make_member("member"))

    bot.get_chat_member = AsyncMock(side_effect=_get_chat_member)
    bot.send_message = AsyncMock(return_value=MagicMock(message_id=777))
    bot.delete_message = AsyncMock(return_value=True)
    bot.ban_chat_member = AsyncMock(return_value=True)
    bot.unban_chat_member = AsyncMock(return_value=True)
    bot.restrict_chat_member = AsyncMock(return_value=True)
    bot.session = AsyncMock()
    bot.id = BOT_ID
    return bot


@pytest.fixture
def api(bot_mock):
    from guardbot.services.moderation_api import ModerationApi

    return ModerationApi(bot_mock)


@pytest.fixture
def settings_factory(db_session) -> Callable:
    """Создаёт строку chat_settings с нужными полями и коммитит."""

    async def _factory(chat_id: int = CHAT_ID, **fields) -> ChatSettings:
        settings = ChatSettings(chat_id=chat_id, **fields)
        db_session.add(settings)
        await db_session.commit()
        return settings

    return _factory


@pytest.fixture
def user_factory() -> Callable[..., User]:
    """Factory for aiogram User instances."""

    def _factory(user_id: int = 100, first_name: str = "Test", is_bot: bool = False) -> User:
        return User(id=user_id, is_bot=is_bot, first_name=first_name)

    return _factory
