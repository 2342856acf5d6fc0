# guardbot/services/settings_service.py
"""
Чтение настроек модерации группы (chat_settings).

UI и валидация настроек живут вне движка модерации - здесь только то,
что нужно антифлуду, капче и антирейду.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.config import (
    DEFAULT_FLOOD_WINDOW_SECONDS,
    DEFAULT_CAPTCHA_KICK_SECONDS,
    DEFAULT_RAID_SECONDS,
)
from guardbot.database.models import ChatSettings, utcnow

logger = logging.getLogger(__name__)


async def get_chat_settings(session: AsyncSession, chat_id: int) -> Optional[ChatSettings]:
    """
    Получает настройки группы.

    Args:
        session: Сессия БД
        chat_id: ID группы

    Returns:
        ChatSettings или None если группа ещё не настраивалась
    """
    result = await session.execute(
        select(ChatSettings).where(ChatSettings.chat_id == chat_id)
    )
    return result.scalar_one_or_none()


async def get_or_create_chat_settings(session: AsyncSession, chat_id: int) -> ChatSettings:
    """Получает настройки группы, создавая строку с дефолтами при отсутствии."""
    settings = await get_chat_settings(session, chat_id)
    if settings is not None:
        return settings

    settings = ChatSettings(chat_id=chat_id)
    session.add(settings)
    await session.flush()
    logger.info(f"[SETTINGS] Созданы дефолтные настройки для chat_id={chat_id}")
    return settings


def flood_window_seconds(settings: ChatSettings) -> int:
    # 0 / NULL = окно по умолчанию
    return settings.flood_timer if settings.flood_timer and settings.flood_timer > 0 else DEFAULT_FLOOD_WINDOW_SECONDS


def captcha_kick_seconds(settings: ChatSettings) -> int:
    if settings.captcha_kick_time and settings.captcha_kick_time > 0:
        return settings.captcha_kick_time
    return DEFAULT_CAPTCHA_KICK_SECONDS


def raid_duration_seconds(settings: ChatSettings) -> int:
    return settings.raid_time if settings.raid_time and settings.raid_time > 0 else DEFAULT_RAID_SECONDS


def is_raid_mode_active(settings: ChatSettings, now: Optional[datetime] = None) -> bool:
    """Режим рейда активен: флаг включён и срок ещё не истёк."""
    if not settings.antiraid_enabled or settings.antiraid_expires_at is None:
        return False
    if now is None:
        now = utcnow()
    return settings.antiraid_expires_at > now
