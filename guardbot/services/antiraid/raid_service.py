# guardbot/services/antiraid/raid_service.py
"""
Режим рейда группы.

Пока режим активен (antiraid_enabled и antiraid_expires_at в будущем),
каждый новый участник сразу кикается (бан + разбан, вернуться можно позже).

Включение:
- вручную (enable_raid_mode)
- автоматически, если за 60 секунд вошло auto_antiraid_limit человек

Выключение:
- вручную (disable_raid_mode)
- по таймеру: отложенное действие antiraid_disable на antiraid_expires_at
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from aiogram.exceptions import TelegramAPIError
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.database.models import ChatSettings, utcnow
from guardbot.services.moderation_api import ModerationApi
from guardbot.services.scheduler.actions import ScheduledActionType
from guardbot.services.scheduler.repository import schedule_action
from guardbot.services.settings_service import (
    get_or_create_chat_settings,
    get_chat_settings,
    is_raid_mode_active,
    raid_duration_seconds,
)
from guardbot.services.sliding_window import WindowKind, record_event_and_check_threshold
from guardbot.utils.time_utils import format_duration

logger = logging.getLogger(__name__)


async def enable_raid_mode(
    session: AsyncSession,
    chat_id: int,
    duration: Optional[int] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Включает режим рейда и планирует его выключение.

    Args:
        session: Сессия БД
        chat_id: ID группы
        duration: Длительность в секундах (по умолчанию raid_time группы)
        now: Текущее время (naive UTC)

    Returns:
        Время окончания режима
    """
    if now is None:
        now = utcnow()

    settings = await get_or_create_chat_settings(session, chat_id)
    if duration is None or duration <= 0:
        duration = raid_duration_seconds(settings)

    expires_at = now + timedelta(seconds=duration)
    settings.antiraid_enabled = True
    settings.antiraid_expires_at = expires_at

    await schedule_action(
        session,
        ScheduledActionType.ANTIRAID_DISABLE,
        chat_id=chat_id,
        execute_at=expires_at,
        commit=False,
    )
    await session.commit()

    logger.info(f"🛡 [ANTIRAID] Режим рейда включён: chat_id={chat_id}, до {expires_at}")
    return expires_at


async def disable_raid_mode(session: AsyncSession, chat_id: int) -> bool:
    """
    Выключает режим рейда вручную.

    Отложенный antiraid_disable остаётся в очереди и позже
    просто повторно запишет тот же выключенный флаг.

    Returns:
        True если режим был включён
    """
    settings = await get_chat_settings(session, chat_id)
    if settings is None or not settings.antiraid_enabled:
        return False

    settings.antiraid_enabled = False
    settings.antiraid_expires_at = None
    await session.commit()

    logger.info(f"🛡 [ANTIRAID] Режим рейда выключен вручную: chat_id={chat_id}")
    return True


async def track_join_velocity(
    api: ModerationApi,
    redis: Redis,
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    now: Optional[float] = None,
) -> bool:
    """
    Учитывает вход и включает режим рейда при превышении порога.

    Args:
        api: Обёртка над Bot (для уведомления в группу)
        redis: Клиент Redis
        session: Сессия БД
        chat_id: ID группы
        user_id: ID вошедшего
        now: Текущее время (unix seconds)

    Returns:
        True если этим входом режим рейда был включён
    """
    breached = await record_event_and_check_threshold(
        redis, session, WindowKind.RAID, chat_id, user_id=user_id, now=now,
    )
    if not breached:
        return False

    current = datetime.fromtimestamp(now, timezone.utc).replace(tzinfo=None) if now is not None else None
    settings = await get_chat_settings(session, chat_id)
    duration = raid_duration_seconds(settings)

    await enable_raid_mode(session, chat_id, duration=duration, now=current)

    logger.warning(
        f"🚨 [ANTIRAID] Рейд обнаружен: chat_id={chat_id}, "
        f"порог={settings.auto_antiraid_limit} входов/мин"
    )

    try:
        await api.send_message(
            chat_id,
            f"🚨 <b>Обнаружен рейд!</b>\n\n"
            f"Режим антирейда автоматически включён на {format_duration(duration)}. "
            f"Новые участники будут удаляться.",
        )
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [ANTIRAID] Не удалось отправить уведомление: chat_id={chat_id}, error={e}")

    return True


async def kick_joiner_during_raid(
    api: ModerationApi,
    chat_id: int,
    user_id: int,
) -> bool:
    """
    Кикает вошедшего во время рейда (бан + разбан).

    Returns:
        True если кик удался
    """
    try:
        await api.kick(chat_id, user_id)
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [ANTIRAID] Не удалось кикнуть: chat_id={chat_id}, user_id={user_id}, error={e}")
        return False

    logger.info(f"🚪 [ANTIRAID] Кик во время рейда: chat_id={chat_id}, user_id={user_id}")
    return True


def raid_mode_active(settings: Optional[ChatSettings], now: Optional[datetime] = None) -> bool:
    """Режим рейда активен для настроек (None = настроек нет)."""
    return settings is not None and is_raid_mode_active(settings, now)
