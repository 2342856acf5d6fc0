# guardbot/services/antiflood/flood_service.py
"""
Антифлуд: слишком много сообщений от одного пользователя за короткое окно.

Порядок на каждое сообщение (не админ, не одобренный):
1. Запоминаем message_id в flood_msgs:{chat_id}:{user_id} (для очистки)
2. Учитываем событие в скользящем окне flood:{chat_id}:{user_id}
3. При превышении порога - сбрасываем окно и применяем flood_mode
4. Если включён flood_clear_all - удаляем запомненные сообщения
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.config import FLOOD_TEMP_ACTION_SECONDS
from guardbot.database.models import ChatSettings
from guardbot.services.moderation_api import ModerationApi
from guardbot.services.restriction_service import (
    RestrictionAction,
    RestrictionOutcome,
    apply_restriction,
)
from guardbot.services.settings_service import flood_window_seconds
from guardbot.services.sliding_window import (
    WindowKind,
    flood_detector,
    record_event_and_check_threshold,
)

logger = logging.getLogger(__name__)

FLOOD_MESSAGES_KEY = "flood_msgs:{chat_id}:{user_id}"
# Сколько последних сообщений пользователя помним для очистки
FLOOD_MESSAGES_CAP = 50

FLOOD_REASON = "Флуд"


class FloodMode(str, Enum):
    """Наказание за флуд (chat_settings.flood_mode)."""
    BAN = "ban"
    MUTE = "mute"
    KICK = "kick"
    TBAN = "tban"
    TMUTE = "tmute"

    @classmethod
    def from_setting(cls, value: Optional[str]) -> "FloodMode":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.MUTE


# flood_mode → (действие, временное ли)
_MODE_ACTIONS = {
    FloodMode.BAN: (RestrictionAction.BAN, False),
    FloodMode.MUTE: (RestrictionAction.MUTE, False),
    FloodMode.KICK: (RestrictionAction.KICK, False),
    FloodMode.TBAN: (RestrictionAction.BAN, True),
    FloodMode.TMUTE: (RestrictionAction.MUTE, True),
}


def _messages_key(chat_id: int, user_id: int) -> str:
    return FLOOD_MESSAGES_KEY.format(chat_id=chat_id, user_id=user_id)


async def track_flood_message(
    redis: Redis,
    chat_id: int,
    user_id: int,
    message_id: int,
    window_seconds: int,
) -> None:
    """Запоминает message_id для flood_clear_all. Ошибки Redis только логируются."""
    key = _messages_key(chat_id, user_id)
    try:
        async with redis.pipeline(transaction=True) as pipe:
            pipe.rpush(key, message_id)
            pipe.ltrim(key, -FLOOD_MESSAGES_CAP, -1)
            pipe.expire(key, int(window_seconds) + 1)
            await pipe.execute()
    except Exception as e:
        logger.error(f"[FLOOD] Ошибка Redis при сохранении сообщения: key={key}, error={e}")


async def check_flood(
    redis: Redis,
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    now: Optional[float] = None,
) -> bool:
    """
    Учитывает сообщение и проверяет порог флуда.

    При превышении окно сразу очищается, чтобы следующее
    сообщение не сработало повторно.

    Returns:
        True если порог превышен этим сообщением
    """
    breached = await record_event_and_check_threshold(
        redis, session, WindowKind.FLOOD, chat_id, user_id=user_id, now=now,
    )
    if not breached:
        return False

    try:
        await flood_detector(redis).reset(chat_id, user_id)
    except Exception as e:
        logger.error(f"[FLOOD] Не удалось сбросить окно: chat_id={chat_id}, user_id={user_id}, error={e}")

    logger.info(f"🌊 [FLOOD] Флуд обнаружен: chat_id={chat_id}, user_id={user_id}")
    return True


async def apply_flood_action(
    api: ModerationApi,
    session: AsyncSession,
    settings: ChatSettings,
    chat_id: int,
    user_id: int,
    user_name: Optional[str] = None,
) -> RestrictionOutcome:
    """
    Применяет наказание по flood_mode группы.

    tban / tmute длятся сутки и снимаются отложенным действием.
    Бот действует как обычный администратор, поэтому админов не трогает.
    """
    mode = FloodMode.from_setting(settings.flood_mode)
    action, temporary = _MODE_ACTIONS[mode]

    outcome = await apply_restriction(
        api,
        session,
        action,
        chat_id,
        user_id,
        target_name=user_name,
        reason=FLOOD_REASON,
        duration=FLOOD_TEMP_ACTION_SECONDS if temporary else None,
    )

    if outcome.success:
        logger.info(f"[FLOOD] Наказание {mode.value}: chat_id={chat_id}, user_id={user_id}")
    else:
        logger.warning(
            f"⚠️ [FLOOD] Наказание {mode.value} не применено: chat_id={chat_id}, "
            f"user_id={user_id}, failure={outcome.failure}"
        )
    return outcome


async def clear_flood_messages(
    api: ModerationApi,
    redis: Redis,
    chat_id: int,
    user_id: int,
) -> int:
    """
    Удаляет запомненные сообщения флудера.

    Returns:
        Сколько сообщений удалено
    """
    key = _messages_key(chat_id, user_id)
    try:
        raw_ids: List[str] = await redis.lrange(key, 0, -1)
        await redis.delete(key)
    except Exception as e:
        logger.error(f"[FLOOD] Ошибка Redis при очистке: key={key}, error={e}")
        return 0

    deleted = 0
    for raw_id in raw_ids:
        try:
            message_id = int(raw_id)
        except (TypeError, ValueError):
            continue
        if await api.safe_delete_message(chat_id, message_id):
            deleted += 1

    logger.info(f"🧹 [FLOOD] Удалено сообщений: {deleted}/{len(raw_ids)}, chat_id={chat_id}, user_id={user_id}")
    return deleted


async def handle_group_message(
    api: ModerationApi,
    redis: Redis,
    session: AsyncSession,
    settings: ChatSettings,
    chat_id: int,
    user_id: int,
    message_id: int,
    user_name: Optional[str] = None,
    now: Optional[float] = None,
) -> bool:
    """
    Полная обработка сообщения антифлудом (проверка исключений делается снаружи).

    Returns:
        True если сработал антифлуд
    """
    if (settings.flood_limit or 0) <= 0:
        return False

    if settings.flood_clear_all:
        await track_flood_message(redis, chat_id, user_id, message_id, flood_window_seconds(settings))

    if not await check_flood(redis, session, chat_id, user_id, now=now):
        return False

    await apply_flood_action(api, session, settings, chat_id, user_id, user_name)

    if settings.flood_clear_all:
        await clear_flood_messages(api, redis, chat_id, user_id)

    return True
