# guardbot/handlers/join_coordinator.py
"""
Координатор вступлений - ЕДИНАЯ ТОЧКА ВХОДА для новых участников.

Порядок для каждого вступившего (боты пропускаются):
1. Авто-антирейд: учитываем вход в окне 60с
2. Если режим рейда был активен ДО этого входа - кикаем и выходим
3. Иначе, если включена капча - выдаём капчу

Один хендлер вместо нескольких: в aiogram 3.x при одинаковых фильтрах
выполняется только первый хендлер.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from aiogram import Router
from aiogram.filters import ChatMemberUpdatedFilter, JOIN_TRANSITION
from aiogram.types import ChatMemberUpdated, User
from redis.asyncio import Redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.services.antiraid import (
    kick_joiner_during_raid,
    raid_mode_active,
    track_join_velocity,
)
from guardbot.services.captcha import start_challenge
from guardbot.services.moderation_api import ModerationApi
from guardbot.services.redis_conn import redis as default_redis
from guardbot.services.settings_service import get_chat_settings

logger = logging.getLogger(__name__)

join_coordinator_router = Router(name="join_coordinator")


class JoinOutcome(str, Enum):
    """Что произошло с вступившим."""
    SKIPPED = "skipped"
    RAID_KICKED = "raid_kicked"
    CAPTCHA = "captcha"
    ALLOWED = "allowed"


async def process_member_join(
    api: ModerationApi,
    redis: Redis,
    session: AsyncSession,
    chat_id: int,
    user: User,
    now: Optional[float] = None,
) -> JoinOutcome:
    """
    Обрабатывает вступление участника.

    Args:
        api: Обёртка над Bot
        redis: Клиент Redis
        session: Сессия БД
        chat_id: ID группы
        user: Вступивший пользователь
        now: Текущее время (unix seconds)

    Returns:
        JoinOutcome
    """
    if user.is_bot:
        return JoinOutcome.SKIPPED

    settings = await get_chat_settings(session, chat_id)
    if settings is None:
        return JoinOutcome.ALLOWED

    # Состояние рейда до учёта этого входа
    current = datetime.fromtimestamp(now, timezone.utc).replace(tzinfo=None) if now is not None else None
    raid_was_active = raid_mode_active(settings, current)

    # ═══════════════════════════════════════════════════════════════════════
    # ШАГ 1: Авто-антирейд
    # ═══════════════════════════════════════════════════════════════════════
    if not raid_was_active:
        try:
            await track_join_velocity(api, redis, session, chat_id, user.id, now=now)
        except SQLAlchemyError as e:
            logger.error(f"❌ [ANTIRAID] Ошибка авто-антирейда: chat_id={chat_id}, error={e}")
            await session.rollback()

    # ═══════════════════════════════════════════════════════════════════════
    # ШАГ 2: Режим рейда - кик
    # ═══════════════════════════════════════════════════════════════════════
    if raid_was_active:
        await kick_joiner_during_raid(api, chat_id, user.id)
        return JoinOutcome.RAID_KICKED

    # ═══════════════════════════════════════════════════════════════════════
    # ШАГ 3: Капча
    # ═══════════════════════════════════════════════════════════════════════
    if settings.captcha_enabled:
        await start_challenge(
            api,
            session,
            chat_id=chat_id,
            user_id=user.id,
            user_name=user.full_name,
            settings=settings,
            now=current,
        )
        return JoinOutcome.CAPTCHA

    return JoinOutcome.ALLOWED


@join_coordinator_router.chat_member(ChatMemberUpdatedFilter(JOIN_TRANSITION))
async def handle_member_join(event: ChatMemberUpdated, session: AsyncSession) -> None:
    """
    Единая точка входа для вступлений в группу.

    Args:
        event: Событие изменения статуса участника
        session: Сессия БД (инжектится middleware)
    """
    user = event.new_chat_member.user
    chat = event.chat

    logger.info(
        f"📥 [JOIN] Вступление: user_id={user.id}, chat_id={chat.id}, "
        f"username=@{user.username or 'none'}"
    )

    outcome = await process_member_join(
        ModerationApi(event.bot),
        default_redis,
        session,
        chat.id,
        user,
    )

    logger.debug(f"[JOIN] Итог: user_id={user.id}, chat_id={chat.id}, outcome={outcome}")
