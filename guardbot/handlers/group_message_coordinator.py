# ============================================================
# GROUP MESSAGE COORDINATOR - ЕДИНАЯ ТОЧКА ВХОДА
# ============================================================
# Все сообщения в группах проходят через один хендлер:
# в aiogram 3.x при одинаковых фильтрах выполняется только первый.
#
# Порядок проверки сообщения:
# 1. Капча (TEXT/MATH) - если у отправителя есть капча с ответом,
#    сообщение считается ответом и всегда удаляется
# 2. Антифлуд - для всех, кроме админов и одобренных
# ============================================================

import logging
from enum import Enum
from typing import Optional

from aiogram import Router, F
from aiogram.types import Message
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.services.antiflood import handle_group_message
from guardbot.services.captcha import TextAnswerResult, consume_text_answer
from guardbot.services.moderation_api import ModerationApi
from guardbot.services.permissions import is_flood_exempt
from guardbot.services.redis_conn import redis as default_redis
from guardbot.services.settings_service import get_chat_settings

logger = logging.getLogger(__name__)

group_message_coordinator_router = Router(name="group_message_coordinator")


class MessageVerdict(str, Enum):
    """Чем закончилась обработка сообщения."""
    CAPTCHA_ANSWER = "captcha_answer"
    FLOOD = "flood"
    PASSED = "passed"


async def process_group_message(
    api: ModerationApi,
    redis: Redis,
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    message_id: int,
    text: Optional[str],
    user_name: Optional[str] = None,
    now: Optional[float] = None,
) -> MessageVerdict:
    """
    Обрабатывает одно сообщение группы.

    Returns:
        MessageVerdict
    """
    settings = await get_chat_settings(session, chat_id)
    if settings is None:
        return MessageVerdict.PASSED

    # ============================================================
    # 1. КАПЧА: ответ на текстовую/математическую капчу
    # ============================================================
    answer = await consume_text_answer(api, session, chat_id, user_id, message_id, text)
    if answer is not TextAnswerResult.NO_CHALLENGE:
        return MessageVerdict.CAPTCHA_ANSWER

    # ============================================================
    # 2. АНТИФЛУД
    # ============================================================
    if (settings.flood_limit or 0) <= 0:
        return MessageVerdict.PASSED

    if await is_flood_exempt(api, session, chat_id, user_id):
        return MessageVerdict.PASSED

    flooded = await handle_group_message(
        api,
        redis,
        session,
        settings,
        chat_id=chat_id,
        user_id=user_id,
        message_id=message_id,
        user_name=user_name,
        now=now,
    )
    return MessageVerdict.FLOOD if flooded else MessageVerdict.PASSED


@group_message_coordinator_router.message(
    F.chat.type.in_({"group", "supergroup"}),
    F.from_user,
)
async def group_message_coordinator(message: Message, session: AsyncSession) -> None:
    """
    Единая точка входа для сообщений в группах.

    Args:
        message: Сообщение
        session: Сессия БД (инжектится middleware)
    """
    user = message.from_user
    if user.is_bot:
        return

    verdict = await process_group_message(
        ModerationApi(message.bot),
        default_redis,
        session,
        chat_id=message.chat.id,
        user_id=user.id,
        message_id=message.message_id,
        text=message.text,
        user_name=user.full_name,
    )

    if verdict is not MessageVerdict.PASSED:
        logger.debug(
            f"[COORDINATOR] chat_id={message.chat.id}, user_id={user.id}, "
            f"msg_id={message.message_id}, verdict={verdict}"
        )
