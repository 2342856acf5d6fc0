# guardbot/services/captcha/repository.py
"""
Хранилище незавершённых капч (таблица captcha_challenges).

На пару (chat_id, user_id) существует не больше одной записи:
повторный вход перезаписывает старую капчу (upsert).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.database.models import CaptchaChallenge

logger = logging.getLogger(__name__)


async def get_challenge(
    session: AsyncSession,
    chat_id: int,
    user_id: int,
) -> Optional[CaptchaChallenge]:
    """Возвращает активную капчу пользователя или None."""
    result = await session.execute(
        select(CaptchaChallenge).where(
            CaptchaChallenge.chat_id == chat_id,
            CaptchaChallenge.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def upsert_challenge(
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    message_id: Optional[int],
    answer: Optional[str],
    expires_at: datetime,
) -> CaptchaChallenge:
    """
    Создаёт капчу или перезаписывает существующую для той же пары.

    Изменения только flush-атся, коммит делает вызывающий.
    """
    challenge = await get_challenge(session, chat_id, user_id)

    if challenge is not None:
        # Перезаписываем старую капчу (повторный вход)
        challenge.message_id = message_id
        challenge.answer = answer
        challenge.expires_at = expires_at
        logger.info(
            f"🔁 [CAPTCHA] Капча перезаписана: chat_id={chat_id}, user_id={user_id}"
        )
    else:
        challenge = CaptchaChallenge(
            chat_id=chat_id,
            user_id=user_id,
            message_id=message_id,
            answer=answer,
            expires_at=expires_at,
        )
        session.add(challenge)

    await session.flush()
    return challenge


async def delete_challenge(session: AsyncSession, chat_id: int, user_id: int) -> bool:
    """
    Удаляет капчу пары (chat_id, user_id). Коммит делает вызывающий.

    Returns:
        True если запись была удалена
    """
    result = await session.execute(
        delete(CaptchaChallenge).where(
            CaptchaChallenge.chat_id == chat_id,
            CaptchaChallenge.user_id == user_id,
        )
    )
    return (result.rowcount or 0) > 0
