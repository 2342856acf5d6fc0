# guardbot/services/captcha/flow_service.py
"""
Капча для новых участников группы.

Состояния пары (chat_id, user_id):
    NONE    - записи в captcha_challenges нет
    PENDING - запись есть, пользователь замучен
    SOLVED  - капча решена: права возвращены, запись удалена
    KICKED  - таймаут: исполнитель отложенных действий кикнул и удалил запись

В KICKED переводит только исполнитель (captcha_kick), этот модуль - никогда.
Отдельной отмены captcha_kick при решении нет: исполнитель сам видит, что
записи уже нет, и ничего не делает.
"""
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from aiogram.exceptions import TelegramAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.database.models import CaptchaChallenge, ChatSettings, utcnow
from guardbot.keyboards.captcha_kb import create_captcha_keyboard
from guardbot.services.captcha.challenge import (
    CaptchaMode,
    answer_matches,
    generate_challenge,
)
from guardbot.services.captcha.repository import (
    get_challenge,
    upsert_challenge,
    delete_challenge,
)
from guardbot.services.moderation_api import ModerationApi
from guardbot.services.scheduler.actions import ScheduledActionType
from guardbot.services.scheduler.repository import schedule_action
from guardbot.services.settings_service import captcha_kick_seconds

logger = logging.getLogger(__name__)


class ButtonSolveResult(str, Enum):
    """Результат нажатия кнопки капчи."""
    SOLVED = "solved"
    NOT_YOURS = "not_yours"  # кнопку нажал не тот пользователь
    NOT_PENDING = "not_pending"  # капчи уже нет


class TextAnswerResult(str, Enum):
    """Результат проверки текстового сообщения как ответа на капчу."""
    NO_CHALLENGE = "no_challenge"  # у пользователя нет текстовой капчи
    SOLVED = "solved"
    WRONG = "wrong"


# ============================================================
# NONE → PENDING
# ============================================================

async def start_challenge(
    api: ModerationApi,
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    user_name: Optional[str],
    settings: ChatSettings,
    mode: Optional[CaptchaMode] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Optional[CaptchaChallenge]:
    """
    Выдаёт капчу новому участнику.

    Шаги:
    1. Мут (ошибка мута не прерывает капчу)
    2. Генерация капчи по режиму группы
    3. Отправка сообщения (кнопка только в режиме BUTTON)
    4. Upsert записи с expires_at = now + captcha_kick_time
    5. Если включён кик по таймауту - отложенный captcha_kick на expires_at

    Args:
        api: Обёртка над Bot
        session: Сессия БД
        chat_id: ID группы
        user_id: ID нового участника
        user_name: Имя для упоминания
        settings: Настройки группы
        mode: Режим капчи (по умолчанию из settings.captcha_mode)
        now: Текущее время (naive UTC)
        rng: Источник случайности

    Returns:
        Запись CaptchaChallenge или None если сообщение не удалось отправить
    """
    if now is None:
        now = utcnow()
    if mode is None:
        mode = CaptchaMode.from_setting(settings.captcha_mode)

    # ═══════════════════════════════════════════════════════════════════════
    # ШАГ 1: Мутим до решения капчи
    # ═══════════════════════════════════════════════════════════════════════
    try:
        await api.restrict_send(chat_id, user_id, allowed=False)
        logger.info(f"🔇 [CAPTCHA] Мут до решения: chat_id={chat_id}, user_id={user_id}")
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [CAPTCHA] Не удалось замутить: chat_id={chat_id}, user_id={user_id}, error={e}")

    # ═══════════════════════════════════════════════════════════════════════
    # ШАГ 2-3: Генерируем и отправляем капчу
    # ═══════════════════════════════════════════════════════════════════════
    challenge = generate_challenge(mode, user_id, user_name or "", rng=rng)

    keyboard = None
    if challenge.mode is CaptchaMode.BUTTON:
        keyboard = create_captcha_keyboard(user_id, settings.captcha_text)

    try:
        message_id = await api.send_message(chat_id, challenge.text, reply_markup=keyboard)
    except TelegramAPIError as e:
        logger.error(f"❌ [CAPTCHA] Ошибка отправки: chat_id={chat_id}, user_id={user_id}, error={e}")
        # Без сообщения капчу не решить - возвращаем права
        try:
            await api.restrict_send(chat_id, user_id, allowed=True)
        except TelegramAPIError:
            logger.warning(f"⚠️ [CAPTCHA] Не удалось вернуть права: chat_id={chat_id}, user_id={user_id}")
        return None

    # ═══════════════════════════════════════════════════════════════════════
    # ШАГ 4-5: Сохраняем капчу и планируем кик
    # ═══════════════════════════════════════════════════════════════════════
    expires_at = now + timedelta(seconds=captcha_kick_seconds(settings))

    record = await upsert_challenge(
        session,
        chat_id=chat_id,
        user_id=user_id,
        message_id=message_id,
        answer=challenge.answer,
        expires_at=expires_at,
    )

    if settings.captcha_kick:
        await schedule_action(
            session,
            ScheduledActionType.CAPTCHA_KICK,
            chat_id=chat_id,
            user_id=user_id,
            execute_at=expires_at,
            commit=False,
        )

    await session.commit()

    logger.info(
        f"🧩 [CAPTCHA] Капча выдана: chat_id={chat_id}, user_id={user_id}, "
        f"mode={challenge.mode.value}, msg_id={message_id}, expires_at={expires_at}, "
        f"kick={'on' if settings.captcha_kick else 'off'}"
    )
    return record


# ============================================================
# PENDING → SOLVED
# ============================================================

async def _complete_challenge(
    api: ModerationApi,
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    message_id: Optional[int],
) -> None:
    """Возвращает права, удаляет сообщение капчи и запись."""
    try:
        await api.restrict_send(chat_id, user_id, allowed=True)
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [CAPTCHA] Не удалось вернуть права: chat_id={chat_id}, user_id={user_id}, error={e}")

    await api.safe_delete_message(chat_id, message_id)
    await delete_challenge(session, chat_id, user_id)
    await session.commit()

    logger.info(f"✅ [CAPTCHA] Капча решена: chat_id={chat_id}, user_id={user_id}")


async def _solve_with_text(
    api: ModerationApi,
    session: AsyncSession,
    challenge: CaptchaChallenge,
    text: Optional[str],
) -> bool:
    if not answer_matches(challenge.answer, text):
        logger.info(
            f"❌ [CAPTCHA] Неверный ответ: chat_id={challenge.chat_id}, user_id={challenge.user_id}"
        )
        return False

    await _complete_challenge(api, session, challenge.chat_id, challenge.user_id, challenge.message_id)
    return True


async def try_solve(
    api: ModerationApi,
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    text: Optional[str],
) -> bool:
    """
    Проверяет текстовый ответ на капчу (режимы TEXT и MATH).

    Returns:
        True если капча решена этим ответом
    """
    challenge = await get_challenge(session, chat_id, user_id)
    if challenge is None or challenge.answer is None:
        return False
    return await _solve_with_text(api, session, challenge, text)


async def consume_text_answer(
    api: ModerationApi,
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    message_id: int,
    text: Optional[str],
) -> TextAnswerResult:
    """
    Обрабатывает сообщение пользователя с текстовой капчей.

    Сообщение удаляется всегда, верный ответ решает капчу,
    неверный оставляет её активной до таймаута.
    """
    challenge = await get_challenge(session, chat_id, user_id)
    if challenge is None or challenge.answer is None:
        return TextAnswerResult.NO_CHALLENGE

    solved = await _solve_with_text(api, session, challenge, text)
    await api.safe_delete_message(chat_id, message_id)

    return TextAnswerResult.SOLVED if solved else TextAnswerResult.WRONG


async def solve_by_button(
    api: ModerationApi,
    session: AsyncSession,
    chat_id: int,
    acting_user_id: int,
    expected_user_id: int,
) -> ButtonSolveResult:
    """
    Обрабатывает нажатие кнопки капчи.

    Нажать может только тот, кому капча выдана - чужое нажатие
    ничего не меняет.
    """
    if acting_user_id != expected_user_id:
        logger.info(
            f"🚫 [CAPTCHA] Чужая кнопка: chat_id={chat_id}, "
            f"pressed_by={acting_user_id}, owner={expected_user_id}"
        )
        return ButtonSolveResult.NOT_YOURS

    challenge = await get_challenge(session, chat_id, acting_user_id)
    if challenge is None or challenge.answer is not None:
        return ButtonSolveResult.NOT_PENDING

    await _complete_challenge(api, session, chat_id, acting_user_id, challenge.message_id)
    return ButtonSolveResult.SOLVED
