# guardbot/handlers/captcha_handler.py
"""
Нажатие кнопки капчи в группе (callback captcha:<user_id>).
"""

import logging

from aiogram import Router, F
from aiogram.types import CallbackQuery
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.keyboards.captcha_kb import CAPTCHA_CALLBACK_PREFIX, parse_captcha_callback
from guardbot.services.captcha import ButtonSolveResult, solve_by_button
from guardbot.services.moderation_api import ModerationApi

logger = logging.getLogger(__name__)

captcha_router = Router(name="captcha")

# Тексты ответов на нажатие
CAPTCHA_NOT_YOURS_ALERT = "Это не ваша капча!"
CAPTCHA_SOLVED_TEXT = "✅ Проверка пройдена, добро пожаловать!"
CAPTCHA_NOT_PENDING_TEXT = "Капча уже неактуальна."


@captcha_router.callback_query(F.data.startswith(f"{CAPTCHA_CALLBACK_PREFIX}:"))
async def handle_captcha_button(callback: CallbackQuery, session: AsyncSession) -> None:
    """
    Проверяет что кнопку нажал владелец капчи и решает её.

    Args:
        callback: Нажатие кнопки
        session: Сессия БД (инжектится middleware)
    """
    expected_user_id = parse_captcha_callback(callback.data)
    if expected_user_id is None or callback.message is None:
        await callback.answer()
        return

    chat_id = callback.message.chat.id

    result = await solve_by_button(
        ModerationApi(callback.bot),
        session,
        chat_id=chat_id,
        acting_user_id=callback.from_user.id,
        expected_user_id=expected_user_id,
    )

    if result is ButtonSolveResult.NOT_YOURS:
        await callback.answer(CAPTCHA_NOT_YOURS_ALERT, show_alert=True)
    elif result is ButtonSolveResult.SOLVED:
        await callback.answer(CAPTCHA_SOLVED_TEXT)
    else:
        await callback.answer(CAPTCHA_NOT_PENDING_TEXT)
