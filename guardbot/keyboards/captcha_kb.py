# guardbot/keyboards/captcha_kb.py
"""
Клавиатура капчи в группе (режим кнопки).
"""

from typing import Optional

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

# Префикс callback_data: captcha:<user_id>
CAPTCHA_CALLBACK_PREFIX = "captcha"

DEFAULT_CAPTCHA_BUTTON_TEXT = "✅ Я не робот"


def build_captcha_callback(user_id: int) -> str:
    return f"{CAPTCHA_CALLBACK_PREFIX}:{user_id}"


def parse_captcha_callback(data: Optional[str]) -> Optional[int]:
    """
    Достаёт user_id из callback_data капчи.

    Returns:
        user_id или None если data не от капчи
    """
    if not data:
        return None
    prefix, _, raw_user_id = data.partition(":")
    if prefix != CAPTCHA_CALLBACK_PREFIX or not raw_user_id.isdigit():
        return None
    return int(raw_user_id)


def create_captcha_keyboard(user_id: int, button_text: Optional[str] = None) -> InlineKeyboardMarkup:
    """
    Создаёт клавиатуру с одной кнопкой подтверждения.

    Args:
        user_id: ID пользователя, который должен нажать кнопку
        button_text: Свой текст кнопки из настроек группы (None = по умолчанию)

    Returns:
        InlineKeyboardMarkup с кнопкой captcha:<user_id>
    """
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(
            text=button_text or DEFAULT_CAPTCHA_BUTTON_TEXT,
            callback_data=build_captcha_callback(user_id),
        )]
    ])
