# guardbot/services/captcha/challenge.py
"""
Генерация капчи для трёх режимов группы.

- BUTTON - ответ не хранится, пользователь жмёт кнопку
- TEXT   - случайная строка из 6 букв/цифр, регистр важен
- MATH   - сумма двух чисел от 1 до 20
"""

import random
import string
from enum import Enum
from typing import NamedTuple, Optional

from guardbot.utils.html_utils import user_mention

TEXT_CHALLENGE_LENGTH = 6
TEXT_CHALLENGE_ALPHABET = string.ascii_letters + string.digits

MATH_MIN_OPERAND = 1
MATH_MAX_OPERAND = 20


class CaptchaMode(str, Enum):
    """Режим капчи (значение хранится в chat_settings.captcha_mode)."""
    BUTTON = "button"
    TEXT = "text"
    MATH = "math"

    @classmethod
    def from_setting(cls, value: Optional[str]) -> "CaptchaMode":
        """Неизвестное или пустое значение = режим кнопки."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.BUTTON


class Challenge(NamedTuple):
    """
    Сгенерированная капча.

    Attributes:
        mode: Режим капчи
        text: HTML текст сообщения в группу
        answer: Ожидаемый ответ (None для режима кнопки)
    """
    mode: CaptchaMode
    text: str
    answer: Optional[str]


def generate_challenge(
    mode: CaptchaMode,
    user_id: int,
    user_name: str,
    rng: Optional[random.Random] = None,
) -> Challenge:
    """
    Генерирует текст и ответ капчи.

    Args:
        mode: Режим капчи
        user_id: ID нового участника
        user_name: Имя для упоминания
        rng: Источник случайности (для тестов), по умолчанию модуль random

    Returns:
        Challenge
    """
    if rng is None:
        rng = random
    mention = user_mention(user_id, user_name)

    if mode is CaptchaMode.MATH:
        a = rng.randint(MATH_MIN_OPERAND, MATH_MAX_OPERAND)
        b = rng.randint(MATH_MIN_OPERAND, MATH_MAX_OPERAND)
        text = (
            f"👋 Добро пожаловать, {mention}!\n\n"
            f"Решите пример: <b>{a} + {b} = ?</b>\n"
            f"Отправьте ответ в чат."
        )
        return Challenge(mode, text, str(a + b))

    if mode is CaptchaMode.TEXT:
        answer = "".join(rng.choice(TEXT_CHALLENGE_ALPHABET) for _ in range(TEXT_CHALLENGE_LENGTH))
        text = (
            f"👋 Добро пожаловать, {mention}!\n\n"
            f"Отправьте в чат текст: <code>{answer}</code>"
        )
        return Challenge(mode, text, answer)

    text = (
        f"👋 Добро пожаловать, {mention}!\n\n"
        f"Нажмите кнопку ниже, чтобы подтвердить что вы не робот."
    )
    return Challenge(CaptchaMode.BUTTON, text, None)


def answer_matches(expected: Optional[str], text: Optional[str]) -> bool:
    """Ответ верный, если обрезанный текст совпадает с ожидаемым посимвольно."""
    if expected is None or text is None:
        return False
    return text.strip() == expected
