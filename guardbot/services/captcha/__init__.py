# guardbot/services/captcha/__init__.py
"""
Модуль капчи для новых участников группы.

Структура модуля:
- challenge.py - режимы капчи и генерация вопроса/ответа
- repository.py - хранение незавершённых капч (captcha_challenges)
- flow_service.py - переходы NONE → PENDING → SOLVED
"""

# ═══════════════════════════════════════════════════════════════════════════
# Экспорт из challenge
# ═══════════════════════════════════════════════════════════════════════════
from guardbot.services.captcha.challenge import (
    CaptchaMode,
    Challenge,
    generate_challenge,
    answer_matches,
)

# ═══════════════════════════════════════════════════════════════════════════
# Экспорт из repository
# ═══════════════════════════════════════════════════════════════════════════
from guardbot.services.captcha.repository import (
    get_challenge,
    upsert_challenge,
    delete_challenge,
)

# ═══════════════════════════════════════════════════════════════════════════
# Экспорт из flow_service
# ═══════════════════════════════════════════════════════════════════════════
from guardbot.services.captcha.flow_service import (
    ButtonSolveResult,
    TextAnswerResult,
    start_challenge,
    try_solve,
    consume_text_answer,
    solve_by_button,
)

__all__ = [
    "CaptchaMode",
    "Challenge",
    "generate_challenge",
    "answer_matches",
    "get_challenge",
    "upsert_challenge",
    "delete_challenge",
    "ButtonSolveResult",
    "TextAnswerResult",
    "start_challenge",
    "try_solve",
    "consume_text_answer",
    "solve_by_button",
]
