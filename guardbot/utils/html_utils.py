# ============================================================
# HTML UTILS - УТИЛИТЫ ДЛЯ HTML В TELEGRAM
# ============================================================
# Сообщения бота отправляются с parse_mode="HTML", поэтому
# пользовательский текст (имена, причины) нужно экранировать.
# ============================================================

import html
from typing import Optional


def escape_html(text: Optional[str]) -> str:
    """Экранирует <, > и & для Telegram HTML."""
    if not text:
        return ""
    return html.escape(text, quote=False)


def user_mention(user_id: int, name: Optional[str]) -> str:
    """Кликабельное упоминание пользователя по ID."""
    display = escape_html(name) if name else f"id{user_id}"
    return f"<a href='tg://user?id={user_id}'>{display}</a>"
