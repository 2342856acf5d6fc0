# ============================================================
# МОДУЛЬ ANTIFLOOD: ЗАЩИТА ОТ ФЛУДА
# ============================================================
# Скользящее окно сообщений на пользователя в группе,
# наказание по flood_mode, очистка сообщений флудера.
# ============================================================

from guardbot.services.antiflood.flood_service import (
    FloodMode,
    track_flood_message,
    check_flood,
    apply_flood_action,
    clear_flood_messages,
    handle_group_message,
)

__all__ = [
    "FloodMode",
    "track_flood_message",
    "check_flood",
    "apply_flood_action",
    "clear_flood_messages",
    "handle_group_message",
]
