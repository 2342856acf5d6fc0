# guardbot/services/scheduler/__init__.py
"""
Отложенные действия модерации.

Структура модуля:
- actions.py - типы действий (датакласс на каждый action_type)
- repository.py - создание, выборка и завершение строк scheduled_actions
- executor.py - фоновый исполнитель
"""

# ═══════════════════════════════════════════════════════════════════════════
# Экспорт из actions
# ═══════════════════════════════════════════════════════════════════════════
from guardbot.services.scheduler.actions import (
    ScheduledActionType,
    UnbanAction,
    UnmuteAction,
    CaptchaKickAction,
    AntiraidDisableAction,
    AnyScheduledAction,
    UnknownScheduledActionError,
    action_from_row,
)

# ═══════════════════════════════════════════════════════════════════════════
# Экспорт из repository
# ═══════════════════════════════════════════════════════════════════════════
from guardbot.services.scheduler.repository import (
    schedule_action,
    fetch_due_actions,
    mark_completed,
)

# ═══════════════════════════════════════════════════════════════════════════
# Экспорт из executor
# ═══════════════════════════════════════════════════════════════════════════
from guardbot.services.scheduler.executor import ScheduledActionExecutor

__all__ = [
    "ScheduledActionType",
    "UnbanAction",
    "UnmuteAction",
    "CaptchaKickAction",
    "AntiraidDisableAction",
    "AnyScheduledAction",
    "UnknownScheduledActionError",
    "action_from_row",
    "schedule_action",
    "fetch_due_actions",
    "mark_completed",
    "ScheduledActionExecutor",
]
