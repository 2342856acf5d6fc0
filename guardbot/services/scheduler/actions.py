# guardbot/services/scheduler/actions.py
"""
Типы отложенных действий.

Строка scheduled_actions хранит дискриминатор action_type и набор полей.
Внутри приложения каждая строка превращается в отдельный датакласс, у которого
есть ровно те поля, что нужны обработчику:

- UnbanAction            - снять временный бан
- UnmuteAction           - снять временный мут
- CaptchaKickAction      - кикнуть, если капча всё ещё не решена
- AntiraidDisableAction  - выключить режим антирейда в чате
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from guardbot.database.models import ScheduledAction


class ScheduledActionType(str, Enum):
    """Значения action_type, которые хранятся в БД."""
    UNBAN = "unban"
    UNMUTE = "unmute"
    CAPTCHA_KICK = "captcha_kick"
    ANTIRAID_DISABLE = "antiraid_disable"


# Типы, которым обязательно нужен user_id
USER_SCOPED_TYPES = frozenset({
    ScheduledActionType.UNBAN,
    ScheduledActionType.UNMUTE,
    ScheduledActionType.CAPTCHA_KICK,
})


class UnknownScheduledActionError(ValueError):
    """Строку из БД нельзя превратить ни в один известный тип действия."""
    pass


@dataclass(frozen=True)
class UnbanAction:
    action_id: int
    chat_id: int
    user_id: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class UnmuteAction:
    action_id: int
    chat_id: int
    user_id: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class CaptchaKickAction:
    action_id: int
    chat_id: int
    user_id: int


@dataclass(frozen=True)
class AntiraidDisableAction:
    action_id: int
    chat_id: int


AnyScheduledAction = Union[UnbanAction, UnmuteAction, CaptchaKickAction, AntiraidDisableAction]


def action_from_row(row: ScheduledAction) -> AnyScheduledAction:
    """
    Превращает строку scheduled_actions в типизированное действие.

    Args:
        row: ORM объект ScheduledAction

    Returns:
        Один из датаклассов действий

    Raises:
        UnknownScheduledActionError: неизвестный action_type, нет user_id
            или metadata не JSON объект
    """
    try:
        action_type = ScheduledActionType(row.action_type)
    except ValueError:
        raise UnknownScheduledActionError(f"Неизвестный тип действия: {row.action_type!r}")

    if action_type in USER_SCOPED_TYPES and row.user_id is None:
        raise UnknownScheduledActionError(
            f"Действие {action_type.value} id={row.id} без user_id"
        )

    metadata = row.action_metadata or {}
    if not isinstance(metadata, dict):
        raise UnknownScheduledActionError(
            f"Действие {action_type.value} id={row.id}: metadata не объект: {metadata!r}"
        )

    if action_type is ScheduledActionType.UNBAN:
        return UnbanAction(row.id, row.chat_id, row.user_id, metadata.get("reason"))
    if action_type is ScheduledActionType.UNMUTE:
        return UnmuteAction(row.id, row.chat_id, row.user_id, metadata.get("reason"))
    if action_type is ScheduledActionType.CAPTCHA_KICK:
        return CaptchaKickAction(row.id, row.chat_id, row.user_id)
    return AntiraidDisableAction(row.id, row.chat_id)
