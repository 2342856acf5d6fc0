# guardbot/services/restriction_service.py
"""
Сервис ограничений пользователей (бан / мут / кик).

Применяет действие сразу и, если задана длительность, планирует
его отмену отложенным действием unban / unmute.

Перед любым изменением проверяется:
- у бота есть право ограничивать участников
- цель не сам бот
- цель не создатель группы
- цель не администратор (кроме случая, когда действует создатель)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from aiogram.exceptions import TelegramAPIError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.database.models import utcnow
from guardbot.services.moderation_api import ModerationApi
from guardbot.services.scheduler.actions import ScheduledActionType
from guardbot.services.scheduler.repository import schedule_action
from guardbot.utils.html_utils import escape_html, user_mention
from guardbot.utils.time_utils import format_duration

logger = logging.getLogger(__name__)


class RestrictionAction(str, Enum):
    BAN = "ban"
    MUTE = "mute"
    KICK = "kick"


class RestrictionFailure(str, Enum):
    """Почему ограничение не применено."""
    BOT_CANNOT_RESTRICT = "bot_cannot_restrict"
    TARGET_IS_BOT = "target_is_bot"
    TARGET_IS_CREATOR = "target_is_creator"
    TARGET_IS_ADMIN = "target_is_admin"
    API_ERROR = "api_error"


# Тексты для пользователя
_FAILURE_MESSAGES = {
    RestrictionFailure.BOT_CANNOT_RESTRICT: "❌ У меня нет прав ограничивать участников.",
    RestrictionFailure.TARGET_IS_BOT: "❌ Я не буду ограничивать сам себя.",
    RestrictionFailure.TARGET_IS_CREATOR: "❌ Нельзя ограничить создателя группы.",
    RestrictionFailure.TARGET_IS_ADMIN: "❌ Нельзя ограничить администратора.",
}

_ACTION_ERROR_MESSAGES = {
    RestrictionAction.BAN: "❌ Не удалось забанить пользователя.",
    RestrictionAction.MUTE: "❌ Не удалось замутить пользователя.",
    RestrictionAction.KICK: "❌ Не удалось кикнуть пользователя.",
}

_ACTION_DONE = {
    RestrictionAction.BAN: "забанен",
    RestrictionAction.MUTE: "замучен",
    RestrictionAction.KICK: "кикнут",
}


@dataclass
class RestrictionOutcome:
    """
    Результат применения ограничения.

    Attributes:
        success: Применено ли ограничение
        message: Текст для пользователя (HTML)
        failure: Причина отказа (None при успехе)
        target_id: ID цели
        target_name: Имя цели
        scheduled_action_id: ID отложенной отмены (только для временных)
    """
    success: bool
    message: str
    failure: Optional[RestrictionFailure] = None
    target_id: Optional[int] = None
    target_name: Optional[str] = None
    scheduled_action_id: Optional[int] = None


def _failed(failure: RestrictionFailure, message: str, target_id: int, target_name: Optional[str]) -> RestrictionOutcome:
    return RestrictionOutcome(
        success=False,
        message=message,
        failure=failure,
        target_id=target_id,
        target_name=target_name,
    )


async def check_preconditions(
    api: ModerationApi,
    chat_id: int,
    target_id: int,
    actor_is_creator: bool = False,
) -> Optional[RestrictionFailure]:
    """
    Проверяет, можно ли ограничить цель.

    Returns:
        RestrictionFailure или None если можно
    """
    if not await api.restrict_capability(chat_id):
        return RestrictionFailure.BOT_CANNOT_RESTRICT

    if target_id == api.bot_id:
        return RestrictionFailure.TARGET_IS_BOT

    # Не удалось получить участника - считаем что ограничить можно
    status = await api.get_member_status(chat_id, target_id)
    if status == "creator":
        return RestrictionFailure.TARGET_IS_CREATOR
    if status == "administrator" and not actor_is_creator:
        return RestrictionFailure.TARGET_IS_ADMIN

    return None


async def apply_restriction(
    api: ModerationApi,
    session: AsyncSession,
    action: RestrictionAction,
    chat_id: int,
    target_id: int,
    *,
    target_name: Optional[str] = None,
    reason: Optional[str] = None,
    duration: Optional[int] = None,
    actor_is_creator: bool = False,
    delete_message_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> RestrictionOutcome:
    """
    Применяет бан, мут или кик.

    Args:
        api: Обёртка над Bot
        session: Сессия БД
        action: Тип ограничения
        chat_id: ID группы
        target_id: ID пользователя
        target_name: Имя для сообщения
        reason: Причина (сохраняется в metadata отложенной отмены)
        duration: Длительность в секундах, None/0 = бессрочно (для кика игнорируется)
        actor_is_creator: Действует создатель группы (может ограничивать админов)
        delete_message_id: Сообщение, которое нужно удалить вместе с ограничением
        now: Текущее время (naive UTC)

    Returns:
        RestrictionOutcome
    """
    action = RestrictionAction(action)
    if now is None:
        now = utcnow()

    failure = await check_preconditions(api, chat_id, target_id, actor_is_creator)
    if failure is not None:
        logger.info(
            f"[RESTRICTION] Отказ: chat={chat_id} user={target_id} "
            f"action={action.value} failure={failure.value}"
        )
        return _failed(failure, _FAILURE_MESSAGES[failure], target_id, target_name)

    # Кик мгновенный, отменять нечего
    if action is RestrictionAction.KICK or not duration or duration <= 0:
        duration = None

    # until_date в секундах Unix: целая часть now + длительность
    until_date = None
    if duration:
        until_date = _unix_seconds(now) + duration

    scheduled_action_id = None
    try:
        if action is RestrictionAction.BAN:
            await api.ban(chat_id, target_id, until_date=until_date)
        elif action is RestrictionAction.MUTE:
            await api.restrict_send(chat_id, target_id, allowed=False, until_date=until_date)
        else:
            await api.kick(chat_id, target_id)

        if delete_message_id:
            await api.safe_delete_message(chat_id, delete_message_id)

        if duration:
            reversal_type = (
                ScheduledActionType.UNBAN if action is RestrictionAction.BAN
                else ScheduledActionType.UNMUTE
            )
            scheduled = await schedule_action(
                session,
                reversal_type,
                chat_id=chat_id,
                user_id=target_id,
                execute_at=now + timedelta(seconds=duration),
                metadata={"reason": reason},
            )
            scheduled_action_id = scheduled.id

    except (TelegramAPIError, SQLAlchemyError) as e:
        logger.error(
            f"❌ [RESTRICTION] Ошибка: chat={chat_id} user={target_id} "
            f"action={action.value} error={e}"
        )
        if isinstance(e, SQLAlchemyError):
            await session.rollback()
        return _failed(RestrictionFailure.API_ERROR, _ACTION_ERROR_MESSAGES[action], target_id, target_name)

    logger.info(
        f"[RESTRICTION] Применено: chat={chat_id} user={target_id} action={action.value} "
        f"duration={duration} until={until_date} reason={reason}"
    )

    duration_text = f" на {format_duration(duration)}" if duration else ""
    reason_text = f"\nПричина: {escape_html(reason)}" if reason else ""
    message = (
        f"{user_mention(target_id, target_name)} {_ACTION_DONE[action]}{duration_text}.{reason_text}"
    )

    return RestrictionOutcome(
        success=True,
        message=message,
        target_id=target_id,
        target_name=target_name,
        scheduled_action_id=scheduled_action_id,
    )


def _unix_seconds(value: datetime) -> int:
    """Целые секунды Unix, naive datetime считается UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


# ============================================================
# НЕМЕДЛЕННАЯ ОТМЕНА
# ============================================================

async def unban_user(
    api: ModerationApi,
    chat_id: int,
    target_id: int,
    target_name: Optional[str] = None,
) -> RestrictionOutcome:
    """Разбан. Повторный вызов безопасен (only_if_banned)."""
    if not await api.restrict_capability(chat_id):
        failure = RestrictionFailure.BOT_CANNOT_RESTRICT
        return _failed(failure, _FAILURE_MESSAGES[failure], target_id, target_name)

    try:
        await api.unban(chat_id, target_id)
    except TelegramAPIError as e:
        logger.error(f"❌ [RESTRICTION] Ошибка разбана: chat={chat_id} user={target_id} error={e}")
        return _failed(RestrictionFailure.API_ERROR, "❌ Не удалось разбанить пользователя.", target_id, target_name)

    logger.info(f"[RESTRICTION] Разбан: chat={chat_id} user={target_id}")
    return RestrictionOutcome(
        success=True,
        message=f"{user_mention(target_id, target_name)} разбанен.",
        target_id=target_id,
        target_name=target_name,
    )


async def unmute_user(
    api: ModerationApi,
    chat_id: int,
    target_id: int,
    target_name: Optional[str] = None,
) -> RestrictionOutcome:
    """Размут: полный возврат прав на отправку."""
    if not await api.restrict_capability(chat_id):
        failure = RestrictionFailure.BOT_CANNOT_RESTRICT
        return _failed(failure, _FAILURE_MESSAGES[failure], target_id, target_name)

    try:
        await api.restrict_send(chat_id, target_id, allowed=True)
    except TelegramAPIError as e:
        logger.error(f"❌ [RESTRICTION] Ошибка размута: chat={chat_id} user={target_id} error={e}")
        return _failed(RestrictionFailure.API_ERROR, "❌ Не удалось размутить пользователя.", target_id, target_name)

    logger.info(f"[RESTRICTION] Размут: chat={chat_id} user={target_id}")
    return RestrictionOutcome(
        success=True,
        message=f"{user_mention(target_id, target_name)} размучен.",
        target_id=target_id,
        target_name=target_name,
    )
