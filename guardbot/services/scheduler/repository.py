# guardbot/services/scheduler/repository.py
"""
Хранилище отложенных действий (таблица scheduled_actions).

Строки никогда не удаляются: completed один раз меняется с False на True,
обратно - никогда.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.database.models import ScheduledAction
from guardbot.services.scheduler.actions import ScheduledActionType

logger = logging.getLogger(__name__)


async def schedule_action(
    session: AsyncSession,
    action_type: ScheduledActionType,
    chat_id: int,
    execute_at: datetime,
    user_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> ScheduledAction:
    """
    Создаёт отложенное действие.

    Args:
        session: Сессия БД
        action_type: Тип действия
        chat_id: ID чата
        execute_at: Когда выполнить (naive UTC)
        user_id: ID пользователя (None для действий уровня чата)
        metadata: Произвольные данные, например {"reason": "..."}
        commit: Коммитить сразу или оставить вызывающему

    Returns:
        Созданная строка ScheduledAction
    """
    # В БД храним naive UTC
    if execute_at.tzinfo is not None:
        execute_at = execute_at.replace(tzinfo=None)

    action = ScheduledAction(
        chat_id=chat_id,
        user_id=user_id,
        action_type=ScheduledActionType(action_type).value,
        execute_at=execute_at,
        completed=False,
        action_metadata=metadata,
    )
    session.add(action)

    if commit:
        await session.commit()
    else:
        await session.flush()

    logger.info(
        f"[SCHEDULER] Запланировано: id={action.id} type={action.action_type} "
        f"chat={chat_id} user={user_id} execute_at={execute_at}"
    )
    return action


async def fetch_due_actions(
    session: AsyncSession,
    now: datetime,
    limit: int = 50,
) -> List[ScheduledAction]:
    """Незавершённые действия с execute_at <= now, самые старые первыми."""
    result = await session.execute(
        select(ScheduledAction)
        .where(
            ScheduledAction.completed == False,  # noqa: E712
            ScheduledAction.execute_at <= now,
        )
        .order_by(ScheduledAction.execute_at.asc(), ScheduledAction.id.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_completed(session: AsyncSession, action_id: int) -> None:
    """Помечает действие выполненным и коммитит."""
    await session.execute(
        update(ScheduledAction)
        .where(ScheduledAction.id == action_id)
        .values(completed=True)
    )
    await session.commit()
