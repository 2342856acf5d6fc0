# tests/unit/test_scheduled_actions.py
"""
Тесты типов отложенных действий и их хранилища.

Покрывает:
- Превращение строки scheduled_actions в датакласс действия
- Ошибки декодирования (неизвестный тип, нет user_id)
- schedule_action: naive UTC, metadata, commit/flush
- fetch_due_actions: фильтр, порядок, лимит
"""

import pytest
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from guardbot.database.models import ScheduledAction
from guardbot.services.scheduler import (
    AntiraidDisableAction,
    CaptchaKickAction,
    ScheduledActionType,
    UnbanAction,
    UnknownScheduledActionError,
    UnmuteAction,
    action_from_row,
    fetch_due_actions,
    mark_completed,
    schedule_action,
)

CHAT_ID = -1001234567890
T = datetime(2026, 1, 1, 12, 0, 0)


# ============================================================
# ДЕКОДИРОВАНИЕ СТРОК
# ============================================================

def test_unban_row_carries_reason():
    """Тест: unban превращается в UnbanAction с причиной из metadata."""
    row = ScheduledAction(
        id=1, chat_id=CHAT_ID, user_id=555, action_type="unban",
        execute_at=T, action_metadata={"reason": "спам"},
    )

    assert action_from_row(row) == UnbanAction(1, CHAT_ID, 555, "спам")


def test_each_type_maps_to_its_own_dataclass():
    """Тест: у каждого action_type свой датакласс."""
    unmute = ScheduledAction(id=2, chat_id=CHAT_ID, user_id=7, action_type="unmute", execute_at=T)
    kick = ScheduledAction(id=3, chat_id=CHAT_ID, user_id=7, action_type="captcha_kick", execute_at=T)
    raid = ScheduledAction(id=4, chat_id=CHAT_ID, user_id=None, action_type="antiraid_disable", execute_at=T)

    assert action_from_row(unmute) == UnmuteAction(2, CHAT_ID, 7, None)
    assert action_from_row(kick) == CaptchaKickAction(3, CHAT_ID, 7)
    assert action_from_row(raid) == AntiraidDisableAction(4, CHAT_ID)


def test_unknown_type_raises():
    """Тест: неизвестный action_type → UnknownScheduledActionError."""
    row = ScheduledAction(id=5, chat_id=CHAT_ID, user_id=7, action_type="promote", execute_at=T)

    with pytest.raises(UnknownScheduledActionError):
        action_from_row(row)


@pytest.mark.parametrize("metadata", ["legacy reason", ["спам"], 42])
def test_non_object_metadata_raises(metadata):
    """Тест: metadata не JSON объект → UnknownScheduledActionError, а не AttributeError."""
    row = ScheduledAction(
        id=7, chat_id=CHAT_ID, user_id=7, action_type="unmute",
        execute_at=T, action_metadata=metadata,
    )

    with pytest.raises(UnknownScheduledActionError):
        action_from_row(row)


def test_user_scoped_type_without_user_raises():
    """Тест: unban без user_id нельзя выполнить."""
    row = ScheduledAction(id=6, chat_id=CHAT_ID, user_id=None, action_type="unban", execute_at=T)

    with pytest.raises(UnknownScheduledActionError):
        action_from_row(row)


# ============================================================
# ХРАНИЛИЩЕ
# ============================================================

@pytest.mark.asyncio
async def test_schedule_action_stores_naive_utc(db_session):
    """Тест: aware datetime сохраняется как naive UTC, completed=False."""
    aware = T.replace(tzinfo=timezone.utc)

    action = await schedule_action(
        db_session,
        ScheduledActionType.UNMUTE,
        chat_id=CHAT_ID,
        user_id=555,
        execute_at=aware,
        metadata={"reason": "флуд"},
    )

    result = await db_session.execute(select(ScheduledAction).where(ScheduledAction.id == action.id))
    stored = result.scalar_one()
    assert stored.execute_at == T
    assert stored.execute_at.tzinfo is None
    assert stored.completed is False
    assert stored.action_type == "unmute"
    assert stored.action_metadata == {"reason": "флуд"}


@pytest.mark.asyncio
async def test_fetch_due_actions_filters_and_orders(db_session):
    """
    Тест: выбираются только незавершённые с execute_at <= now, старые первыми.
    """
    # Arrange
    late = await schedule_action(db_session, "unban", CHAT_ID, T + timedelta(seconds=30), user_id=1)
    early = await schedule_action(db_session, "unban", CHAT_ID, T, user_id=2)
    await schedule_action(db_session, "unban", CHAT_ID, T + timedelta(hours=1), user_id=3)
    done = await schedule_action(db_session, "unban", CHAT_ID, T - timedelta(seconds=1), user_id=4)
    await mark_completed(db_session, done.id)

    # Act
    due = await fetch_due_actions(db_session, T + timedelta(minutes=1))

    # Assert
    assert [row.id for row in due] == [early.id, late.id]


@pytest.mark.asyncio
async def test_fetch_due_actions_respects_limit(db_session):
    """Тест: не больше limit действий за раз."""
    for user_id in range(5):
        await schedule_action(db_session, "unmute", CHAT_ID, T, user_id=user_id)

    due = await fetch_due_actions(db_session, T, limit=3)

    assert len(due) == 3


@pytest.mark.asyncio
async def test_schedule_action_without_commit_only_flushes(db_session, session_factory):
    """Тест: commit=False - строка видна в своей сессии, но не в чужой."""
    action = await schedule_action(db_session, "antiraid_disable", CHAT_ID, T, commit=False)
    assert action.id is not None

    await db_session.rollback()

    async with session_factory() as other:
        assert await fetch_due_actions(other, T) == []
