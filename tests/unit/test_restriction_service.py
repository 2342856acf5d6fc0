# tests/unit/test_restriction_service.py
"""
Тесты сервиса ограничений (бан / мут / кик).

Покрывает:
- Временный бан: until_date и отложенный unban с причиной
- Временный мут: отложенный unmute
- Кик и бессрочные ограничения ничего не планируют
- Проверки перед ограничением (права бота, сам бот, создатель, админ)
- Ошибка Telegram API → API_ERROR без отложенного действия
- Разбан / размут
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from aiogram.exceptions import TelegramBadRequest
from sqlalchemy import select

from guardbot.database.models import ScheduledAction
from guardbot.services.restriction_service import (
    RestrictionAction,
    RestrictionFailure,
    apply_restriction,
    check_preconditions,
    unban_user,
    unmute_user,
)

CHAT_ID = -1001234567890
BOT_ID = 424242
TARGET_ID = 555
T = datetime(2026, 1, 1, 12, 0, 0)
T_UNIX = int(T.replace(tzinfo=timezone.utc).timestamp())


def make_member(status, can_restrict_members=False):
    return MagicMock(status=status, can_restrict_members=can_restrict_members)


async def _scheduled_rows(session):
    result = await session.execute(select(ScheduledAction))
    return list(result.scalars().all())


# ============================================================
# ВРЕМЕННЫЕ ОГРАНИЧЕНИЯ
# ============================================================

@pytest.mark.asyncio
async def test_temporary_ban_schedules_unban(api, bot_mock, db_session):
    """
    Тест: бан на 3600с.

    Проверяет что:
    - until_date = T + 3600 в секундах Unix
    - создан unban с execute_at = T + 3600 и причиной в metadata
    """
    # Arrange + Act
    outcome = await apply_restriction(
        api, db_session, RestrictionAction.BAN, CHAT_ID, TARGET_ID,
        target_name="Вася", reason="спам", duration=3600, now=T,
    )

    # Assert
    assert outcome.success is True
    assert outcome.failure is None
    bot_mock.ban_chat_member.assert_awaited_once_with(
        chat_id=CHAT_ID, user_id=TARGET_ID, until_date=T_UNIX + 3600,
    )

    rows = await _scheduled_rows(db_session)
    assert len(rows) == 1
    assert rows[0].id == outcome.scheduled_action_id
    assert rows[0].action_type == "unban"
    assert rows[0].user_id == TARGET_ID
    assert rows[0].execute_at == T + timedelta(seconds=3600)
    assert rows[0].completed is False
    assert rows[0].action_metadata == {"reason": "спам"}

    assert "забанен на 1ч" in outcome.message
    assert "Причина: спам" in outcome.message


@pytest.mark.asyncio
async def test_temporary_mute_schedules_unmute(api, bot_mock, db_session):
    """Тест: мут на 10 минут запрещает отправку и планирует unmute."""
    outcome = await apply_restriction(
        api, db_session, RestrictionAction.MUTE, CHAT_ID, TARGET_ID, duration=600, now=T,
    )

    assert outcome.success is True
    kwargs = bot_mock.restrict_chat_member.await_args.kwargs
    assert kwargs["permissions"].can_send_messages is False
    assert kwargs["until_date"] == T_UNIX + 600

    rows = await _scheduled_rows(db_session)
    assert [(r.action_type, r.execute_at) for r in rows] == [("unmute", T + timedelta(minutes=10))]


@pytest.mark.asyncio
async def test_kick_never_schedules(api, bot_mock, db_session):
    """Тест: кик = бан + разбан, длительность игнорируется."""
    outcome = await apply_restriction(
        api, db_session, RestrictionAction.KICK, CHAT_ID, TARGET_ID, duration=3600, now=T,
    )

    assert outcome.success is True
    assert outcome.scheduled_action_id is None
    bot_mock.ban_chat_member.assert_awaited_once_with(chat_id=CHAT_ID, user_id=TARGET_ID, until_date=None)
    bot_mock.unban_chat_member.assert_awaited_once_with(
        chat_id=CHAT_ID, user_id=TARGET_ID, only_if_banned=True,
    )
    assert await _scheduled_rows(db_session) == []


@pytest.mark.parametrize("duration", [None, 0, -5])
@pytest.mark.asyncio
async def test_permanent_ban_schedules_nothing(api, bot_mock, db_session, duration):
    """Тест: без длительности бан бессрочный."""
    outcome = await apply_restriction(
        api, db_session, RestrictionAction.BAN, CHAT_ID, TARGET_ID, duration=duration, now=T,
    )

    assert outcome.success is True
    bot_mock.ban_chat_member.assert_awaited_once_with(chat_id=CHAT_ID, user_id=TARGET_ID, until_date=None)
    assert await _scheduled_rows(db_session) == []


@pytest.mark.asyncio
async def test_delete_message_with_restriction(api, bot_mock, db_session):
    """Тест: delete_message_id удаляет сообщение нарушителя."""
    await apply_restriction(
        api, db_session, RestrictionAction.MUTE, CHAT_ID, TARGET_ID, delete_message_id=42, now=T,
    )

    bot_mock.delete_message.assert_awaited_once_with(chat_id=CHAT_ID, message_id=42)


# ============================================================
# ПРОВЕРКИ ПЕРЕД ОГРАНИЧЕНИЕМ
# ============================================================

@pytest.mark.asyncio
async def test_bot_without_rights_is_refused(api, bot_mock, chat_members, db_session):
    """Тест: бот-админ без can_restrict_members ничего не делает."""
    chat_members[BOT_ID] = make_member("administrator", can_restrict_members=False)

    outcome = await apply_restriction(
        api, db_session, RestrictionAction.BAN, CHAT_ID, TARGET_ID, duration=60, now=T,
    )

    assert outcome.success is False
    assert outcome.failure is RestrictionFailure.BOT_CANNOT_RESTRICT
    bot_mock.ban_chat_member.assert_not_awaited()
    assert await _scheduled_rows(db_session) == []


@pytest.mark.asyncio
async def test_bot_as_creator_can_restrict(api, chat_members):
    """Тест: создатель может всё."""
    chat_members[BOT_ID] = make_member("creator")

    assert await check_preconditions(api, CHAT_ID, TARGET_ID) is None


@pytest.mark.asyncio
async def test_bot_cannot_target_itself(api):
    assert await check_preconditions(api, CHAT_ID, BOT_ID) is RestrictionFailure.TARGET_IS_BOT


@pytest.mark.asyncio
async def test_creator_is_protected(api, chat_members):
    chat_members[TARGET_ID] = make_member("creator")

    failure = await check_preconditions(api, CHAT_ID, TARGET_ID, actor_is_creator=True)

    assert failure is RestrictionFailure.TARGET_IS_CREATOR


@pytest.mark.asyncio
async def test_admin_protected_unless_actor_is_creator(api, chat_members):
    """Тест: админа может ограничить только создатель."""
    chat_members[TARGET_ID] = make_member("administrator")

    assert await check_preconditions(api, CHAT_ID, TARGET_ID) is RestrictionFailure.TARGET_IS_ADMIN
    assert await check_preconditions(api, CHAT_ID, TARGET_ID, actor_is_creator=True) is None


@pytest.mark.asyncio
async def test_unknown_target_status_allows_restriction(api, bot_mock):
    """Тест: не удалось получить участника → ограничивать можно."""

    async def _get_chat_member(chat_id, user_id):
        if user_id == BOT_ID:
            return make_member("administrator", can_restrict_members=True)
        raise TelegramBadRequest(method="getChatMember", message="user not found")

    bot_mock.get_chat_member.side_effect = _get_chat_member

    assert await check_preconditions(api, CHAT_ID, TARGET_ID) is None


# ============================================================
# ОШИБКИ API
# ============================================================

@pytest.mark.asyncio
async def test_api_error_returns_failure_without_schedule(api, bot_mock, db_session):
    """Тест: Telegram отказал → API_ERROR, отложенной отмены нет."""
    bot_mock.ban_chat_member.side_effect = TelegramBadRequest(
        method="banChatMember", message="not enough rights",
    )

    outcome = await apply_restriction(
        api, db_session, RestrictionAction.BAN, CHAT_ID, TARGET_ID, duration=3600, now=T,
    )

    assert outcome.success is False
    assert outcome.failure is RestrictionFailure.API_ERROR
    assert outcome.message == "❌ Не удалось забанить пользователя."
    assert await _scheduled_rows(db_session) == []


# ============================================================
# РАЗБАН / РАЗМУТ
# ============================================================

@pytest.mark.asyncio
async def test_unban_is_idempotent(api, bot_mock):
    """Тест: повторный разбан безопасен, only_if_banned всегда True."""
    first = await unban_user(api, CHAT_ID, TARGET_ID, "Вася")
    second = await unban_user(api, CHAT_ID, TARGET_ID, "Вася")

    assert first.success and second.success
    assert bot_mock.unban_chat_member.await_count == 2
    for call in bot_mock.unban_chat_member.await_args_list:
        assert call.kwargs["only_if_banned"] is True


@pytest.mark.asyncio
async def test_unmute_restores_permissions(api, bot_mock):
    outcome = await unmute_user(api, CHAT_ID, TARGET_ID)

    assert outcome.success is True
    kwargs = bot_mock.restrict_chat_member.await_args.kwargs
    assert kwargs["permissions"].can_send_messages is True
    assert kwargs["until_date"] is None


@pytest.mark.asyncio
async def test_unmute_without_rights(api, bot_mock, chat_members):
    chat_members[BOT_ID] = make_member("member")

    outcome = await unmute_user(api, CHAT_ID, TARGET_ID)

    assert outcome.failure is RestrictionFailure.BOT_CANNOT_RESTRICT
    bot_mock.restrict_chat_member.assert_not_awaited()
