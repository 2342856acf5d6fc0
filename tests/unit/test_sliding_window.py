# tests/unit/test_sliding_window.py
"""
Тесты детектора на скользящем окне (fakeredis).

Покрывает:
- Флуд: 5 сообщений за 2с при пороге 5 → срабатывает только 5-е
- Границу окна: событие возрастом ровно window ещё считается
- TTL ключа не больше window + запас
- Сброс окна
- Ошибка Redis → порог не превышен
- record_event_and_check_threshold по настройкам группы
"""

import pytest
from datetime import datetime
from unittest.mock import MagicMock

from guardbot.services.sliding_window import (
    SlidingWindowDetector,
    WindowKind,
    flood_detector,
    raid_detector,
    record_event_and_check_threshold,
)

CHAT_ID = -1001234567890
USER_ID = 555
NOW = 1_700_000_000.0


# ============================================================
# ДЕТЕКТОР
# ============================================================

@pytest.mark.asyncio
async def test_fifth_message_in_window_breaches(fake_redis):
    """
    Тест: порог 5 за 5с, 5 сообщений за 2с.

    Проверяет что:
    - сообщения 1-4 порог не превышают
    - 5-е превышает, count = 5
    """
    detector = flood_detector(fake_redis)

    results = []
    for i in range(5):
        results.append(
            await detector.check(CHAT_ID, USER_ID, threshold=5, window_seconds=5, now=NOW + i * 0.5)
        )

    assert [r.is_breached for r in results] == [False, False, False, False, True]
    assert results[-1].count == 5


@pytest.mark.asyncio
async def test_events_older_than_window_are_dropped(fake_redis):
    """Тест: событие старше окна выпадает, событие возрастом ровно window остаётся."""
    detector = flood_detector(fake_redis)

    await detector.check(CHAT_ID, USER_ID, threshold=10, window_seconds=5, now=NOW)
    at_edge = await detector.check(CHAT_ID, USER_ID, threshold=10, window_seconds=5, now=NOW + 5)
    assert at_edge.count == 2

    later = await detector.check(CHAT_ID, USER_ID, threshold=10, window_seconds=5, now=NOW + 5.5)
    assert later.count == 2


@pytest.mark.asyncio
async def test_key_expires_after_window(fake_redis):
    """Тест: у ключа есть TTL не больше window + запас."""
    detector = flood_detector(fake_redis)

    await detector.check(CHAT_ID, USER_ID, threshold=5, window_seconds=5, now=NOW)

    ttl = await fake_redis.ttl(detector.subject_key(CHAT_ID, USER_ID))
    assert 0 < ttl <= 6


@pytest.mark.asyncio
async def test_same_timestamp_events_are_counted_separately(fake_redis):
    """Тест: два события в одну и ту же секунду - два члена множества."""
    detector = raid_detector(fake_redis)

    await detector.check(CHAT_ID, None, threshold=10, window_seconds=60, now=NOW, member_hint=1)
    result = await detector.check(CHAT_ID, None, threshold=10, window_seconds=60, now=NOW, member_hint=1)

    assert result.count == 2
    assert await detector.count(CHAT_ID) == 2


@pytest.mark.asyncio
async def test_reset_clears_window(fake_redis):
    detector = flood_detector(fake_redis)
    for i in range(3):
        await detector.check(CHAT_ID, USER_ID, threshold=5, window_seconds=5, now=NOW + i)

    await detector.reset(CHAT_ID, USER_ID)

    assert await detector.count(CHAT_ID, USER_ID) == 0


@pytest.mark.asyncio
async def test_subjects_do_not_share_windows(fake_redis):
    """Тест: окна разных пользователей независимы."""
    detector = flood_detector(fake_redis)

    for i in range(4):
        await detector.check(CHAT_ID, USER_ID, threshold=5, window_seconds=5, now=NOW + i * 0.1)
    other = await detector.check(CHAT_ID, USER_ID + 1, threshold=5, window_seconds=5, now=NOW + 1)

    assert other.count == 1
    assert other.is_breached is False


@pytest.mark.asyncio
async def test_redis_error_is_not_breached():
    """Тест: Redis недоступен → не наказываем."""
    broken = MagicMock()
    broken.pipeline.side_effect = ConnectionError("redis is down")
    detector = SlidingWindowDetector(broken, key_prefix="flood")

    result = await detector.check(CHAT_ID, USER_ID, threshold=1, window_seconds=5, now=NOW)

    assert result.is_breached is False
    assert result.count == 0


# ============================================================
# ПО НАСТРОЙКАМ ГРУППЫ
# ============================================================

@pytest.mark.asyncio
async def test_no_settings_never_breaches(fake_redis, db_session):
    breached = await record_event_and_check_threshold(
        fake_redis, db_session, WindowKind.FLOOD, CHAT_ID, USER_ID, now=NOW,
    )

    assert breached is False


@pytest.mark.asyncio
async def test_flood_disabled_with_zero_limit(fake_redis, db_session, settings_factory):
    await settings_factory(flood_limit=0)

    for i in range(10):
        assert not await record_event_and_check_threshold(
            fake_redis, db_session, WindowKind.FLOOD, CHAT_ID, USER_ID, now=NOW + i * 0.1,
        )


@pytest.mark.asyncio
async def test_flood_requires_user(fake_redis, db_session, settings_factory):
    await settings_factory(flood_limit=5)

    with pytest.raises(ValueError):
        await record_event_and_check_threshold(fake_redis, db_session, WindowKind.FLOOD, CHAT_ID, now=NOW)


@pytest.mark.asyncio
async def test_flood_uses_group_limit_and_timer(fake_redis, db_session, settings_factory):
    """Тест: flood_limit=3, flood_timer=10 → третье сообщение за 10с срабатывает."""
    await settings_factory(flood_limit=3, flood_timer=10)

    results = [
        await record_event_and_check_threshold(
            fake_redis, db_session, WindowKind.FLOOD, CHAT_ID, USER_ID, now=NOW + i * 4,
        )
        for i in range(3)
    ]

    assert results == [False, False, True]


@pytest.mark.asyncio
async def test_raid_window_not_counted_while_raid_active(fake_redis, db_session, settings_factory):
    """Тест: пока режим рейда активен, вступления в окно не пишутся."""
    await settings_factory(
        auto_antiraid_limit=2,
        antiraid_enabled=True,
        antiraid_expires_at=datetime(2030, 1, 1),
    )

    for i in range(5):
        assert not await record_event_and_check_threshold(
            fake_redis, db_session, WindowKind.RAID, CHAT_ID, 100 + i, now=NOW + i,
        )

    assert await raid_detector(fake_redis).count(CHAT_ID) == 0


@pytest.mark.asyncio
async def test_raid_threshold_breach(fake_redis, db_session, settings_factory):
    await settings_factory(auto_antiraid_limit=3)

    results = [
        await record_event_and_check_threshold(
            fake_redis, db_session, WindowKind.RAID, CHAT_ID, 100 + i, now=NOW + i,
        )
        for i in range(3)
    ]

    assert results == [False, False, True]
