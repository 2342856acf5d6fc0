# guardbot/services/sliding_window.py
"""
Детектор частоты событий на скользящем окне (Redis Sorted Set).

Используется в двух местах:
- Антифлуд: субъект = (чат, пользователь), окно = flood_timer (5с по умолчанию),
  порог = flood_limit
- Авто-антирейд: субъект = чат, окно = 60с, порог = auto_antiraid_limit

Алгоритм на каждое событие (одним pipeline):
1. ZADD уникального члена со score = timestamp
2. ZREMRANGEBYSCORE всё что старше now - window
3. EXPIRE ключа на window + запас (страховка если очистки не было)
4. ZCARD - количество событий в окне

Если count >= threshold - порог превышен. Сброс счётчика после срабатывания
делает вызывающий код (антифлуд), антирейд вместо этого включает режим рейда.

Redis ключи:
- flood:{chat_id}:{user_id} - события флуда
- raid_joins:{chat_id} - вступления в чат
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple, Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.config import RAID_WINDOW_SECONDS
from guardbot.services.settings_service import (
    get_chat_settings,
    flood_window_seconds,
    is_raid_mode_active,
)

logger = logging.getLogger(__name__)


class WindowKind(str, Enum):
    """Вид детектора."""
    FLOOD = "flood"
    RAID = "raid"


class WindowCheckResult(NamedTuple):
    """
    Результат проверки окна.

    Attributes:
        is_breached: True если count >= threshold
        count: Количество событий в окне (включая текущее)
        threshold: Порог срабатывания
        window_seconds: Размер окна
    """
    is_breached: bool
    count: int
    threshold: int
    window_seconds: int


class SlidingWindowDetector:
    """
    Счётчик событий на скользящем окне.

    Пример использования:
        detector = SlidingWindowDetector(redis, key_prefix="flood")
        result = await detector.check(chat_id, user_id, threshold=5, window_seconds=5)
        if result.is_breached:
            await detector.reset(chat_id, user_id)
    """

    def __init__(self, redis: Redis, key_prefix: str, expiry_slack: int = 1):
        """
        Args:
            redis: Клиент Redis
            key_prefix: Префикс ключей субъекта
            expiry_slack: Запас TTL ключа сверх окна (секунды)
        """
        self._redis = redis
        self._key_prefix = key_prefix
        self._expiry_slack = expiry_slack

    def subject_key(self, chat_id: int, user_id: Optional[int] = None) -> str:
        if user_id is None:
            return f"{self._key_prefix}:{chat_id}"
        return f"{self._key_prefix}:{chat_id}:{user_id}"

    async def record_and_count(
        self,
        key: str,
        window_seconds: int,
        now: Optional[float] = None,
        member_hint: Optional[int] = None,
    ) -> int:
        """
        Записывает событие и возвращает количество событий в окне.

        Args:
            key: Ключ субъекта
            window_seconds: Размер окна
            now: Текущее время (unix seconds), по умолчанию time.time()
            member_hint: Добавляется в начало члена (например user_id) для отладки

        Returns:
            Количество событий не старше window_seconds
        """
        if now is None:
            now = time.time()

        # Член уникален даже для событий в одну и ту же микросекунду
        member = f"{member_hint or 0}:{now:.6f}:{uuid.uuid4().hex[:8]}"
        cutoff = now - window_seconds

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zadd(key, {member: now})
            # "(" - исключающая граница: события возрастом ровно window остаются
            pipe.zremrangebyscore(key, "-inf", f"({cutoff}")
            pipe.expire(key, int(window_seconds) + self._expiry_slack)
            pipe.zcard(key)
            results = await pipe.execute()

        return int(results[-1])

    async def check(
        self,
        chat_id: int,
        user_id: Optional[int],
        threshold: int,
        window_seconds: int,
        now: Optional[float] = None,
        member_hint: Optional[int] = None,
    ) -> WindowCheckResult:
        """
        Записывает событие субъекта и сравнивает счётчик с порогом.

        При ошибке Redis считаем что порог не превышен
        (безопаснее не наказывать чем наказать по ошибке).
        """
        key = self.subject_key(chat_id, user_id)

        try:
            hint = member_hint if member_hint is not None else user_id
            count = await self.record_and_count(key, window_seconds, now=now, member_hint=hint)
        except Exception as e:
            logger.error(
                f"[SLIDING_WINDOW] Ошибка Redis: {e}, key={key}, "
                f"chat_id={chat_id}, user_id={user_id}"
            )
            return WindowCheckResult(False, 0, threshold, window_seconds)

        is_breached = threshold > 0 and count >= threshold
        if is_breached:
            logger.info(
                f"[SLIDING_WINDOW] Порог превышен: key={key}, "
                f"count={count}, threshold={threshold}, window={window_seconds}s"
            )

        return WindowCheckResult(is_breached, count, threshold, window_seconds)

    async def count(self, chat_id: int, user_id: Optional[int] = None) -> int:
        """Текущее количество событий субъекта без записи нового."""
        return int(await self._redis.zcard(self.subject_key(chat_id, user_id)))

    async def reset(self, chat_id: int, user_id: Optional[int] = None) -> None:
        """Очищает окно субъекта."""
        await self._redis.delete(self.subject_key(chat_id, user_id))


def flood_detector(redis: Redis) -> SlidingWindowDetector:
    return SlidingWindowDetector(redis, key_prefix="flood", expiry_slack=1)


def raid_detector(redis: Redis) -> SlidingWindowDetector:
    return SlidingWindowDetector(redis, key_prefix="raid_joins", expiry_slack=60)


async def record_event_and_check_threshold(
    redis: Redis,
    session: AsyncSession,
    kind: WindowKind,
    chat_id: int,
    user_id: Optional[int] = None,
    now: Optional[float] = None,
) -> bool:
    """
    Записывает событие и сообщает, превышен ли порог, по настройкам группы.

    Для FLOOD нужен user_id; проверка выключена при flood_limit <= 0.
    Для RAID проверка выключена при auto_antiraid_limit <= 0 и пока
    режим рейда уже активен.

    Returns:
        True если порог превышен
    """
    settings = await get_chat_settings(session, chat_id)
    if settings is None:
        return False

    if kind is WindowKind.FLOOD:
        if user_id is None:
            raise ValueError("Для антифлуда нужен user_id")
        if (settings.flood_limit or 0) <= 0:
            return False
        result = await flood_detector(redis).check(
            chat_id,
            user_id,
            threshold=settings.flood_limit,
            window_seconds=flood_window_seconds(settings),
            now=now,
        )
        return result.is_breached

    if (settings.auto_antiraid_limit or 0) <= 0:
        return False
    current = datetime.fromtimestamp(now, timezone.utc).replace(tzinfo=None) if now is not None else None
    if is_raid_mode_active(settings, current):
        return False

    result = await raid_detector(redis).check(
        chat_id,
        None,
        threshold=settings.auto_antiraid_limit,
        window_seconds=RAID_WINDOW_SECONDS,
        now=now,
        member_hint=user_id,
    )
    return result.is_breached
