# guardbot/services/scheduler/executor.py
"""
Исполнитель отложенных действий.

Фоновая задача раз в interval секунд (и сразу при старте) выбирает
до batch_size действий с completed=False и execute_at <= now,
самые старые первыми, и выполняет их:

- unban            → разбан (только если пользователь забанен)
- unmute           → восстановление прав на отправку
- captcha_kick     → кик, если капча всё ещё не решена
- antiraid_disable → выключение режима рейда

После каждого действия строка помечается completed=True, даже если
действие упало. Повторов нет: одно «ядовитое» действие не должно
блокировать очередь.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Tuple, Union

from aiogram import Bot
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guardbot.config import SCHEDULER_INTERVAL_SECONDS, SCHEDULER_BATCH_SIZE
from guardbot.database.models import utcnow
from guardbot.services.captcha.repository import get_challenge, delete_challenge
from guardbot.services.moderation_api import ModerationApi
from guardbot.services.scheduler.actions import (
    AnyScheduledAction,
    AntiraidDisableAction,
    CaptchaKickAction,
    UnbanAction,
    UnmuteAction,
    action_from_row,
)
from guardbot.services.scheduler.repository import fetch_due_actions, mark_completed
from guardbot.services.settings_service import get_chat_settings

logger = logging.getLogger(__name__)


# (action_id, action_type, chat_id, user_id, действие или ошибка декодирования)
_DecodedRow = Tuple[int, str, int, Optional[int], Union[AnyScheduledAction, Exception]]


class ScheduledActionExecutor:
    """
    Опрашивает scheduled_actions и выполняет наступившие действия.

    Пример использования:
        executor = ScheduledActionExecutor(bot, async_session)
        executor.start()
        ...
        await executor.stop()
    """

    def __init__(
        self,
        bot: Union[Bot, ModerationApi],
        session_factory: async_sessionmaker,
        interval: float = SCHEDULER_INTERVAL_SECONDS,
        batch_size: int = SCHEDULER_BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._api = bot if isinstance(bot, ModerationApi) else ModerationApi(bot)
        self._session_factory = session_factory
        self._interval = interval
        self._batch_size = batch_size
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        self._handlers = {
            UnbanAction: self._execute_unban,
            UnmuteAction: self._execute_unmute,
            CaptchaKickAction: self._execute_captcha_kick,
            AntiraidDisableAction: self._execute_antiraid_disable,
        }

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ============================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # ============================================================

    def start(self) -> None:
        """Запускает фоновый цикл. Повторный вызов при работающем цикле ничего не делает."""
        if self.is_running:
            logger.debug("[SCHEDULER] Уже запущен")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stop_event))
        logger.info(
            f"⏰ [SCHEDULER] Запущен: interval={self._interval}s, batch={self._batch_size}"
        )

    async def stop(self) -> None:
        """Останавливает цикл, дожидаясь окончания текущего тика."""
        if self._task is None:
            return

        if self._stop_event is not None:
            self._stop_event.set()

        try:
            await self._task
        finally:
            self._task = None
            self._stop_event = None
            logger.info("⏹ [SCHEDULER] Остановлен")

    async def _loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    # ============================================================
    # ОДИН ТИК
    # ============================================================

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Выполняет все наступившие действия одной пачки.

        Args:
            now: Текущее время (naive UTC), по умолчанию clock()

        Returns:
            Количество обработанных действий
        """
        if now is None:
            now = self._clock()

        try:
            async with self._session_factory() as session:
                rows = await fetch_due_actions(session, now, limit=self._batch_size)
                if not rows:
                    return 0

                logger.info(f"[SCHEDULER] К выполнению: {len(rows)}")

                # Снимаем всё нужное со строк до выполнения: после rollback
                # ORM объекты протухают
                decoded = [self._decode(row) for row in rows]

                for action_id, action_type, chat_id, user_id, action in decoded:
                    await self._process(session, action_id, action_type, chat_id, user_id, action)

                return len(decoded)

        except Exception as e:
            logger.error(f"❌ [SCHEDULER] Ошибка тика, пачка пропущена: {e}", exc_info=True)
            return 0

    @staticmethod
    def _decode(row) -> _DecodedRow:
        try:
            action: Union[AnyScheduledAction, Exception] = action_from_row(row)
        except Exception as e:
            # Любая ошибка разбора - ошибка этой строки, не всей пачки
            action = e
        return row.id, row.action_type, row.chat_id, row.user_id, action

    async def _process(
        self,
        session: AsyncSession,
        action_id: int,
        action_type: str,
        chat_id: int,
        user_id: Optional[int],
        action: Union[AnyScheduledAction, Exception],
    ) -> None:
        try:
            if isinstance(action, Exception):
                raise action
            await self._handlers[type(action)](session, action)
            logger.info(
                f"✅ [SCHEDULER] Выполнено: id={action_id} type={action_type} "
                f"chat_id={chat_id} user_id={user_id}"
            )
        except Exception as e:
            logger.error(
                f"❌ [SCHEDULER] Ошибка действия: id={action_id} type={action_type} "
                f"chat_id={chat_id} user_id={user_id} error={e}"
            )
            await session.rollback()

        # Помечаем выполненным в любом случае
        await mark_completed(session, action_id)

    # ============================================================
    # ОБРАБОТЧИКИ
    # ============================================================

    async def _execute_unban(self, session: AsyncSession, action: UnbanAction) -> None:
        await self._api.unban(action.chat_id, action.user_id)

    async def _execute_unmute(self, session: AsyncSession, action: UnmuteAction) -> None:
        await self._api.restrict_send(action.chat_id, action.user_id, allowed=True)

    async def _execute_captcha_kick(self, session: AsyncSession, action: CaptchaKickAction) -> None:
        """Кикает пользователя, если капча не решена. Нет записи - капча уже решена."""
        challenge = await get_challenge(session, action.chat_id, action.user_id)
        if challenge is None:
            logger.debug(
                f"[SCHEDULER] captcha_kick: капча уже решена, chat_id={action.chat_id} "
                f"user_id={action.user_id}"
            )
            return

        message_id = challenge.message_id

        await self._api.kick(action.chat_id, action.user_id)
        await self._api.safe_delete_message(action.chat_id, message_id)
        await delete_challenge(session, action.chat_id, action.user_id)

        logger.info(
            f"🚪 [CAPTCHA] Кик по таймауту: chat_id={action.chat_id} user_id={action.user_id}"
        )

    async def _execute_antiraid_disable(self, session: AsyncSession, action: AntiraidDisableAction) -> None:
        settings = await get_chat_settings(session, action.chat_id)
        if settings is None:
            return

        settings.antiraid_enabled = False
        settings.antiraid_expires_at = None
        await session.flush()

        logger.info(f"🛡 [ANTIRAID] Режим рейда выключен по таймеру: chat_id={action.chat_id}")
