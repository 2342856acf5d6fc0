# guardbot/services/moderation_api.py
"""
Тонкая обёртка над aiogram Bot для действий модерации.

Все сервисы движка (планировщик, капча, антифлуд, антирейд, ограничения)
работают с Telegram только через этот класс - так в тестах достаточно
подменить Bot на AsyncMock.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Union

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import ChatPermissions, InlineKeyboardMarkup

logger = logging.getLogger(__name__)


# Полный мут - запрещаем все виды сообщений
MUTED_PERMISSIONS = ChatPermissions(
    can_send_messages=False,
    can_send_audios=False,
    can_send_documents=False,
    can_send_photos=False,
    can_send_videos=False,
    can_send_video_notes=False,
    can_send_voice_notes=False,
    can_send_polls=False,
    can_send_other_messages=False,
    can_add_web_page_previews=False,
)

# Полное восстановление прав на отправку
FULL_SEND_PERMISSIONS = ChatPermissions(
    can_send_messages=True,
    can_send_audios=True,
    can_send_documents=True,
    can_send_photos=True,
    can_send_videos=True,
    can_send_video_notes=True,
    can_send_voice_notes=True,
    can_send_polls=True,
    can_send_other_messages=True,
    can_add_web_page_previews=True,
)

UntilDate = Union[int, datetime, None]


class ModerationApi:
    """
    Операции модерации поверх Telegram Bot API.

    Пример использования:
        api = ModerationApi(bot)
        if await api.restrict_capability(chat_id):
            await api.ban(chat_id, user_id, until_date=1700000000)
    """

    def __init__(self, bot: Bot):
        self._bot = bot

    @property
    def bot(self) -> Bot:
        return self._bot

    @property
    def bot_id(self) -> int:
        return self._bot.id

    async def get_member_status(self, chat_id: int, user_id: int) -> Optional[str]:
        """
        Возвращает статус участника (creator, administrator, member, ...).

        Returns:
            Строка статуса или None если Telegram не вернул участника
        """
        try:
            member = await self._bot.get_chat_member(chat_id=chat_id, user_id=user_id)
        except TelegramAPIError as e:
            logger.debug(f"[MODERATION_API] get_chat_member failed: chat={chat_id} user={user_id} error={e}")
            return None
        # ChatMemberStatus - str enum, приводим к обычной строке
        status = member.status
        return getattr(status, "value", status)

    async def restrict_capability(self, chat_id: int) -> bool:
        """
        Проверяет что бот может ограничивать участников в чате.

        Создатель может всё, администратор - только с can_restrict_members.
        При любой ошибке API считаем что прав нет.
        """
        try:
            member = await self._bot.get_chat_member(chat_id=chat_id, user_id=self.bot_id)
        except TelegramAPIError as e:
            logger.warning(f"[MODERATION_API] Не удалось проверить права бота: chat={chat_id} error={e}")
            return False

        status = getattr(member.status, "value", member.status)
        if status == "creator":
            return True
        if status == "administrator":
            return getattr(member, "can_restrict_members", False) is True
        return False

    async def ban(self, chat_id: int, user_id: int, until_date: UntilDate = None) -> None:
        await self._bot.ban_chat_member(chat_id=chat_id, user_id=user_id, until_date=until_date)

    async def unban(self, chat_id: int, user_id: int) -> None:
        # only_if_banned: повторный разбан не выкидывает участника из чата
        await self._bot.unban_chat_member(chat_id=chat_id, user_id=user_id, only_if_banned=True)

    async def kick(self, chat_id: int, user_id: int) -> None:
        """Кик = бан и сразу разбан, пользователь сможет вернуться."""
        await self.ban(chat_id, user_id)
        await self.unban(chat_id, user_id)

    async def restrict_send(
        self,
        chat_id: int,
        user_id: int,
        allowed: bool,
        until_date: UntilDate = None,
    ) -> None:
        permissions = FULL_SEND_PERMISSIONS if allowed else MUTED_PERMISSIONS
        await self._bot.restrict_chat_member(
            chat_id=chat_id,
            user_id=user_id,
            permissions=permissions,
            until_date=until_date,
        )

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self._bot.delete_message(chat_id=chat_id, message_id=message_id)

    async def safe_delete_message(self, chat_id: int, message_id: Optional[int]) -> bool:
        """
        Удаляет сообщение, игнорируя ошибки Telegram.

        Returns:
            True если сообщение удалено
        """
        if not message_id:
            return False
        try:
            await self.delete_message(chat_id, message_id)
            return True
        except TelegramAPIError as e:
            # Сообщение могло быть уже удалено - это нормально
            logger.debug(f"⚠️ [MODERATION_API] Не удалось удалить сообщение {message_id} в {chat_id}: {e}")
            return False

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> int:
        """Отправляет HTML сообщение и возвращает его message_id."""
        message = await self._bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode="HTML",
            reply_markup=reply_markup,
        )
        return message.message_id
