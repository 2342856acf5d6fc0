# guardbot/services/permissions.py
"""
Проверки ролей участника: администратор группы и одобренный пользователь.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guardbot.database.models import ApprovedUser
from guardbot.services.moderation_api import ModerationApi

logger = logging.getLogger(__name__)

ADMIN_STATUSES = ("creator", "administrator")


async def is_chat_admin(api: ModerationApi, chat_id: int, user_id: int) -> bool:
    """True если пользователь создатель или администратор группы."""
    status = await api.get_member_status(chat_id, user_id)
    return status in ADMIN_STATUSES


async def is_approved(session: AsyncSession, chat_id: int, user_id: int) -> bool:
    """True если пользователь одобрен в группе."""
    result = await session.execute(
        select(ApprovedUser.id).where(
            ApprovedUser.chat_id == chat_id,
            ApprovedUser.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def is_flood_exempt(
    api: ModerationApi,
    session: AsyncSession,
    chat_id: int,
    user_id: int,
) -> bool:
    """Админы и одобренные пользователи не проверяются антифлудом."""
    if await is_approved(session, chat_id, user_id):
        return True
    return await is_chat_admin(api, chat_id, user_id)
