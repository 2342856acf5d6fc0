# Импорт всех роутеров для удобного подключения
from .captcha_handler import captcha_router
# Вступления: авто-антирейд, кик во время рейда, выдача капчи
from .join_coordinator import join_coordinator_router
# Сообщения в группах: ответы на капчу, антифлуд
from .group_message_coordinator import group_message_coordinator_router

# Объединяем все роутеры в один
from aiogram import Router
import logging

logger = logging.getLogger(__name__)

handlers_router = Router()
handlers_router.include_router(captcha_router)
handlers_router.include_router(join_coordinator_router)
# Координатор сообщений последним: ловит все сообщения групп
handlers_router.include_router(group_message_coordinator_router)

logger.debug("[HANDLERS] Роутеры подключены")
