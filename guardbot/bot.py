import asyncio
import logging
import os
import sys

# Настройка путей для запуска из любой директории
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from aiogram import Bot, Dispatcher

# ВАЖНО: сначала загружаем конфиг (.env), потом инициализируем Redis
from guardbot.config import (
    BOT_TOKEN,
    LOG_LEVEL,
    SCHEDULER_INTERVAL_SECONDS,
    SCHEDULER_BATCH_SIZE,
)
from guardbot.services.redis_conn import test_connection
from guardbot.database.session import async_session, init_db
from guardbot.middleware.db_session import DbSessionMiddleware
from guardbot.handlers import handlers_router
from guardbot.services.scheduler import ScheduledActionExecutor

# Настройка логгера
logger = logging.getLogger()
logger.setLevel(LOG_LEVEL)

# Создаем обработчик для консоли
console_handler = logging.StreamHandler()
console_handler.setLevel(LOG_LEVEL)
console_formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
console_handler.setFormatter(console_formatter)
logger.addHandler(console_handler)

# Отключаем встроенное логирование aiogram для апдейтов
for logger_name in ("aiogram", "aiogram.dispatcher", "aiogram.event"):
    log = logging.getLogger(logger_name)
    log.addHandler(console_handler)
    log.setLevel(logging.ERROR)
    log.propagate = False


async def main():
    logging.info("🤖 Запуск бота модерации...")

    # Redis нужен окнам антифлуда и антирейда; без него детектор
    # никогда не срабатывает, но бот продолжает работать
    try:
        await test_connection()
    except Exception as e:
        logging.warning(f"⚠️ Redis недоступен: {e}")
        logging.info("ℹ️ Пока Redis недоступен, антифлуд и авто-антирейд не срабатывают")

    # Создаём таблицы, если их нет (миграции - через alembic)
    await init_db()

    bot = Bot(token=BOT_TOKEN)

    dp = Dispatcher()
    # Сессия БД в каждый хендлер
    dp.update.middleware(DbSessionMiddleware(async_session))
    dp.include_router(handlers_router)

    # ============================================================
    # ПЛАНИРОВЩИК ОТЛОЖЕННЫХ ДЕЙСТВИЙ
    # ============================================================
    # Разбан/размут по таймеру, кик по капче, выключение антирейда
    executor = ScheduledActionExecutor(
        bot,
        async_session,
        interval=SCHEDULER_INTERVAL_SECONDS,
        batch_size=SCHEDULER_BATCH_SIZE,
    )
    executor.start()

    try:
        logging.info("🔄 Запуск в режиме polling...")
        await bot.delete_webhook(drop_pending_updates=True)
        # chat_member апдейты приходят только если их явно запросить
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await executor.stop()
        await bot.session.close()
        logging.info("🛑 Бот остановлен")


if __name__ == "__main__":
    asyncio.run(main())
