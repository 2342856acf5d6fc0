import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Всегда ищем .env относительно корня проекта
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Определяем окружение
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Получаем путь до .env файла в зависимости от окружения
if ENVIRONMENT == "production":
    env_file = ".env.prod"
elif ENVIRONMENT == "testing":
    env_file = ".env.test"
else:
    env_file = ".env.dev"

# Проверяем, есть ли переменная ENV_PATH (для Docker)
env_path = os.getenv("ENV_PATH")
if not env_path:
    env_path = os.path.join(BASE_DIR, env_file)

# Загружаем .env файл (отсутствие файла не ошибка - берём системные переменные)
load_dotenv(dotenv_path=env_path)
logger.debug(f"[Config] Окружение: {ENVIRONMENT}, env: {os.path.abspath(env_path)}")

# Основные настройки бота
BOT_TOKEN = os.getenv("BOT_TOKEN")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///guardbot.db")

# Redis настройки
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

# Настройки базы данных
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))

# Настройки логирования
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ============================================================
# ПЛАНИРОВЩИК ОТЛОЖЕННЫХ ДЕЙСТВИЙ
# ============================================================
# Как часто опрашиваем таблицу scheduled_actions (секунды)
SCHEDULER_INTERVAL_SECONDS = int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "30"))
# Сколько действий обрабатываем за один тик
SCHEDULER_BATCH_SIZE = int(os.getenv("SCHEDULER_BATCH_SIZE", "50"))

# ============================================================
# ДЕФОЛТЫ НАСТРОЕК ГРУППЫ
# ============================================================
# Используются когда в chat_settings значение не задано (0 / NULL)
DEFAULT_FLOOD_WINDOW_SECONDS = 5
DEFAULT_CAPTCHA_KICK_SECONDS = 120
DEFAULT_RAID_SECONDS = 6 * 3600
# Окно детектора рейда фиксированное - одна минута
RAID_WINDOW_SECONDS = 60
# Длительность tban/tmute для антифлуда
FLOOD_TEMP_ACTION_SECONDS = 86400
