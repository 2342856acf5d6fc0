import logging

from redis.asyncio import Redis

from guardbot.config import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD

logger = logging.getLogger(__name__)

# Клиент создаётся лениво: соединение открывается при первой команде
redis = Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD,
    db=0,
    decode_responses=True,
)


async def test_connection():
    """Проверяет соединение с Redis. Исключение пробрасывается вызывающему."""
    try:
        await redis.ping()
        logger.info(f"✅ Соединение с Redis ({REDIS_HOST}:{REDIS_PORT}) установлено")
    except Exception as e:
        logger.error(f"❌ Ошибка подключения к Redis ({REDIS_HOST}:{REDIS_PORT}): {e}")
        raise
