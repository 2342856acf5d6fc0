from sqlalchemy import Column, Integer, String, BigInteger, DateTime, Boolean, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ⚙️ Настройки модерации группы
# Здесь только поля, которые читает движок модерации (антифлуд, капча, антирейд).
# Значения 0 / NULL означают "выключено" либо "использовать дефолт из config.py".
class ChatSettings(Base):
    __tablename__ = "chat_settings"

    chat_id = Column(BigInteger, primary_key=True)

    # Антифлуд
    flood_limit = Column(Integer, nullable=False, default=0)  # 0 = антифлуд выключен
    flood_timer = Column(Integer, nullable=False, default=0)  # окно в секундах, 0 = 5с
    flood_mode = Column(String(16), nullable=False, default="mute")  # ban, mute, kick, tban, tmute
    flood_clear_all = Column(Boolean, nullable=False, default=False)

    # Капча
    captcha_enabled = Column(Boolean, nullable=False, default=False)
    captcha_mode = Column(String(16), nullable=False, default="button")  # button, text, math
    captcha_text = Column(String(64), nullable=True)  # свой текст кнопки
    captcha_kick = Column(Boolean, nullable=False, default=True)
    captcha_kick_time = Column(Integer, nullable=False, default=120)

    # Антирейд
    antiraid_enabled = Column(Boolean, nullable=False, default=False)
    antiraid_expires_at = Column(DateTime, nullable=True)
    raid_time = Column(Integer, nullable=False, default=21600)
    auto_antiraid_limit = Column(Integer, nullable=False, default=0)  # 0 = авто-антирейд выключен

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ⏰ Отложенные действия (разбан, размут, кик по капче, выключение антирейда)
# Журнал только на добавление: строки не удаляются, completed меняется false -> true один раз.
class ScheduledAction(Base):
    __tablename__ = "scheduled_actions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(BigInteger, nullable=False)
    user_id = Column(BigInteger, nullable=True)  # NULL для действий уровня чата
    action_type = Column(String(32), nullable=False)
    execute_at = Column(DateTime, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    # "metadata" зарезервировано в declarative, поэтому атрибут называется иначе
    action_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_scheduled_actions_due", "completed", "execute_at"),
        Index("ix_scheduled_actions_chat_user", "chat_id", "user_id"),
    )


# 🧩 Незавершённые капчи новых участников
class CaptchaChallenge(Base):
    __tablename__ = "captcha_challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(BigInteger, nullable=False)
    user_id = Column(BigInteger, nullable=False)
    message_id = Column(BigInteger, nullable=True)
    answer = Column(String(32), nullable=True)  # NULL = режим кнопки
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uix_captcha_chat_user"),
    )


# ✅ Одобренные пользователи (не проверяются антифлудом)
class ApprovedUser(Base):
    __tablename__ = "approved_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(BigInteger, nullable=False)
    user_id = Column(BigInteger, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uix_approved_chat_user"),
    )
