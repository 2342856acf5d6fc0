# ============================================================
# МОДУЛЬ ANTI-RAID: ЗАЩИТА ОТ МАССОВЫХ ВСТУПЛЕНИЙ
# ============================================================
# Режим рейда: пока он активен, каждый новый участник кикается.
# 1. Ручное включение/выключение
# 2. Авто-включение по скорости вступлений (скользящее окно 60с)
# 3. Авто-выключение через отложенное действие antiraid_disable
# ============================================================

from guardbot.services.antiraid.raid_service import (
    enable_raid_mode,
    disable_raid_mode,
    track_join_velocity,
    kick_joiner_during_raid,
    raid_mode_active,
)

__all__ = [
    "enable_raid_mode",
    "disable_raid_mode",
    "track_join_velocity",
    "kick_joiner_during_raid",
    "raid_mode_active",
]
