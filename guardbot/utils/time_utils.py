# ═══════════════════════════════════════════════════════════════════════════
# ФОРМАТИРОВАНИЕ ДЛИТЕЛЬНОСТЕЙ
# ═══════════════════════════════════════════════════════════════════════════
# Длительности в движке модерации всегда в целых секундах.
#
# Пример:
#   format_duration(93600) → "1д 2ч"
# ═══════════════════════════════════════════════════════════════════════════

def format_duration(seconds: int) -> str:
    """Форматирует секунды в короткую строку: "1н 2д 3ч 4м"."""
    if seconds <= 0:
        return "0с"

    weeks, seconds = divmod(seconds, 604800)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)

    parts = []
    if weeks:
        parts.append(f"{weeks}н")
    if days:
        parts.append(f"{days}д")
    if hours:
        parts.append(f"{hours}ч")
    if minutes:
        parts.append(f"{minutes}м")
    # Секунды показываем только для коротких интервалов
    if seconds and not parts:
        parts.append(f"{seconds}с")

    return " ".join(parts)
