"""
發布時間解析模組

將 OLX 頁面上的在地化日期字串（俄文）轉換為 datetime，
並判斷商品是否仍在新鮮度時間窗內。

支援格式：
- "Сегодня в 14:05"（今天，套用固定時區偏移）
- "3 марта 2024 г."（絕對日期，午夜）
- "Алматы - Сегодня в 14:05"（卡片上的「城市 - 日期」格式）
"""

import re
from datetime import datetime, timedelta
from typing import Optional, Tuple


# 俄文月份（所有格）對照表
MONTHS_RU = {
    "января": 1,
    "февраля": 2,
    "марта": 3,
    "апреля": 4,
    "мая": 5,
    "июня": 6,
    "июля": 7,
    "августа": 8,
    "сентября": 9,
    "октября": 10,
    "ноября": 11,
    "декабря": 12,
}
MONTH_NAMES_RU = {number: name for name, number in MONTHS_RU.items()}

TODAY_MARKER = "Сегодня"
POSTED_MARKERS = ("Опубликовано", "Обновлено")
YEAR_SUFFIX = "г."
LOCATION_SEPARATOR = " - "

DEFAULT_TZ_OFFSET_HOURS = 5
DEFAULT_FRESHNESS = timedelta(hours=24)

_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})")


def split_location_date(text: str) -> Tuple[Optional[str], str]:
    """
    拆分卡片上的「城市 - 日期」字串

    Returns:
        (城市, 日期文字)，沒有城市時城市為 None
    """
    text = (text or "").strip()
    if LOCATION_SEPARATOR not in text:
        return None, text
    city, _, date_text = text.rpartition(LOCATION_SEPARATOR)
    return (city.strip() or None), date_text.strip()


def parse_posted_at(
    raw: str,
    now: Optional[datetime] = None,
    tz_offset_hours: int = DEFAULT_TZ_OFFSET_HOURS,
) -> Optional[datetime]:
    """
    解析發布時間字串

    Args:
        raw: 頁面上抓到的原始日期字串
        now: 當前時間，預設為 datetime.now()
        tz_offset_hours: 「今天」格式的時區修正（小時）

    Returns:
        解析後的 datetime，無法解析時返回 None（不拋出例外）
    """
    if now is None:
        now = datetime.now()

    _, text = split_location_date(raw)
    for marker in POSTED_MARKERS:
        text = text.replace(marker, "")
    text = text.strip()
    if not text:
        return None

    if TODAY_MARKER in text:
        match = _TIME_PATTERN.search(text)
        if not match:
            return now
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours > 23 or minutes > 59:
            return None
        posted = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        return posted + timedelta(hours=tz_offset_hours)

    if text.endswith(YEAR_SUFFIX):
        text = text[: -len(YEAR_SUFFIX)].strip()

    parts = text.split(" ")
    if len(parts) != 3:
        return None

    day_str, month_name, year_str = parts
    month = MONTHS_RU.get(month_name.lower())
    if month is None or not day_str.isdecimal() or not year_str.isdecimal():
        return None

    try:
        return datetime(int(year_str), month, int(day_str))
    except (ValueError, OverflowError):
        return None


def is_fresh(
    posted_at: Optional[datetime],
    now: Optional[datetime] = None,
    window: timedelta = DEFAULT_FRESHNESS,
) -> bool:
    """判斷發布時間是否在新鮮度時間窗內（None 永遠不算新鮮）"""
    if posted_at is None:
        return False
    if now is None:
        now = datetime.now()
    return now - posted_at < window


def format_posted_at(posted_at: Optional[datetime]) -> str:
    """格式化為顯示用字串，例如 "3 марта 2024 в 09:05" """
    if posted_at is None:
        return "Дата неизвестна"
    month = MONTH_NAMES_RU[posted_at.month]
    return (
        f"{posted_at.day} {month} {posted_at.year} "
        f"в {posted_at.hour:02d}:{posted_at.minute:02d}"
    )
