#!/usr/bin/env python3
"""
測試發布時間解析與新鮮度判斷
"""
import sys
import os
import unittest
from datetime import datetime, timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hypothesis import given, strategies as st, settings

from core.timeparse import (
    MONTH_NAMES_RU,
    format_posted_at,
    is_fresh,
    parse_posted_at,
    split_location_date,
)


NOW = datetime(2024, 3, 10, 12, 0, 0)


class TestParsePostedAt(unittest.TestCase):
    def test_today_with_time(self):
        """今天的時間套用 +5 小時偏移"""
        result = parse_posted_at("Сегодня в 14:05", now=NOW)
        self.assertEqual(result, datetime(2024, 3, 10, 19, 5))

    def test_today_with_custom_offset(self):
        """時區偏移可設定"""
        result = parse_posted_at("Сегодня в 14:05", now=NOW, tz_offset_hours=0)
        self.assertEqual(result, datetime(2024, 3, 10, 14, 5))

    def test_today_without_time_returns_now(self):
        """只有「今天」沒有時間時返回當前時間"""
        self.assertEqual(parse_posted_at("Сегодня", now=NOW), NOW)

    def test_today_invalid_time(self):
        """時間超出範圍返回 None"""
        self.assertIsNone(parse_posted_at("Сегодня в 25:10", now=NOW))

    def test_absolute_date(self):
        """絕對日期為當天午夜"""
        self.assertEqual(parse_posted_at("3 марта 2024 г.", now=NOW), datetime(2024, 3, 3))

    def test_absolute_date_without_year_suffix(self):
        self.assertEqual(parse_posted_at("15 января 2023", now=NOW), datetime(2023, 1, 15))

    def test_location_prefix_is_ignored(self):
        """卡片上的「城市 - 日期」格式"""
        result = parse_posted_at("Алматы, Бостандыкский район - Сегодня в 09:15", now=NOW)
        self.assertEqual(result, datetime(2024, 3, 10, 14, 15))

    def test_posted_marker_is_stripped(self):
        result = parse_posted_at("Опубликовано 3 марта 2024 г.", now=NOW)
        self.assertEqual(result, datetime(2024, 3, 3))

    def test_unknown_month(self):
        self.assertIsNone(parse_posted_at("3 marta 2024 г.", now=NOW))

    def test_wrong_token_count(self):
        """不是三段的字串返回 None"""
        self.assertIsNone(parse_posted_at("3 марта", now=NOW))
        self.assertIsNone(parse_posted_at("вчера в 10:00 по времени", now=NOW))

    def test_invalid_day(self):
        self.assertIsNone(parse_posted_at("31 февраля 2024 г.", now=NOW))

    def test_empty(self):
        self.assertIsNone(parse_posted_at("", now=NOW))
        self.assertIsNone(parse_posted_at(None, now=NOW))


class TestSplitLocationDate(unittest.TestCase):
    def test_split(self):
        city, date_text = split_location_date("Усть-Каменогорск - 4 марта 2024 г.")
        self.assertEqual(city, "Усть-Каменогорск")
        self.assertEqual(date_text, "4 марта 2024 г.")

    def test_no_location(self):
        self.assertEqual(split_location_date("Сегодня в 10:00"), (None, "Сегодня в 10:00"))


class TestIsFresh(unittest.TestCase):
    def test_none_is_never_fresh(self):
        self.assertFalse(is_fresh(None, now=NOW))

    def test_within_window(self):
        self.assertTrue(is_fresh(NOW - timedelta(hours=23, minutes=59), now=NOW))

    def test_boundary_is_stale(self):
        """剛好 24 小時不算新鮮"""
        self.assertFalse(is_fresh(NOW - timedelta(hours=24), now=NOW))

    def test_future_is_fresh(self):
        """時區偏移後可能在未來，仍視為新鮮"""
        self.assertTrue(is_fresh(NOW + timedelta(hours=5), now=NOW))


class TestFormatPostedAt(unittest.TestCase):
    def test_format(self):
        self.assertEqual(format_posted_at(datetime(2024, 3, 3, 9, 5)), "3 марта 2024 в 09:05")

    def test_unknown(self):
        self.assertEqual(format_posted_at(None), "Дата неизвестна")


# ===== Property-based tests =====

hours_ago_strategy = st.floats(min_value=0.0, max_value=24 * 30, allow_nan=False, allow_infinity=False)


@settings(max_examples=100)
@given(hours_ago=hours_ago_strategy)
def test_freshness_iff_within_window(hours_ago):
    """
    For any posted_at and now, is_fresh is true if and only if
    now - posted_at is strictly less than 24 hours.
    """
    posted_at = NOW - timedelta(hours=hours_ago)
    assert is_fresh(posted_at, now=NOW) == (NOW - posted_at < timedelta(hours=24))


@settings(max_examples=100)
@given(
    day=st.integers(min_value=1, max_value=28),
    month=st.integers(min_value=1, max_value=12),
    year=st.integers(min_value=2000, max_value=2100),
)
def test_absolute_date_round_trip(day, month, year):
    """
    For any valid date, the localized absolute form parses back to midnight of that date.
    """
    raw = f"{day} {MONTH_NAMES_RU[month]} {year} г."
    assert parse_posted_at(raw, now=NOW) == datetime(year, month, day)


@settings(max_examples=100)
@given(text=st.text(max_size=60))
def test_parse_never_raises(text):
    """
    For any input string, parsing returns a datetime or None without raising.
    """
    result = parse_posted_at(text, now=NOW)
    assert result is None or isinstance(result, datetime)


if __name__ == "__main__":
    unittest.main()
