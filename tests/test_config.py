#!/usr/bin/env python3
"""
測試設定載入
"""
import sys
import os
import json
import tempfile
import shutil
import unittest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Settings, load_settings


class TestLoadSettings(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.missing_path = os.path.join(self.temp_dir, "missing.json")

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def write_config(self, data) -> str:
        path = os.path.join(self.temp_dir, "settings.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        return path

    def test_defaults(self):
        """沒有設定檔與環境變數時使用預設值"""
        settings = load_settings(self.missing_path, environ={})

        self.assertIsNone(settings.bot_token)
        self.assertEqual(settings.base_url, "https://www.olx.kz")
        self.assertEqual(settings.tz_offset_hours, 5)
        self.assertEqual(settings.interval_seconds, 120)
        self.assertEqual(settings.freshness_hours, 24)
        self.assertEqual(settings.business_filter_categories, ["astelec", "astlaptop"])
        self.assertEqual(settings.message_format, "markdown")
        self.assertFalse(settings.fetch_view_count)
        self.assertTrue(settings.headless)
        self.assertEqual(settings.site_domain, "olx.kz")

    def test_env_overrides(self):
        settings = load_settings(self.missing_path, environ={
            "TELEGRAM_BOT_TOKEN": "token",
            "TARGET_CHAT_ID": "-100123",
            "SCRAPE_INTERVAL_SECONDS": "300",
            "BUSINESS_FILTER_CATEGORIES": "astelec, phones",
            "FETCH_VIEW_COUNT": "true",
            "MESSAGE_FORMAT": "html",
        })

        self.assertEqual(settings.bot_token, "token")
        self.assertEqual(settings.target_chat_id, "-100123")
        self.assertEqual(settings.interval_seconds, 300)
        self.assertEqual(settings.business_filter_categories, ["astelec", "phones"])
        self.assertTrue(settings.fetch_view_count)
        self.assertEqual(settings.message_format, "html")
        # 未設定管理者時預設為目標 chat
        self.assertEqual(settings.admin_chat_ids, ["-100123"])

    def test_legacy_env_names(self):
        """舊的環境變數名稱也可使用，新名稱優先"""
        settings = load_settings(self.missing_path, environ={
            "API_TOKEN": "legacy",
            "TELEGRAM_CHAT_ID": "42",
        })
        self.assertEqual(settings.bot_token, "legacy")
        self.assertEqual(settings.target_chat_id, "42")

        settings = load_settings(self.missing_path, environ={
            "TELEGRAM_BOT_TOKEN": "new",
            "API_TOKEN": "legacy",
        })
        self.assertEqual(settings.bot_token, "new")

    def test_config_file(self):
        path = self.write_config({"target_chat_id": 42, "admin_chat_ids": [1, 2], "freshness_hours": 12})
        settings = load_settings(path, environ={})

        self.assertEqual(settings.target_chat_id, "42")
        self.assertEqual(settings.admin_chat_ids, ["1", "2"])
        self.assertEqual(settings.freshness_hours, 12)

    def test_env_beats_config_file(self):
        path = self.write_config({"freshness_hours": 12})
        settings = load_settings(path, environ={"FRESHNESS_HOURS": "6"})
        self.assertEqual(settings.freshness_hours, 6)

    def test_unknown_key(self):
        path = self.write_config({"max_ntd": 100})
        with self.assertRaises(ValueError):
            load_settings(path, environ={})

    def test_invalid_message_format(self):
        with self.assertRaises(ValueError):
            Settings(message_format="bbcode")


if __name__ == "__main__":
    unittest.main()
