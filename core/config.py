"""
設定檔載入模組

設定來源依序合併：預設值 -> 設定檔 (config/settings.json，可選) -> 環境變數。
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse


# 預設值定義
DEFAULT_CONFIG = {
    "bot_token": None,
    "target_chat_id": None,
    "admin_chat_ids": [],
    "data_dir": "data",
    "base_url": "https://www.olx.kz",
    "tz_offset_hours": 5,
    "interval_seconds": 120,
    "freshness_hours": 24,
    "business_filter_categories": ["astelec", "astlaptop"],
    "message_format": "markdown",
    "fetch_view_count": False,
    "fetch_phone": True,
    "headless": True,
    "log_level": "INFO",
}

# 環境變數到設定欄位的映射（先列出的優先）
ENV_TO_FIELD = {
    "TELEGRAM_BOT_TOKEN": "bot_token",
    "API_TOKEN": "bot_token",
    "TARGET_CHAT_ID": "target_chat_id",
    "TELEGRAM_CHAT_ID": "target_chat_id",
    "ADMIN_CHAT_IDS": "admin_chat_ids",
    "DATA_DIR": "data_dir",
    "OLX_BASE_URL": "base_url",
    "OLX_TZ_OFFSET_HOURS": "tz_offset_hours",
    "SCRAPE_INTERVAL_SECONDS": "interval_seconds",
    "FRESHNESS_HOURS": "freshness_hours",
    "BUSINESS_FILTER_CATEGORIES": "business_filter_categories",
    "MESSAGE_FORMAT": "message_format",
    "FETCH_VIEW_COUNT": "fetch_view_count",
    "FETCH_PHONE": "fetch_phone",
    "HEADLESS": "headless",
    "LOG_LEVEL": "log_level",
}

VALID_MESSAGE_FORMATS = {"markdown", "html"}


@dataclass
class Settings:
    """執行設定"""
    bot_token: Optional[str] = None
    target_chat_id: Optional[str] = None
    admin_chat_ids: List[str] = field(default_factory=list)
    data_dir: str = "data"
    base_url: str = "https://www.olx.kz"
    tz_offset_hours: int = 5
    interval_seconds: int = 120
    freshness_hours: int = 24
    business_filter_categories: List[str] = field(default_factory=list)
    message_format: str = "markdown"
    fetch_view_count: bool = False
    fetch_phone: bool = True
    headless: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        if self.message_format not in VALID_MESSAGE_FORMATS:
            raise ValueError(
                f"Invalid message_format: {self.message_format}. "
                f"Must be one of {sorted(VALID_MESSAGE_FORMATS)}"
            )
        if not self.admin_chat_ids and self.target_chat_id:
            self.admin_chat_ids = [str(self.target_chat_id)]

    @property
    def site_domain(self) -> str:
        """站點網域，例如 olx.kz"""
        host = urlparse(self.base_url).hostname or ""
        return host[4:] if host.startswith("www.") else host


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _coerce(field_name: str, raw: str) -> Any:
    """依預設值型別轉換環境變數字串"""
    default = DEFAULT_CONFIG[field_name]
    if isinstance(default, bool):
        return _parse_bool(raw)
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, list):
        return _parse_list(raw)
    return raw


def _load_env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_name, field_name in ENV_TO_FIELD.items():
        raw = environ.get(env_name)
        if raw is None or raw == "" or field_name in overrides:
            continue
        overrides[field_name] = _coerce(field_name, raw)
    return overrides


def load_settings(
    config_path: str = "config/settings.json",
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """
    載入執行設定

    Args:
        config_path: 設定檔路徑（不存在時略過）
        environ: 環境變數字典，預設為 os.environ

    Returns:
        Settings: 合併後的設定物件

    Raises:
        ValueError: 設定值無效時
    """
    if environ is None:
        environ = dict(os.environ)

    # 載入設定檔
    if os.path.exists(config_path):
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    else:
        config_data = {}

    # 合併預設值
    unknown = set(config_data) - set(DEFAULT_CONFIG)
    if unknown:
        raise ValueError(f"Unknown settings in {config_path}: {sorted(unknown)}")
    merged_config = {**DEFAULT_CONFIG, **config_data, **_load_env_overrides(environ)}

    if merged_config["target_chat_id"] is not None:
        merged_config["target_chat_id"] = str(merged_config["target_chat_id"])
    merged_config["admin_chat_ids"] = [str(cid) for cid in merged_config["admin_chat_ids"]]
    merged_config["business_filter_categories"] = list(merged_config["business_filter_categories"])

    return Settings(**merged_config)
