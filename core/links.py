"""
分類連結管理模組

- links.json: {"links": {uid: 分類列表頁 URL}}（也接受舊的扁平格式 {uid: url}）
- data.json:  {顯示名稱: uid}
"""

import logging
import os
import re
from typing import Dict, Optional
from urllib.parse import urlparse

from .storage import load_json_file, save_json_file

logger = logging.getLogger(__name__)


LINKS_FILE = "links.json"
NAMES_FILE = "data.json"

UID_PATTERN = re.compile(r"^[a-z0-9_-]+$", re.IGNORECASE)


class CategoryError(ValueError):
    """分類操作輸入不合法"""


def _valid_mapping(data) -> bool:
    return isinstance(data, dict) and all(
        isinstance(key, str) and isinstance(value, str) for key, value in data.items()
    )


def _valid_links(data) -> bool:
    if not isinstance(data, dict):
        return False
    if "links" in data:
        return _valid_mapping(data["links"])
    return _valid_mapping(data)


def validate_uid(uid: str) -> str:
    uid = (uid or "").strip()
    if not UID_PATTERN.match(uid):
        raise CategoryError(f"Invalid UID: {uid!r}")
    return uid


def validate_category_url(url: str, site_domain: str) -> str:
    """URL 必須是 http(s) 且主機屬於站點網域"""
    url = (url or "").strip()
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    domain = site_domain.lower()
    if parsed.scheme not in ("http", "https") or not (host == domain or host.endswith("." + domain)):
        raise CategoryError(f"URL must belong to {site_domain}: {url!r}")
    return url


class CategoryLinksStore:
    """分類連結儲存"""

    def __init__(self, data_dir: str = "data", site_domain: str = "olx.kz"):
        self.data_dir = data_dir
        self.site_domain = site_domain
        self.links_path = os.path.join(data_dir, LINKS_FILE)
        self.names_path = os.path.join(data_dir, NAMES_FILE)

    def load_links(self) -> Dict[str, str]:
        """讀取 uid -> URL 映射（每個排程週期讀取一次）"""
        data = load_json_file(self.links_path, {"links": {}}, _valid_links)
        if "links" in data:
            return dict(data["links"])
        return dict(data)

    def categories(self) -> Dict[str, str]:
        """讀取顯示名稱 -> uid 映射"""
        return dict(load_json_file(self.names_path, {}, _valid_mapping))

    def add(self, name: str, uid: str, url: str) -> None:
        """
        新增分類

        Raises:
            CategoryError: UID 不合法、已被使用或 URL 不屬於站點
        """
        name = (name or "").strip()
        if not name:
            raise CategoryError("Category name is empty")
        uid = validate_uid(uid)
        url = validate_category_url(url, self.site_domain)

        links = self.load_links()
        if uid in links:
            raise CategoryError(f"UID already in use: {uid}")
        categories = self.categories()

        links[uid] = url
        categories[name] = uid
        save_json_file(self.links_path, {"links": links})
        save_json_file(self.names_path, categories)
        logger.info(f"Category added: {name} ({uid}) -> {url}")

    def remove(self, name: str) -> str:
        """
        依顯示名稱刪除分類

        Returns:
            被刪除分類的 uid

        Raises:
            CategoryError: 找不到分類
        """
        categories = self.categories()
        uid: Optional[str] = categories.pop(name, None)
        if uid is None:
            raise CategoryError(f"Category not found: {name}")

        links = self.load_links()
        links.pop(uid, None)
        save_json_file(self.links_path, {"links": links})
        save_json_file(self.names_path, categories)
        logger.info(f"Category removed: {name} ({uid})")
        return uid
