"""
Dedup storage for discovered and sent listings.

Two JSON documents under the data directory:
- found.json: {"adds": [Listing, ...]}  every listing ever extracted
- sent.json:  {"sentAdIds": [id, ...]}  listings whose delivery is complete

Both are loaded once, mutated incrementally and written back synchronously
after each mutation. Corrupted files are reset to the default structure.
"""

import copy
import json
import logging
import os
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import Listing

logger = logging.getLogger(__name__)


FOUND_FILE = "found.json"
SENT_FILE = "sent.json"

DEFAULT_FOUND = {"adds": []}
DEFAULT_SENT = {"sentAdIds": []}


def save_json_file(path: str, data: Any) -> None:
    """寫入 JSON 檔案（先寫暫存檔再取代，避免寫到一半）"""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    os.replace(tmp_path, path)


def load_json_file(
    path: str,
    default: Any,
    validator: Optional[Callable[[Any], bool]] = None,
) -> Any:
    """
    讀取 JSON 檔案，不存在或損毀時以預設值重建

    Args:
        path: 檔案路徑
        default: 預設內容
        validator: 檢查內容結構是否正確的函數

    Returns:
        檔案內容，或預設內容的副本
    """
    if not os.path.exists(path):
        save_json_file(path, default)
        return copy.deepcopy(default)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Corrupted {os.path.basename(path)} ({e}), resetting to default")
        save_json_file(path, default)
        return copy.deepcopy(default)

    if validator is not None and not validator(data):
        logger.warning(f"Unexpected structure in {os.path.basename(path)}, resetting to default")
        save_json_file(path, default)
        return copy.deepcopy(default)
    return data


def _valid_found(data: Any) -> bool:
    return isinstance(data, dict) and isinstance(data.get("adds"), list)


def _valid_sent(data: Any) -> bool:
    return (
        isinstance(data, dict)
        and isinstance(data.get("sentAdIds"), list)
        and all(isinstance(item, str) for item in data["sentAdIds"])
    )


class DedupStore:
    """已發現 / 已發送商品儲存"""

    def __init__(self, data_dir: str = "data"):
        self.data_dir = data_dir
        self.found_path = os.path.join(data_dir, FOUND_FILE)
        self.sent_path = os.path.join(data_dir, SENT_FILE)
        self._discovered: Dict[str, Listing] = self.load_discovered()
        self._sent_ids: List[str] = self.load_sent()
        self._sent_lookup = set(self._sent_ids)

    def load_discovered(self) -> Dict[str, Listing]:
        """載入已發現商品（以 id 為 key，保留原有順序）"""
        data = load_json_file(self.found_path, DEFAULT_FOUND, _valid_found)
        discovered: Dict[str, Listing] = {}
        for raw in data["adds"]:
            listing = Listing.from_dict(raw)
            if listing is not None:
                discovered[listing.id] = listing
        return discovered

    def load_sent(self) -> List[str]:
        """載入已發送 id 列表"""
        data = load_json_file(self.sent_path, DEFAULT_SENT, _valid_sent)
        return list(dict.fromkeys(data["sentAdIds"]))

    @property
    def discovered(self) -> List[Listing]:
        return list(self._discovered.values())

    @property
    def sent_ids(self) -> List[str]:
        return list(self._sent_ids)

    def is_sent(self, listing_id: str) -> bool:
        return listing_id in self._sent_lookup

    def mark_sent(self, listing_id: str) -> bool:
        """
        標記為已發送（冪等）

        Returns:
            是否為新加入的 id
        """
        if listing_id in self._sent_lookup:
            return False
        self._sent_ids.append(listing_id)
        self._sent_lookup.add(listing_id)
        self._save_sent()
        return True

    def merge_discovered(self, listings: Iterable[Listing]) -> List[Listing]:
        """
        合併新發現的商品（以 id upsert，後見者覆蓋）並寫回檔案

        Returns:
            尚未發送的商品列表（依輸入順序，同一 id 只出現一次）
        """
        pending: Dict[str, Listing] = {}
        for listing in listings:
            self._discovered[listing.id] = listing
            if not self.is_sent(listing.id):
                pending[listing.id] = listing
        self._save_discovered()
        return list(pending.values())

    def _save_discovered(self) -> None:
        save_json_file(
            self.found_path,
            {"adds": [listing.to_dict() for listing in self._discovered.values()]},
        )

    def _save_sent(self) -> None:
        save_json_file(self.sent_path, {"sentAdIds": self._sent_ids})
