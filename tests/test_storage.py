#!/usr/bin/env python3
"""
測試 DedupStore 與 JSON 檔案讀寫
"""
import sys
import os
import json
import tempfile
import shutil
import unittest
from datetime import datetime

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hypothesis import given, strategies as st, settings

from core.models import Listing
from core.storage import DedupStore, load_json_file


def make_listing(listing_id: str, title: str = "Товар", category: str = "phones") -> Listing:
    return Listing(
        id=listing_id,
        category=category,
        title=title,
        price="1 000 ₸",
        url=f"https://www.olx.kz/d/obyavlenie/item-ID{listing_id}.html",
        posted_at=datetime(2024, 3, 10, 14, 15),
    )


class TestDedupStore(unittest.TestCase):
    def setUp(self):
        """每個測試前創建臨時資料夾"""
        self.temp_dir = tempfile.mkdtemp()
        self.store = DedupStore(self.temp_dir)

    def tearDown(self):
        """每個測試後清理臨時資料夾"""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def read_json(self, name: str):
        with open(os.path.join(self.temp_dir, name), "r", encoding="utf-8") as f:
            return json.load(f)

    def test_missing_files_are_created(self):
        """檔案不存在時以預設結構建立"""
        self.assertEqual(self.read_json("found.json"), {"adds": []})
        self.assertEqual(self.read_json("sent.json"), {"sentAdIds": []})

    def test_merge_returns_unsent(self):
        pending = self.store.merge_discovered([make_listing("a1"), make_listing("b2")])
        self.assertEqual([l.id for l in pending], ["a1", "b2"])

        self.store.mark_sent("a1")
        pending = self.store.merge_discovered([make_listing("a1"), make_listing("b2")])
        self.assertEqual([l.id for l in pending], ["b2"])

    def test_merge_is_idempotent(self):
        """同一批商品合併兩次，found.json 不會重複"""
        batch = [make_listing("a1"), make_listing("b2")]
        self.store.merge_discovered(batch)
        self.store.merge_discovered(batch)

        ids = [item["id"] for item in self.read_json("found.json")["adds"]]
        self.assertEqual(ids, ["a1", "b2"])

    def test_merge_last_seen_wins(self):
        """同一 id 以最後看到的資料為準"""
        self.store.merge_discovered([make_listing("a1", title="舊標題")])
        self.store.merge_discovered([make_listing("a1", title="新標題")])

        self.assertEqual(self.store.discovered[0].title, "新標題")
        self.assertEqual(self.read_json("found.json")["adds"][0]["title"], "新標題")

    def test_merge_duplicate_ids_in_batch(self):
        pending = self.store.merge_discovered([make_listing("a1"), make_listing("a1")])
        self.assertEqual(len(pending), 1)

    def test_mark_sent_is_idempotent(self):
        self.assertTrue(self.store.mark_sent("a1"))
        self.assertFalse(self.store.mark_sent("a1"))
        self.assertEqual(self.read_json("sent.json"), {"sentAdIds": ["a1"]})

    def test_state_survives_reload(self):
        """重新載入後狀態一致"""
        self.store.merge_discovered([make_listing("a1")])
        self.store.mark_sent("a1")

        reloaded = DedupStore(self.temp_dir)
        self.assertTrue(reloaded.is_sent("a1"))
        self.assertEqual(reloaded.discovered[0].posted_at, datetime(2024, 3, 10, 14, 15))

    def test_corrupt_sent_file_is_reset(self):
        """損毀的 sent.json 會被重設為空並寫回檔案"""
        with open(os.path.join(self.temp_dir, "sent.json"), "w", encoding="utf-8") as f:
            f.write("{not valid json")

        store = DedupStore(self.temp_dir)
        self.assertEqual(store.sent_ids, [])
        self.assertEqual(self.read_json("sent.json"), {"sentAdIds": []})

    def test_wrong_structure_is_reset(self):
        with open(os.path.join(self.temp_dir, "found.json"), "w", encoding="utf-8") as f:
            json.dump(["not", "a", "dict"], f)

        store = DedupStore(self.temp_dir)
        self.assertEqual(store.discovered, [])
        self.assertEqual(self.read_json("found.json"), {"adds": []})

    def test_legacy_records_are_read(self):
        """舊格式紀錄（name）可以讀取，缺少 id 的紀錄略過"""
        with open(os.path.join(self.temp_dir, "found.json"), "w", encoding="utf-8") as f:
            json.dump({"adds": [
                {"id": "x9", "name": "Старый формат", "price": "500 ₸", "url": "https://www.olx.kz/x"},
                {"name": "Без id"},
            ]}, f, ensure_ascii=False)

        store = DedupStore(self.temp_dir)
        self.assertEqual(len(store.discovered), 1)
        self.assertEqual(store.discovered[0].title, "Старый формат")


class TestLoadJsonFile(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_default_is_not_shared(self):
        """返回的預設值是副本"""
        default = {"items": []}
        path = os.path.join(self.temp_dir, "x.json")
        data = load_json_file(path, default)
        data["items"].append(1)
        self.assertEqual(default, {"items": []})


# ===== Property-based tests =====

id_strategy = st.text(alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789", min_size=1, max_size=8)


@settings(max_examples=50, deadline=None)
@given(
    batch=st.lists(id_strategy, max_size=10),
    sent=st.lists(id_strategy, max_size=5),
)
def test_pending_never_contains_sent(batch, sent):
    """
    For any batch of discovered ids and any set of sent ids,
    merge_discovered returns only ids that are not sent, each at most once.
    """
    temp_dir = tempfile.mkdtemp()
    try:
        store = DedupStore(temp_dir)
        for listing_id in sent:
            store.mark_sent(listing_id)
        pending = store.merge_discovered([make_listing(i) for i in batch])
        pending_ids = [l.id for l in pending]

        assert len(pending_ids) == len(set(pending_ids))
        assert not set(pending_ids) & set(sent)
        assert set(pending_ids) == set(batch) - set(sent)
    finally:
        shutil.rmtree(temp_dir)


if __name__ == "__main__":
    unittest.main()
