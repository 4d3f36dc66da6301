"""
資料模型

- Listing: 從分類列表頁發現的商品
- EnrichedDetail: 詳情頁擴充資料（僅在投遞時產生，不單獨儲存）
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional

from .timeparse import format_posted_at


NO_TITLE = "Без названия"
NO_PRICE = "Цена не указана"
DESCRIPTION_FAILED = "Не удалось загрузить описание"
DESCRIPTION_MISSING = "Описание отсутствует"


@dataclass
class Listing:
    """分類列表頁上的商品"""
    id: str
    category: str
    title: str
    price: str
    url: str
    posted_at: Optional[datetime] = None

    @property
    def posted_display(self) -> str:
        return format_posted_at(self.posted_at)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["posted_at"] = self.posted_at.isoformat() if self.posted_at else None
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> Optional["Listing"]:
        """
        從儲存的字典還原

        缺少 id 的紀錄返回 None；舊格式（name / loc_date）也可讀取。
        """
        if not isinstance(data, dict):
            return None
        listing_id = data.get("id")
        if not listing_id:
            return None

        posted_at = None
        raw_posted = data.get("posted_at")
        if raw_posted:
            try:
                posted_at = datetime.fromisoformat(raw_posted)
            except (TypeError, ValueError):
                posted_at = None

        return cls(
            id=str(listing_id),
            category=data.get("category", ""),
            title=data.get("title") or data.get("name") or NO_TITLE,
            price=data.get("price") or NO_PRICE,
            url=data.get("url") or str(listing_id),
            posted_at=posted_at,
        )


@dataclass
class EnrichedDetail:
    """詳情頁擴充資料"""
    is_private_seller: bool = False
    description: str = DESCRIPTION_MISSING
    photo_urls: List[str] = field(default_factory=list)
    phone: Optional[str] = None
    view_count: Optional[str] = None
    city: Optional[str] = None
    seller_name: Optional[str] = None
    seller_since: Optional[str] = None
    degraded: bool = False

    @classmethod
    def fallback(cls) -> "EnrichedDetail":
        """所有擷取方式都失敗時使用的安全預設值"""
        return cls(description=DESCRIPTION_FAILED, degraded=True)
