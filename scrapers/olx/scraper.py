"""
OLX 列表頁爬蟲模組

繼承 BaseScraper，抓取分類列表頁（第一頁）並擷取商品卡片：
- 標題（備用選擇器，最後使用預設文字）
- 價格（缺少時使用預設文字）
- 發布時間（不在 24 小時內或無法解析的卡片會被丟棄）
- 商品連結（相對路徑轉為絕對 URL，沒有連結的卡片會被丟棄）
"""

import logging
import re
from datetime import datetime, timedelta
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import Tag

from core.base_scraper import BaseScraper
from core.models import Listing, NO_PRICE, NO_TITLE
from core.timeparse import DEFAULT_FRESHNESS, DEFAULT_TZ_OFFSET_HOURS, is_fresh, parse_posted_at
from scrapers.olx import selectors

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://www.olx.kz"
_LISTING_ID_PATTERN = re.compile(r"-ID([A-Za-z0-9]+)\.html")


class OlxScraper(BaseScraper):
    """
    OLX 分類列表頁爬蟲
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        tz_offset_hours: int = DEFAULT_TZ_OFFSET_HOURS,
        freshness: timedelta = DEFAULT_FRESHNESS,
        headless: bool = True,
    ):
        """
        初始化 OLX 爬蟲

        Args:
            base_url: 站點根網址，用於補全相對連結
            tz_offset_hours: 「今天」時間的時區修正
            freshness: 新鮮度時間窗
            headless: 是否以無頭模式運行瀏覽器
        """
        super().__init__(headless=headless)
        self.base_url = base_url.rstrip("/")
        self.tz_offset_hours = tz_offset_hours
        self.freshness = freshness

    @property
    def source_name(self) -> str:
        """返回來源名稱"""
        return "olx_kz"

    def get_product_id(self, url: str) -> str:
        """
        從商品 URL 提取 id

        支援的 URL 格式：
        - https://www.olx.kz/d/obyavlenie/prodam-iphone-IDqoTiZ.html -> qoTiZ

        無法匹配時以完整 URL 作為 id（永遠不返回空值）。
        """
        match = _LISTING_ID_PATTERN.search(url or "")
        if match:
            return match.group(1)
        return url

    def _absolute_url(self, href: str) -> str:
        if href.startswith("http"):
            return href
        return urljoin(self.base_url + "/", href)

    def parse_product(
        self,
        element: Tag,
        category: str,
        now: Optional[datetime] = None,
    ) -> Optional[Listing]:
        """
        解析單一商品卡片

        Args:
            element: 商品卡片元素
            category: 分類名稱
            now: 當前時間（用於新鮮度判斷）

        Returns:
            Listing，若沒有連結或不夠新則返回 None
        """
        href = selectors.card_link(element)
        if not href:
            return None

        posted_at = parse_posted_at(
            selectors.card_location_date(element),
            now=now,
            tz_offset_hours=self.tz_offset_hours,
        )
        if not is_fresh(posted_at, now=now, window=self.freshness):
            return None

        url = self._absolute_url(href)
        return Listing(
            id=self.get_product_id(url),
            category=category,
            title=selectors.card_title(element) or NO_TITLE,
            price=selectors.card_price(element) or NO_PRICE,
            url=url,
            posted_at=posted_at,
        )

    def extract_listings(
        self,
        markup: str,
        category: str,
        now: Optional[datetime] = None,
    ) -> List[Listing]:
        """從列表頁 HTML 擷取新鮮的商品（同一 id 只保留第一個）"""
        cards = selectors.find_cards(selectors.make_soup(markup))
        logger.info(f"[{category}] Found {len(cards)} cards")

        listings: List[Listing] = []
        seen_ids = set()
        for card in cards:
            listing = self.parse_product(card, category, now=now)
            if listing is None or listing.id in seen_ids:
                continue
            seen_ids.add(listing.id)
            listings.append(listing)

        logger.info(f"[{category}] Fresh listings: {len(listings)}")
        return listings

    def scrape(self, url: str, category: str) -> List[Listing]:
        """
        抓取分類列表頁並擷取新鮮商品

        Raises:
            requests.RequestException: 網路錯誤或逾時
        """
        self._wait_random(1.0, 4.0)
        response = self._http_get(url, allow_redirects=True)
        logger.info(f"[{category}] Status: {response.status_code}")
        return self.extract_listings(response.text, category)
