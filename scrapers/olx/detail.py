"""
OLX 詳情頁擴充模組

擷取方式：
- 主要方式：requests 抓取靜態 HTML 後解析（最多 2 次，間隔遞增）
- 備用方式：主要方式全部失敗時，以 Playwright 渲染頁面後解析一次
- 全部失敗：返回只含安全預設值的 EnrichedDetail，不中斷投遞

電話號碼為盡力而為：先呼叫站內電話 API，失敗時掃描頁面腳本中的電話格式字串。
"""

import logging
import re
import time
from typing import Dict, Optional

import requests
from playwright.sync_api import Error as PlaywrightError

from core.base_scraper import BaseScraper
from core.events import ENRICHMENT_DEGRADED, EventObserver
from core.formatter import normalize_text
from core.models import DESCRIPTION_MISSING, EnrichedDetail
from scrapers.olx import selectors
from scrapers.olx.scraper import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)


PHONE_API_PATH = "/api/v1/offers/{ad_id}/limited-phones/"
_PHONE_PATTERN = re.compile(r"(?:\+7|8)[\s\-]?\(?\d{3}\)?[\s\-]?\d{3}[\s\-]?\d{2}[\s\-]?\d{2}")


class BlockedPageError(Exception):
    """頁面看起來是封鎖 / CAPTCHA 頁"""


def find_phone_in_text(text: str) -> Optional[str]:
    """在文字中尋找第一個電話格式字串"""
    match = _PHONE_PATTERN.search(text or "")
    return match.group(0).strip() if match else None


class OlxDetailEnricher(BaseScraper):
    """
    OLX 詳情頁擴充
    """

    PRIMARY_ATTEMPTS = 2
    PHOTO_LIMIT = 10
    DESCRIPTION_LIMIT = 3000

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        headless: bool = True,
        fetch_view_count: bool = False,
        fetch_phone: bool = True,
        observer: EventObserver = None,
    ):
        """
        初始化詳情頁擴充器

        Args:
            base_url: 站點根網址
            headless: 是否以無頭模式運行瀏覽器
            fetch_view_count: 主要方式成功時，是否另外渲染頁面取得瀏覽次數
            fetch_phone: 是否嘗試取得電話號碼
            observer: 事件接收者
        """
        super().__init__(headless=headless, referer=base_url.rstrip("/") + "/")
        self.base_url = base_url.rstrip("/")
        self.fetch_view_count = fetch_view_count
        self.fetch_phone = fetch_phone
        self.observer = observer or EventObserver()

    @property
    def source_name(self) -> str:
        return "olx_kz"

    def enrich(self, url: str) -> EnrichedDetail:
        """
        取得商品詳情

        Args:
            url: 商品詳情頁 URL

        Returns:
            EnrichedDetail（永遠不拋出例外）
        """
        fields = None
        for attempt in range(self.PRIMARY_ATTEMPTS):
            try:
                fields = self._fetch_static(url)
                break
            except (requests.RequestException, BlockedPageError) as e:
                logger.warning(f"Static fetch attempt {attempt + 1} failed for {url}: {e}")
                if attempt < self.PRIMARY_ATTEMPTS - 1:
                    time.sleep(self._calculate_retry_delay(attempt))

        if fields is None:
            try:
                fields = self._fetch_rendered(url)
            except (PlaywrightError, BlockedPageError) as e:
                self.observer.emit(ENRICHMENT_DEGRADED, url=url, reason=str(e))
                return EnrichedDetail.fallback()
        elif self.fetch_view_count and not fields.get("view_count"):
            fields["view_count"] = self._fetch_view_count(url)

        detail = self._build_detail(fields)
        if self.fetch_phone:
            detail.phone = self._extract_phone(url, fields)
        return detail

    def _fetch_static(self, url: str) -> Dict:
        """主要方式：抓取靜態 HTML"""
        self._wait_random(2.5, 5.0)
        response = self._http_get(
            url,
            headers={
                "Sec-Fetch-Dest": "document",
                "Sec-Fetch-Mode": "navigate",
                "Sec-Fetch-Site": "same-origin",
            },
        )
        return self._parse(response.text)

    def _fetch_rendered(self, url: str) -> Dict:
        """備用方式：以瀏覽器渲染後解析"""
        logger.info(f"Falling back to rendered fetch: {url}")
        markup = self._render_page(url, wait_selectors=selectors.DETAIL_WAIT_SELECTORS)
        return self._parse(markup)

    def _parse(self, markup: str) -> Dict:
        soup = selectors.make_soup(markup)
        if selectors.is_block_page(soup):
            raise BlockedPageError(f"Blocked page: {soup.title.get_text(strip=True) if soup.title else ''}")
        return selectors.parse_detail(soup, photo_limit=self.PHOTO_LIMIT)

    def _fetch_view_count(self, url: str) -> Optional[str]:
        """瀏覽次數由腳本載入，需要渲染頁面"""
        try:
            markup = self._render_page(url, wait_selectors=selectors.VIEW_COUNT_WAIT_SELECTORS)
        except PlaywrightError as e:
            logger.warning(f"View count render failed for {url}: {e}")
            return None
        return selectors.view_count(selectors.make_soup(markup))

    def _build_detail(self, fields: Dict) -> EnrichedDetail:
        description = normalize_text(fields.get("description") or "") or DESCRIPTION_MISSING
        return EnrichedDetail(
            is_private_seller=bool(fields.get("is_private_seller")),
            description=description[: self.DESCRIPTION_LIMIT],
            photo_urls=list(fields.get("photo_urls") or [])[: self.PHOTO_LIMIT],
            view_count=fields.get("view_count"),
            city=fields.get("city"),
            seller_name=fields.get("seller_name"),
            seller_since=fields.get("seller_since"),
        )

    def _fetch_phone_api(self, ad_id: str, referer: str) -> Optional[str]:
        """呼叫站內電話 API"""
        self._wait_random(1.0, 2.0)
        api_url = self.base_url + PHONE_API_PATH.format(ad_id=ad_id)
        response = self._http_get(api_url, headers={"Accept": "application/json", "Referer": referer})
        phones = (response.json().get("data") or {}).get("phones") or []
        return str(phones[0]).strip() if phones else None

    def _extract_phone(self, url: str, fields: Dict) -> Optional[str]:
        """電話號碼（取不到時返回 None，不視為錯誤）"""
        ad_id = fields.get("ad_id")
        if ad_id:
            try:
                phone = self._fetch_phone_api(ad_id, url)
                if phone:
                    return phone
            except (requests.RequestException, ValueError, AttributeError) as e:
                logger.debug(f"Phone API failed for {ad_id}: {e}")
        return find_phone_in_text(fields.get("scripts", ""))
