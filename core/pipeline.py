"""
單一分類處理流程

抓取列表頁 -> 新鮮度過濾 -> 合併已發現商品 -> 對每個未發送商品：
擴充詳情 -> 商家過濾 -> 格式化 -> 發送 -> 標記已發送。
分類內的商品依序處理，每次投遞之間隨機等待。
"""

import logging
import random
import time
from typing import Callable, Iterable

from .events import LISTING_DISCOVERED, LISTING_SUPPRESSED, EventObserver
from .formatter import MessageFormatter, should_suppress
from .models import Listing
from .notifier import MESSAGE_LIMIT, TelegramNotifier
from .storage import DedupStore

logger = logging.getLogger(__name__)


SHORT_DESCRIPTION_LIMIT = 1000


class ListingPipeline:
    """分類處理流程"""

    def __init__(
        self,
        scraper,
        enricher,
        formatter: MessageFormatter,
        notifier: TelegramNotifier,
        store: DedupStore,
        business_filter_categories: Iterable[str] = (),
        observer: EventObserver = None,
        sleep: Callable[[float], None] = time.sleep,
        delivery_delay: tuple = (6.0, 10.0),
        dry_run: bool = False,
    ):
        self.scraper = scraper
        self.enricher = enricher
        self.formatter = formatter
        self.notifier = notifier
        self.store = store
        self.business_filter_categories = set(business_filter_categories)
        self.observer = observer or EventObserver()
        self.sleep = sleep
        self.delivery_delay = delivery_delay
        self.dry_run = dry_run

    def process_category(self, name: str, url: str) -> int:
        """
        處理單一分類

        Args:
            name: 分類名稱（uid）
            url: 分類列表頁 URL

        Returns:
            成功發送的商品數

        Raises:
            requests.RequestException: 列表頁抓取失敗（由排程器處理）
        """
        listings = self.scraper.scrape(url, name)
        pending = self.store.merge_discovered(listings)
        logger.info(f"[{name}] Stored {len(listings)} fresh listings, {len(pending)} not sent yet")

        delivered = 0
        for listing in pending:
            self.observer.emit(LISTING_DISCOVERED, id=listing.id, category=name, title=listing.title)
            if self.dry_run:
                continue
            if self.deliver(listing):
                delivered += 1
            self.sleep(random.uniform(*self.delivery_delay))
        return delivered

    def deliver(self, listing: Listing) -> bool:
        """
        擴充、格式化並發送單一商品

        Returns:
            是否已發送（被商家過濾略過的返回 False，但仍會標記為已發送）
        """
        if self.store.is_sent(listing.id):
            return False
        if not self.notifier.is_configured:
            logger.error(f"Delivery target not configured, skipping {listing.id}")
            return False

        detail = self.enricher.enrich(listing.url)

        if should_suppress(listing, detail, self.business_filter_categories):
            logger.info(f"Skipping business seller listing: {listing.title}")
            self.store.mark_sent(listing.id)
            self.observer.emit(LISTING_SUPPRESSED, id=listing.id, category=listing.category)
            return False

        text = self.formatter.format_listing(listing, detail)
        if len(text) > MESSAGE_LIMIT:
            text = self.formatter.format_listing(listing, detail, description_limit=SHORT_DESCRIPTION_LIMIT)

        sent = self.notifier.send_listing(
            listing.id,
            text,
            photo_urls=detail.photo_urls,
            simplified_text=self.formatter.format_simplified(listing),
        )
        if sent:
            self.store.mark_sent(listing.id)
        return sent
