#!/usr/bin/env python3
"""
測試 OlxScraper 列表頁擷取
"""
import sys
import os
import unittest
from datetime import datetime
from unittest.mock import patch, MagicMock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hypothesis import given, strategies as st, settings

from core.models import NO_PRICE
from scrapers.olx import selectors
from scrapers.olx.scraper import OlxScraper


FIXTURES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures")
NOW = datetime(2024, 3, 10, 12, 0, 0)


def load_fixture(name: str) -> str:
    with open(os.path.join(FIXTURES_DIR, name), "r", encoding="utf-8") as f:
        return f.read()


def make_card(href="/d/obyavlenie/item-IDabc1.html", title="Товар", price="1 000 ₸",
              location_date="Алматы - Сегодня в 10:00"):
    parts = ['<div data-cy="l-card">']
    if href is not None:
        parts.append(f'<a href="{href}"><div data-cy="ad-card-title"><h4>{title}</h4></div></a>')
    if price is not None:
        parts.append(f'<p data-testid="ad-price">{price}</p>')
    parts.append(f'<p data-testid="location-date">{location_date}</p>')
    parts.append("</div>")
    return "".join(parts)


class TestOlxScraper(unittest.TestCase):
    def setUp(self):
        self.scraper = OlxScraper(base_url="https://www.olx.kz")

    def test_source_name(self):
        self.assertEqual(self.scraper.source_name, "olx_kz")

    def test_get_product_id(self):
        """從 URL 提取 id"""
        url = "https://www.olx.kz/d/obyavlenie/iphone-13-128gb-IDqoTiZ.html"
        self.assertEqual(self.scraper.get_product_id(url), "qoTiZ")

    def test_get_product_id_without_marker(self):
        """沒有 ID 標記時以完整 URL 作為 id"""
        url = "https://www.olx.kz/d/obyavlenie/some-page.html"
        self.assertEqual(self.scraper.get_product_id(url), url)

    def test_extract_listings_keeps_only_fresh(self):
        """三張卡片中只有一張在 24 小時內"""
        listings = self.scraper.extract_listings(load_fixture("listing_page.html"), "phones", now=NOW)

        self.assertEqual(len(listings), 1)
        listing = listings[0]
        self.assertEqual(listing.id, "qoTiZ")
        self.assertEqual(listing.category, "phones")
        self.assertEqual(listing.title, "iPhone 13 128GB")
        self.assertEqual(listing.price, "250 000 ₸")
        self.assertEqual(listing.url, "https://www.olx.kz/d/obyavlenie/iphone-13-128gb-IDqoTiZ.html")
        self.assertEqual(listing.posted_at, datetime(2024, 3, 10, 14, 15))

    def test_relative_url_is_resolved(self):
        markup = make_card(href="/d/obyavlenie/item-IDabc1.html")
        listings = self.scraper.extract_listings(markup, "phones", now=NOW)
        self.assertEqual(listings[0].url, "https://www.olx.kz/d/obyavlenie/item-IDabc1.html")

    def test_card_without_link_is_dropped(self):
        markup = make_card(href=None)
        self.assertEqual(self.scraper.extract_listings(markup, "phones", now=NOW), [])

    def test_card_with_unparseable_date_is_dropped(self):
        markup = make_card(location_date="Алматы - вчера")
        self.assertEqual(self.scraper.extract_listings(markup, "phones", now=NOW), [])

    def test_missing_price_uses_placeholder(self):
        markup = make_card(price=None)
        listings = self.scraper.extract_listings(markup, "phones", now=NOW)
        self.assertEqual(listings[0].price, NO_PRICE)

    def test_duplicate_cards_are_collapsed(self):
        """同一 id 的卡片只保留第一張"""
        markup = make_card(title="A") + make_card(title="B")
        listings = self.scraper.extract_listings(markup, "phones", now=NOW)
        self.assertEqual(len(listings), 1)
        self.assertEqual(listings[0].title, "A")

    def test_no_cards(self):
        self.assertEqual(self.scraper.extract_listings("<html></html>", "phones", now=NOW), [])

    @patch("core.base_scraper.time.sleep")
    def test_scrape_uses_http_get(self, mock_sleep):
        """scrape 會抓取列表頁並擷取商品"""
        response = MagicMock()
        response.status_code = 200
        response.text = make_card(location_date="Сегодня в 00:01")
        with patch.object(self.scraper, "_http_get", return_value=response) as mock_get:
            listings = self.scraper.scrape("https://www.olx.kz/elektronika/", "phones")

        mock_get.assert_called_once()
        self.assertEqual(len(listings), 1)


class TestSelectors(unittest.TestCase):
    def test_card_fields(self):
        soup = selectors.make_soup(load_fixture("listing_page.html"))
        cards = selectors.find_cards(soup)
        self.assertEqual(len(cards), 3)
        self.assertEqual(selectors.card_title(cards[1]), "Samsung Galaxy S21")
        self.assertEqual(selectors.card_price(cards[1]), "180 000 ₸")
        self.assertIsNone(selectors.card_price(cards[2]))

    def test_upgrade_image_url(self):
        url = "https://frankfurt.apollo.olxcdn.com/v1/files/abc-KZ/image;s=216x152"
        self.assertEqual(
            selectors.upgrade_image_url(url),
            "https://frankfurt.apollo.olxcdn.com/v1/files/abc-KZ/image;s=1280x960",
        )

    def test_parse_detail(self):
        soup = selectors.make_soup(load_fixture("detail_page.html"))
        fields = selectors.parse_detail(soup)

        self.assertTrue(fields["is_private_seller"])
        self.assertEqual(
            fields["description"],
            "Телефон в отличном состоянии.\nБатарея 89%.\n\nПолный комплект!",
        )
        self.assertEqual(len(fields["photo_urls"]), 2)
        self.assertTrue(all(u.endswith(";s=1280x960") for u in fields["photo_urls"]))
        self.assertEqual(fields["city"], "Алматы, Бостандыкский район")
        self.assertEqual(fields["seller_name"], "Айгерим")
        self.assertEqual(fields["view_count"], "1234")
        self.assertEqual(fields["ad_id"], "312345678")

    def test_block_page(self):
        soup = selectors.make_soup(load_fixture("blocked_page.html"))
        self.assertTrue(selectors.is_block_page(soup))


# ===== Property-based tests =====

slug_strategy = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-", min_size=1, max_size=30)
token_strategy = st.text(alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789", min_size=1, max_size=12)


@settings(max_examples=100)
@given(slug=slug_strategy, token=token_strategy)
def test_listing_id_from_url(slug, token):
    """
    For any listing URL containing the "-ID<token>.html" marker,
    the derived id is exactly <token>.
    """
    scraper = OlxScraper()
    url = f"https://www.olx.kz/d/obyavlenie/{slug}-ID{token}.html"
    assert scraper.get_product_id(url) == token


@settings(max_examples=100)
@given(slug=slug_strategy)
def test_listing_id_never_empty(slug):
    """
    For any URL, the derived id is never empty.
    """
    scraper = OlxScraper()
    assert scraper.get_product_id(f"https://www.olx.kz/{slug}") != ""


if __name__ == "__main__":
    unittest.main()
