"""
OLX 頁面選擇器轉接層

所有依賴 OLX 版面（data-cy / data-testid / css class）的選擇器都集中在這裡，
網站改版時只需要修改本模組。每個欄位依序嘗試多個候選選擇器。
"""

import re
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag


# ===== 列表頁 =====
CARD_SELECTORS = ['div[data-cy="l-card"]', 'div[data-testid="l-card"]']
CARD_TITLE_SELECTORS = ['div[data-cy="ad-card-title"] h4', '[data-cy="ad-card-title"] h6', 'h4', 'h6']
CARD_PRICE_SELECTORS = ['[data-testid="ad-price"]']
CARD_LOCATION_DATE_SELECTORS = ['p[data-testid="location-date"]']

# ===== 詳情頁 =====
SELLER_TYPE_SELECTORS = [
    'div[data-testid="ad-parameters-container"] p span',
    'div[data-testid="ad-parameters-container"] p',
    'ul[data-testid="ad-parameters"] li',
]
DESCRIPTION_SELECTORS = [
    'div[data-cy="ad_description"] div',
    'div[data-testid="ad_description"] div',
    'div.css-19duwlz',
    'div.css-1o924a9',
]
GALLERY_SELECTORS = [
    'div[data-testid="ad-photo"] img',
    'div[data-cy="adPhotos-swiperSlide"] img',
    'div.swiper-zoom-container img',
]
CITY_SELECTORS = [
    'div[data-testid="map-aside-section"] p',
    'section[data-testid="map-aside-section"] p',
    'p.css-1cju8pu',
]
SELLER_NAME_SELECTORS = [
    '[data-testid="user-profile-user-name"]',
    'a[data-testid="user-profile-link"] h4',
]
SELLER_SINCE_SELECTORS = [
    '[data-testid="member-since"]',
    'p[data-testid="member-since"]',
]
VIEW_COUNT_SELECTORS = ['[data-testid="page-view-counter"]', 'span[data-testid="page-view-text"]']
AD_ID_SELECTORS = ['[data-cy="ad-footer-bar-section"] span', 'div[data-testid="ad-footer-bar-section"] span']

# 渲染時等待的關鍵元素
DETAIL_WAIT_SELECTORS = ['div[data-cy="ad_description"]', 'div[data-testid="ad-parameters-container"]']
VIEW_COUNT_WAIT_SELECTORS = ['[data-testid="page-view-counter"]']

PRIVATE_SELLER_MARKER = "Частное лицо"
BLOCK_PAGE_MARKERS = (
    "attention required",
    "just a moment",
    "access denied",
    "captcha",
    "доступ ограничен",
    "проверка безопасности",
)

_AD_ID_PATTERN = re.compile(r"ID:?\s*(\d+)")
_DIGITS_PATTERN = re.compile(r"\d[\d\s]*")
_IMAGE_SIZE_PATTERN = re.compile(r";s=\d+x\d+")
HIGH_RES_SIZE = ";s=1280x960"


def make_soup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "html.parser")


def _select_first(root: Tag, selectors: List[str]) -> Optional[Tag]:
    for selector in selectors:
        element = root.select_one(selector)
        if element is not None:
            return element
    return None


def _text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return element.get_text(" ", strip=True)


def _first_text(root: Tag, selectors: List[str]) -> Optional[str]:
    for selector in selectors:
        text = _text(root.select_one(selector))
        if text:
            return text
    return None


# ===== 列表頁 =====

def find_cards(soup: BeautifulSoup) -> List[Tag]:
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if cards:
            return cards
    return []


def card_title(card: Tag) -> Optional[str]:
    return _first_text(card, CARD_TITLE_SELECTORS)


def card_price(card: Tag) -> Optional[str]:
    return _first_text(card, CARD_PRICE_SELECTORS)


def card_location_date(card: Tag) -> str:
    return _first_text(card, CARD_LOCATION_DATE_SELECTORS) or ""


def card_link(card: Tag) -> Optional[str]:
    anchor = card.find("a", href=True)
    if anchor is None:
        return None
    href = anchor["href"].strip()
    return href or None


# ===== 詳情頁 =====

def is_block_page(soup: BeautifulSoup) -> bool:
    """頁面標題包含封鎖 / CAPTCHA 字樣時視為被擋"""
    title = _text(soup.title).lower()
    return any(marker in title for marker in BLOCK_PAGE_MARKERS)


def upgrade_image_url(url: str) -> str:
    """將縮圖尺寸參數換成高解析度版本"""
    if _IMAGE_SIZE_PATTERN.search(url):
        return _IMAGE_SIZE_PATTERN.sub(HIGH_RES_SIZE, url)
    return url


def _image_source(img: Tag) -> Optional[str]:
    for attr in ("src", "data-src"):
        value = img.get(attr)
        if value and value.startswith("http"):
            return value
    srcset = img.get("srcset")
    if srcset:
        # srcset 的最後一個候選通常是最大尺寸
        candidate = srcset.split(",")[-1].strip().split(" ")[0]
        if candidate.startswith("http"):
            return candidate
    return None


def gallery_urls(soup: BeautifulSoup, limit: int) -> List[str]:
    """取得去重後的高解析度圖片 URL"""
    urls: List[str] = []
    for selector in GALLERY_SELECTORS:
        for img in soup.select(selector):
            source = _image_source(img)
            if not source:
                continue
            upgraded = upgrade_image_url(source)
            if upgraded not in urls:
                urls.append(upgraded)
            if len(urls) >= limit:
                return urls
        if urls:
            break
    return urls


def description_text(element: Optional[Tag]) -> Optional[str]:
    """將描述區塊轉為純文字（<br> 換行、移除標籤）"""
    if element is None:
        return None
    for br in element.find_all("br"):
        br.replace_with("\n")
    text = element.get_text()
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text).strip()
    return text or None


def seller_is_private(soup: BeautifulSoup) -> bool:
    for selector in SELLER_TYPE_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            return PRIVATE_SELLER_MARKER in _text(element)
    return False


def view_count(soup: BeautifulSoup) -> Optional[str]:
    text = _first_text(soup, VIEW_COUNT_SELECTORS)
    if not text:
        return None
    match = _DIGITS_PATTERN.search(text)
    return re.sub(r"\s", "", match.group(0)) if match else None


def site_ad_id(soup: BeautifulSoup) -> Optional[str]:
    """頁尾 "ID: 123456789" 中的站內數字 id"""
    for selector in AD_ID_SELECTORS:
        for element in soup.select(selector):
            match = _AD_ID_PATTERN.search(_text(element))
            if match:
                return match.group(1)
    return None


def script_text(soup: BeautifulSoup) -> str:
    return "\n".join(script.string or "" for script in soup.find_all("script"))


def parse_detail(soup: BeautifulSoup, photo_limit: int = 10) -> Dict:
    """
    從詳情頁（靜態或渲染後）擷取所有欄位

    Returns:
        欄位字典：is_private_seller, description, photo_urls, city,
        seller_name, seller_since, view_count, ad_id, scripts
    """
    return {
        "is_private_seller": seller_is_private(soup),
        "description": description_text(_select_first(soup, DESCRIPTION_SELECTORS)),
        "photo_urls": gallery_urls(soup, photo_limit),
        "city": _first_text(soup, CITY_SELECTORS),
        "seller_name": _first_text(soup, SELLER_NAME_SELECTORS),
        "seller_since": _first_text(soup, SELLER_SINCE_SELECTORS),
        "view_count": view_count(soup),
        "ad_id": site_ad_id(soup),
        "scripts": script_text(soup),
    }
