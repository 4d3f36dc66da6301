"""
訊息格式化模組

將 Listing + EnrichedDetail 組成 Telegram 訊息，支援兩種標記語法：
- markdown: Telegram MarkdownV2，固定標點集合需以反斜線跳脫
- html: Telegram HTML，只做標籤安全的跳脫
"""

import html
import re
from typing import Iterable, List, Optional

from .models import EnrichedDetail, Listing


# MarkdownV2 需要跳脫的字元（反斜線本身也必須跳脫）
MARKDOWN_SPECIAL_CHARS = "_*[]()~`>#+-=|{}.!"

VIEWS_UNKNOWN = "неизвестно"
PHONE_UNAVAILABLE = "недоступен"
DEFAULT_DESCRIPTION_LIMIT = 3000

_MARKDOWN_ESCAPE_PATTERN = re.compile("([" + re.escape("\\" + MARKDOWN_SPECIAL_CHARS) + "])")
_INVISIBLE_PATTERN = re.compile("[\u00a0\u200b\u200c\u200d\ufeff]+")
_BLANK_LINES_PATTERN = re.compile(r"\n\s*\n")


def normalize_text(text: str) -> str:
    """移除零寬字元、合併空白並去除首尾空白"""
    text = _INVISIBLE_PATTERN.sub(" ", text or "")
    return re.sub(r"\s+", " ", text).strip()


def escape_markdown(text: str) -> str:
    """正規化空白後，為 MarkdownV2 特殊字元加上反斜線"""
    return _MARKDOWN_ESCAPE_PATTERN.sub(r"\\\1", normalize_text(text))


def escape_html(text: str) -> str:
    return html.escape(normalize_text(text), quote=False)


def collapse_blank_lines(text: str) -> str:
    """將連續空行合併為一行"""
    return _BLANK_LINES_PATTERN.sub("\n\n", text).strip()


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(limit - 1, 0)].rstrip() + "…"


def should_suppress(
    listing: Listing,
    detail: EnrichedDetail,
    business_filter_categories: Iterable[str],
) -> bool:
    """指定分類中的商家（非私人）商品不發送"""
    return listing.category in set(business_filter_categories) and not detail.is_private_seller


class MessageFormatter:
    """Telegram 訊息格式化"""

    def __init__(self, dialect: str = "markdown", description_limit: int = DEFAULT_DESCRIPTION_LIMIT):
        if dialect not in ("markdown", "html"):
            raise ValueError(f"Unknown dialect: {dialect}")
        self.dialect = dialect
        self.description_limit = description_limit

    @property
    def parse_mode(self) -> str:
        return "MarkdownV2" if self.dialect == "markdown" else "HTML"

    def escape(self, text: str) -> str:
        if self.dialect == "markdown":
            return escape_markdown(text)
        return escape_html(text)

    def _link(self, url: str) -> str:
        if self.dialect == "markdown":
            return escape_markdown(url)
        return f'<a href="{html.escape(url, quote=True)}">Открыть объявление</a>'

    def _bold(self, text: str) -> str:
        escaped = self.escape(text)
        if self.dialect == "markdown":
            return f"*{escaped}*"
        return f"<b>{escaped}</b>"

    def format_listing(
        self,
        listing: Listing,
        detail: EnrichedDetail,
        description_limit: Optional[int] = None,
    ) -> str:
        """
        組成完整訊息

        Args:
            listing: 商品
            detail: 詳情頁擴充資料
            description_limit: 描述長度上限（預設使用建構時的設定）

        Returns:
            已跳脫、可直接送出的訊息文字
        """
        limit = self.description_limit if description_limit is None else description_limit
        description = truncate(normalize_text(detail.description), limit)
        seller_type = "Частное лицо ✅" if detail.is_private_seller else "Компания/Бизнес"

        lines: List[str] = [
            f"📌 {self._bold(listing.title)}",
            f"💰 {self.escape(listing.price)}",
            f"👤 {self.escape(seller_type)}",
        ]
        if detail.seller_name:
            lines.append(f"🧑 {self.escape('Продавец: ' + detail.seller_name)}")
        if detail.seller_since:
            lines.append(f"📅 {self.escape(detail.seller_since)}")
        lines.append(f"🕒 {self.escape(listing.posted_display)}")
        if detail.city:
            lines.append(f"📍 {self.escape(detail.city)}")
        lines.append(f"👁 {self.escape('Просмотров: ' + (detail.view_count or VIEWS_UNKNOWN))}")
        lines.append(f"📞 {self.escape('Телефон: ' + (detail.phone or PHONE_UNAVAILABLE))}")
        lines.append("")
        lines.append(f"📝 {self.escape(description)}")
        lines.append("")
        lines.append(f"📷 {self.escape('Фото: ' + str(len(detail.photo_urls)))}")
        lines.append(f"🔗 {self._link(listing.url)}")

        return collapse_blank_lines("\n".join(lines))

    def format_simplified(self, listing: Listing) -> str:
        """限流重試時使用的精簡訊息（只有標題、價格、連結）"""
        lines = [
            f"📌 {self._bold(listing.title)}",
            f"💰 {self.escape(listing.price)}",
            f"🔗 {self._link(listing.url)}",
        ]
        return "\n".join(lines)
