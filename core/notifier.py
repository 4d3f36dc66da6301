"""
通知服務模組

透過 Telegram Bot API 發送商品通知：
- 最多 5 張圖片以 media group 發送（說明文字只放在第一張）
- 沒有成功下載的圖片或 media group 失敗時，改為純文字訊息
- 收到 429 時依 retry_after 等待，再以精簡訊息重試一次
"""

import json
import logging
import os
import random
import time
from typing import List, Optional

import requests

from .events import DELIVERY_FAILED, DELIVERY_RETRIED, DELIVERY_SENT, EventObserver

logger = logging.getLogger(__name__)


API_BASE = "https://api.telegram.org"
MAX_ATTACHMENTS = 5
CAPTION_LIMIT = 1024
MESSAGE_LIMIT = 4096
DEFAULT_RETRY_AFTER = 30


class TelegramError(Exception):
    """Telegram API 回傳錯誤"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(TelegramError):
    """Telegram API 限流（HTTP 429）"""

    def __init__(self, retry_after: int = DEFAULT_RETRY_AFTER, message: str = "Too Many Requests"):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class TelegramNotifier:
    """Telegram 通知服務"""

    def __init__(
        self,
        bot_token: str = None,
        chat_id: str = None,
        parse_mode: str = "MarkdownV2",
        observer: EventObserver = None,
    ):
        self.bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN")
        self.chat_id = chat_id or os.getenv("TARGET_CHAT_ID")
        self.parse_mode = parse_mode
        self.observer = observer or EventObserver()

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def _api_url(self, method: str) -> str:
        return f"{API_BASE}/bot{self.bot_token}/{method}"

    def _post(self, method: str, data: dict, files: dict = None, timeout: int = 30) -> dict:
        """
        呼叫 Bot API

        Raises:
            RateLimitError: 回應為 429
            TelegramError: 其他非成功回應
            requests.RequestException: 網路錯誤
        """
        if files:
            response = requests.post(self._api_url(method), data=data, files=files, timeout=timeout)
        else:
            response = requests.post(self._api_url(method), json=data, timeout=timeout)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code == 429:
            retry_after = (payload.get("parameters") or {}).get("retry_after")
            if retry_after is None:
                header = response.headers.get("Retry-After", "")
                retry_after = int(header) if header.isdigit() else DEFAULT_RETRY_AFTER
            raise RateLimitError(int(retry_after), payload.get("description", "Too Many Requests"))

        if response.status_code >= 400 or not payload.get("ok", False):
            raise TelegramError(
                payload.get("description") or f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return payload

    def send_text(self, text: str, chat_id: str = None, parse_mode: Optional[str] = "") -> dict:
        """發送純文字訊息（parse_mode 預設沿用建構時的設定，None 表示不解析）"""
        data = {
            "chat_id": chat_id or self.chat_id,
            "text": text[:MESSAGE_LIMIT],
            "disable_web_page_preview": True,
        }
        mode = self.parse_mode if parse_mode == "" else parse_mode
        if mode:
            data["parse_mode"] = mode
        return self._post("sendMessage", data)

    def send_media_group(self, photos: List[bytes], caption: str = "") -> dict:
        """以 media group 發送已下載的圖片，說明文字只放在第一張"""
        media = []
        files = {}
        for index, content in enumerate(photos[:MAX_ATTACHMENTS]):
            name = f"photo{index}"
            item = {"type": "photo", "media": f"attach://{name}"}
            if index == 0 and caption:
                item["caption"] = caption
                item["parse_mode"] = self.parse_mode
            media.append(item)
            files[name] = (f"{name}.jpg", content, "image/jpeg")

        data = {"chat_id": self.chat_id, "media": json.dumps(media, ensure_ascii=False)}
        return self._post("sendMediaGroup", data, files=files, timeout=60)

    def send_document(self, path: str, caption: str = "", chat_id: str = None) -> bool:
        """
        發送本地檔案

        Args:
            path: 檔案路徑
            caption: 說明文字（純文字）
            chat_id: 目標 chat，預設為設定的 chat

        Returns:
            是否發送成功
        """
        try:
            with open(path, "rb") as document:
                files = {"document": (os.path.basename(path), document)}
                data = {"chat_id": chat_id or self.chat_id, "caption": caption}
                self._post("sendDocument", data, files=files, timeout=60)
            return True
        except FileNotFoundError:
            logger.error(f"Document not found: {path}")
            return False
        except (TelegramError, requests.RequestException) as e:
            logger.error(f"Failed to send document: {e}")
            return False

    def download_photos(self, photo_urls: List[str], limit: int = MAX_ATTACHMENTS) -> List[bytes]:
        """下載圖片，失敗的略過"""
        photos = []
        for url in photo_urls[:limit]:
            try:
                time.sleep(random.uniform(0.3, 1.0))
                response = requests.get(url, timeout=15)
                response.raise_for_status()
                if response.content:
                    photos.append(response.content)
            except requests.RequestException as e:
                logger.warning(f"Failed to download photo {url}: {e}")
        return photos

    def _send_full(self, text: str, photo_urls: List[str]) -> str:
        """
        發送完整訊息，返回實際使用的方式（"media_group" 或 "text"）

        RateLimitError 會向上拋出，由 send_listing 處理。
        """
        photos = self.download_photos(photo_urls) if photo_urls else []
        album_sent = False
        if photos:
            try:
                if len(text) <= CAPTION_LIMIT:
                    self.send_media_group(photos, caption=text)
                    return "media_group"
                self.send_media_group(photos)
                album_sent = True
            except RateLimitError:
                raise
            except (TelegramError, requests.RequestException) as e:
                logger.warning(f"Media group failed, falling back to text: {e}")

        if not album_sent:
            self.send_text(text)
            return "text"

        # 圖片已送出，文字失敗時不重送整則通知
        try:
            self.send_text(text)
        except RateLimitError:
            raise
        except (TelegramError, requests.RequestException) as e:
            logger.warning(f"Text after media group failed, keeping album only: {e}")
            return "media_group_partial"
        return "media_group+text"

    def send_listing(
        self,
        listing_id: str,
        text: str,
        photo_urls: List[str] = None,
        simplified_text: str = None,
    ) -> bool:
        """
        發送商品通知

        Args:
            listing_id: 商品 id（僅用於事件紀錄）
            text: 完整訊息
            photo_urls: 圖片 URL 列表（最多使用前 5 張）
            simplified_text: 限流重試時使用的精簡訊息

        Returns:
            是否發送成功（包含限流後重試成功）
        """
        if not self.is_configured:
            logger.error("TELEGRAM_BOT_TOKEN or TARGET_CHAT_ID is not set, skipping delivery")
            self.observer.emit(DELIVERY_FAILED, id=listing_id, reason="not-configured")
            return False

        try:
            mode = self._send_full(text, photo_urls or [])
            self.observer.emit(DELIVERY_SENT, id=listing_id, mode=mode)
            return True
        except RateLimitError as e:
            return self._retry_after_rate_limit(listing_id, e.retry_after, simplified_text or text)
        except (TelegramError, requests.RequestException) as e:
            self.observer.emit(DELIVERY_FAILED, id=listing_id, reason=str(e))
            return False

    def _retry_after_rate_limit(self, listing_id: str, retry_after: int, text: str) -> bool:
        self.observer.emit(DELIVERY_RETRIED, id=listing_id, retry_after=retry_after)
        time.sleep(retry_after)
        try:
            self.send_text(text)
        except (TelegramError, requests.RequestException) as e:
            self.observer.emit(DELIVERY_FAILED, id=listing_id, reason=f"retry failed: {e}")
            return False
        self.observer.emit(DELIVERY_SENT, id=listing_id, mode="simplified")
        return True
