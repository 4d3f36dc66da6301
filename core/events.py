"""
管線事件模組

核心元件不直接寫入輸出，而是透過注入的 observer 發出結構化事件，
測試可以直接檢查發出的事件。
"""

import logging
from typing import Any, Dict, List, Tuple


CYCLE_START = "cycle-start"
CYCLE_END = "cycle-end"
CATEGORY_START = "category-start"
CATEGORY_FAILED = "category-failed"
LISTING_DISCOVERED = "listing-discovered"
LISTING_SUPPRESSED = "listing-suppressed"
ENRICHMENT_DEGRADED = "enrichment-degraded"
DELIVERY_SENT = "delivery-sent"
DELIVERY_RETRIED = "delivery-retried"
DELIVERY_FAILED = "delivery-failed"

_WARNING_EVENTS = {CATEGORY_FAILED, ENRICHMENT_DEGRADED, DELIVERY_RETRIED, DELIVERY_FAILED}


class EventObserver:
    """事件接收者基礎類別（預設不做任何事）"""

    def emit(self, event: str, **fields: Any) -> None:
        pass


class LoggingObserver(EventObserver):
    """將每個事件寫成一筆 log 紀錄"""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger("olx_tracker.events")

    def emit(self, event: str, **fields: Any) -> None:
        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        details = " ".join(f"{key}={value}" for key, value in fields.items())
        self.logger.log(level, f"{event} {details}".rstrip(), extra={"event": event, "fields": fields})


class RecordingObserver(EventObserver):
    """在記憶體中保存事件"""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def count(self, event: str) -> int:
        return self.names().count(event)
