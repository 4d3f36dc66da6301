"""
爬蟲基礎類別模組

定義所有網站爬蟲的共用行為，包括：
- User-Agent 輪換與仿瀏覽器請求標頭
- 輕量 HTTP 抓取（requests）
- 可執行頁面腳本的渲染抓取（Playwright，含基本反自動化偵測）
- 隨機等待與重試延遲計算
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

import requests
from playwright.sync_api import sync_playwright, Page, Browser, BrowserContext, Playwright
from playwright.sync_api import Error as PlaywrightError

logger = logging.getLogger(__name__)


# 隱藏自動化特徵的初始化腳本
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['ru-RU', 'ru', 'en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = { runtime: {} };
"""


class BaseScraper(ABC):
    """
    爬蟲基礎類別

    子類別實作 source_name，並使用 _http_get / _render_page 取得頁面。
    """

    # 預設 User-Agent 列表，用於輪換以避免被封鎖
    DEFAULT_USER_AGENTS = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    ]

    # 預設重試設定
    DEFAULT_RETRY_DELAY_BASE = 5  # 秒
    REQUEST_TIMEOUT = 15  # 秒
    NAVIGATION_TIMEOUT_MS = 30000
    ELEMENT_TIMEOUT_MS = 10000

    def __init__(
        self,
        headless: bool = True,
        user_agents: Optional[List[str]] = None,
        referer: str = "https://www.google.com/",
    ):
        """
        初始化爬蟲

        Args:
            headless: 是否以無頭模式運行瀏覽器
            user_agents: 自訂 User-Agent 列表，若為 None 則使用預設列表
            referer: 請求標頭中的 Referer
        """
        self.headless = headless
        self.user_agents = user_agents or self.DEFAULT_USER_AGENTS.copy()
        self.referer = referer
        self.session = requests.Session()

        # 瀏覽器相關實例（延遲初始化）
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

        # 當前使用的 User-Agent
        self._current_user_agent: Optional[str] = None

    @property
    @abstractmethod
    def source_name(self) -> str:
        """
        返回來源名稱，例如 'olx_kz'
        """
        pass

    def _get_user_agent(self) -> str:
        """隨機選擇一個 User-Agent"""
        self._current_user_agent = random.choice(self.user_agents)
        return self._current_user_agent

    def _rotate_user_agent(self) -> str:
        """選擇一個與當前不同的 User-Agent（如果可能）"""
        if len(self.user_agents) <= 1:
            return self._get_user_agent()

        available = [ua for ua in self.user_agents if ua != self._current_user_agent]
        self._current_user_agent = random.choice(available)
        return self._current_user_agent

    def _build_headers(self, accept_language: str = "ru-RU,ru;q=0.8,en-US;q=0.5,en;q=0.3") -> Dict[str, str]:
        """建立仿瀏覽器的請求標頭"""
        return {
            "User-Agent": self._rotate_user_agent(),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": accept_language,
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Referer": self.referer,
        }

    def _http_get(self, url: str, **kwargs) -> requests.Response:
        """
        以輕量方式抓取頁面

        Raises:
            requests.RequestException: 網路錯誤、逾時或非 2xx 回應
        """
        headers = self._build_headers()
        headers.update(kwargs.pop("headers", {}))
        response = self.session.get(
            url,
            headers=headers,
            timeout=kwargs.pop("timeout", self.REQUEST_TIMEOUT),
            **kwargs,
        )
        response.raise_for_status()
        return response

    def _init_browser(self) -> None:
        """
        初始化瀏覽器

        啟動 Chromium，關閉自動化旗標並注入 stealth 腳本。
        """
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-sandbox",
            ],
        )
        self._context = self._browser.new_context(
            user_agent=self._get_user_agent(),
            viewport={"width": random.randint(1280, 1920), "height": random.randint(720, 1080)},
            locale="ru-RU",
        )
        self._context.add_init_script(STEALTH_JS)
        self._page = self._context.new_page()

    def _close_browser(self) -> None:
        """依序關閉頁面、上下文、瀏覽器和 Playwright 實例"""
        for attr, closer in (
            ("_page", "close"),
            ("_context", "close"),
            ("_browser", "close"),
            ("_playwright", "stop"),
        ):
            instance = getattr(self, attr)
            if instance is None:
                continue
            try:
                getattr(instance, closer)()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error while closing {attr}: {e}")
            setattr(self, attr, None)

    def _render_page(self, url: str, wait_selectors: Sequence[str] = ()) -> str:
        """
        以瀏覽器渲染頁面並返回 DOM 快照

        每次呼叫都會開啟並關閉瀏覽器。等待元素逾時不視為失敗。

        Raises:
            playwright.sync_api.Error: 導覽失敗或逾時
        """
        try:
            self._init_browser()
            self._page.goto(url, wait_until="domcontentloaded", timeout=self.NAVIGATION_TIMEOUT_MS)
            for selector in wait_selectors:
                try:
                    self._page.wait_for_selector(selector, timeout=self.ELEMENT_TIMEOUT_MS)
                except PlaywrightError:
                    logger.debug(f"Selector not found within timeout: {selector}")
            self._page.evaluate("window.scrollTo(0, document.body.scrollHeight / 2)")
            self._wait_random(1.0, 2.0)
            return self._page.content()
        finally:
            self._close_browser()

    def _wait_random(self, min_seconds: float = 1.0, max_seconds: float = 3.0) -> None:
        """隨機等待一段時間，模擬人類行為"""
        time.sleep(random.uniform(min_seconds, max_seconds))

    def _calculate_retry_delay(self, attempt: int) -> float:
        """
        計算重試延遲時間（隨次數遞增並加上抖動）

        Args:
            attempt: 當前重試次數（從 0 開始）
        """
        base_delay = self.DEFAULT_RETRY_DELAY_BASE * (attempt + 1)
        jitter = random.uniform(0, base_delay * 0.5)
        return base_delay + jitter

    def close(self) -> None:
        self._close_browser()
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
