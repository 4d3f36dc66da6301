#!/usr/bin/env python3
"""
OLX 分類監控主程式

每隔固定間隔抓取所有分類的列表頁，將新的商品擴充詳情後發送到 Telegram。
每輪開始前先處理管理者的 Telegram 指令（新增 / 刪除分類、匯出資料）。
"""
import argparse
import logging
import os
import sys
from datetime import timedelta

from dotenv import load_dotenv

from core.commands import CommandHandler, process_commands
from core.config import Settings, load_settings
from core.events import LoggingObserver
from core.formatter import MessageFormatter
from core.links import CategoryLinksStore
from core.notifier import TelegramNotifier
from core.pipeline import ListingPipeline
from core.scheduler import PeriodicScheduler, SCHEDULE_FILE, get_last_run_time
from core.storage import DedupStore
from scrapers.olx import OlxDetailEnricher, OlxScraper

# 載入 .env 檔案
load_dotenv()

logger = logging.getLogger("olx_tracker")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_scheduler(settings: Settings, dry_run: bool = False) -> PeriodicScheduler:
    """依設定組裝所有元件"""
    observer = LoggingObserver()
    formatter = MessageFormatter(settings.message_format)
    notifier = TelegramNotifier(
        bot_token=settings.bot_token,
        chat_id=settings.target_chat_id,
        parse_mode=formatter.parse_mode,
        observer=observer,
    )
    links_store = CategoryLinksStore(settings.data_dir, site_domain=settings.site_domain)
    scraper = OlxScraper(
        base_url=settings.base_url,
        tz_offset_hours=settings.tz_offset_hours,
        freshness=timedelta(hours=settings.freshness_hours),
        headless=settings.headless,
    )
    enricher = OlxDetailEnricher(
        base_url=settings.base_url,
        headless=settings.headless,
        fetch_view_count=settings.fetch_view_count,
        fetch_phone=settings.fetch_phone,
        observer=observer,
    )
    pipeline = ListingPipeline(
        scraper,
        enricher,
        formatter,
        notifier,
        DedupStore(settings.data_dir),
        business_filter_categories=settings.business_filter_categories,
        observer=observer,
        dry_run=dry_run,
    )

    handler = CommandHandler(links_store, notifier)

    def poll_commands():
        process_commands(handler, notifier, settings.admin_chat_ids, data_dir=settings.data_dir)

    return PeriodicScheduler(
        links_store,
        pipeline,
        interval_seconds=settings.interval_seconds,
        observer=observer,
        before_cycle=None if dry_run else poll_commands,
    )


def show_status(settings: Settings) -> None:
    """顯示排程狀態"""
    store = DedupStore(settings.data_dir)
    links = CategoryLinksStore(settings.data_dir, site_domain=settings.site_domain).load_links()

    print("\n=== OLX tracker status ===")
    print(f"Interval: {settings.interval_seconds} seconds")
    print(f"Categories: {len(links)}")
    print(f"Discovered listings: {len(store.discovered)}")
    print(f"Sent listings: {len(store.sent_ids)}")

    last_run = get_last_run_time(os.path.join(settings.data_dir, SCHEDULE_FILE))
    if last_run:
        print(f"Last run: {last_run.strftime('%Y-%m-%d %H:%M:%S')}")
    else:
        print("Last run: Never")
    print(f"Telegram configured: {'Yes' if settings.bot_token and settings.target_chat_id else 'No'}")


def list_categories(settings: Settings) -> None:
    """列出所有分類"""
    store = CategoryLinksStore(settings.data_dir, site_domain=settings.site_domain)
    names = {uid: name for name, uid in store.categories().items()}
    links = store.load_links()
    if not links:
        print("No categories configured")
        return
    print("Categories:")
    for uid, url in links.items():
        print(f"  - {names.get(uid, uid)} ({uid}): {url}")


def main():
    """主程式"""
    parser = argparse.ArgumentParser(
        description="OLX 分類監控",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
範例:
  %(prog)s                 # 持續執行（每隔設定的間隔一輪）
  %(prog)s --once          # 只執行一輪
  %(prog)s --dry-run       # 測試模式（不發送通知，不標記已發送）
  %(prog)s --status        # 顯示狀態
  %(prog)s --list          # 列出所有分類
        """
    )
    parser.add_argument(
        "--config", "-c",
        default="config/settings.json",
        help="設定檔路徑（可選）"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="只執行一輪後結束"
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="以有頭模式運行瀏覽器（用於除錯）"
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="測試模式，不發送通知"
    )
    parser.add_argument(
        "--status", "-s",
        action="store_true",
        help="顯示排程狀態"
    )
    parser.add_argument(
        "--list", "-l",
        action="store_true",
        help="列出所有分類"
    )

    args = parser.parse_args()

    try:
        settings = load_settings(args.config)
    except (ValueError, OSError) as e:
        print(f"Error loading settings: {e}")
        return 1

    if args.headed:
        settings.headless = False
    setup_logging(settings.log_level)

    if args.list:
        list_categories(settings)
        return 0

    if args.status:
        show_status(settings)
        return 0

    if not args.dry_run and not (settings.bot_token and settings.target_chat_id):
        logger.warning("TELEGRAM_BOT_TOKEN or TARGET_CHAT_ID is not set, listings will be collected but not delivered")

    scheduler = build_scheduler(settings, dry_run=args.dry_run)
    logger.info(f"Starting OLX tracker, interval {settings.interval_seconds}s")
    try:
        scheduler.run_forever(max_cycles=1 if args.once else None)
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    finally:
        scheduler.pipeline.scraper.close()
        scheduler.pipeline.enricher.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
