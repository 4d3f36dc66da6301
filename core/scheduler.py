"""
排程模組

PeriodicScheduler 只有兩個狀態：Idle -> Running -> Idle。
啟動後立即執行一輪，完成後等待固定間隔再開始下一輪。
時鐘與 sleep 可注入，測試時不需要真的等待。

上次完成一輪的時間記錄在 schedule_state.json。
"""

import logging
import os
import random
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from .events import CATEGORY_FAILED, CATEGORY_START, CYCLE_END, CYCLE_START, EventObserver
from .storage import load_json_file, save_json_file

logger = logging.getLogger(__name__)


SCHEDULE_FILE = "schedule_state.json"
DEFAULT_INTERVAL_SECONDS = 120


def get_last_run_time(schedule_file: str) -> Optional[datetime]:
    """
    取得上次完成一輪的時間

    Returns:
        Optional[datetime]: 若無記錄則返回 None
    """
    state = load_json_file(schedule_file, {}, lambda data: isinstance(data, dict))
    last_run_str = state.get("last_run_time")
    if last_run_str:
        try:
            return datetime.fromisoformat(last_run_str)
        except (TypeError, ValueError):
            return None
    return None


def record_run_time(schedule_file: str, run_time: Optional[datetime] = None) -> None:
    """記錄完成一輪的時間，預設為當前時間"""
    if run_time is None:
        run_time = datetime.now()
    save_json_file(schedule_file, {"last_run_time": run_time.isoformat()})


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class PeriodicScheduler:
    """週期性處理所有分類"""

    def __init__(
        self,
        links_store,
        pipeline,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        observer: EventObserver = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.now,
        before_cycle: Optional[Callable[[], None]] = None,
        category_delay: tuple = (3.5, 13.5),
        failure_delay: tuple = (4.0, 8.5),
    ):
        """
        Args:
            links_store: 提供 load_links() 的分類連結來源
            pipeline: 提供 process_category(name, url) 的處理流程
            interval_seconds: 兩輪之間的等待秒數
            observer: 事件接收者
            sleep: 等待函數
            clock: 取得當前時間的函數
            before_cycle: 每輪開始前呼叫（例如處理管理指令）
            category_delay: 分類之間的隨機等待範圍
            failure_delay: 分類失敗後的隨機等待範圍
        """
        self.links_store = links_store
        self.pipeline = pipeline
        self.interval_seconds = interval_seconds
        self.observer = observer or EventObserver()
        self.sleep = sleep
        self.clock = clock
        self.before_cycle = before_cycle
        self.category_delay = category_delay
        self.failure_delay = failure_delay
        self.state = SchedulerState.IDLE
        self.cycles_completed = 0
        self.schedule_file = os.path.join(getattr(links_store, "data_dir", "data"), SCHEDULE_FILE)

    def run_cycle(self) -> Dict[str, int]:
        """
        執行一輪：依序處理每個分類

        Returns:
            分類名稱 -> 成功發送數（失敗的分類不在結果中）

        Raises:
            RuntimeError: 已經在執行中
        """
        if self.state is SchedulerState.RUNNING:
            raise RuntimeError("Scheduler cycle already running")
        self.state = SchedulerState.RUNNING
        started = self.clock()
        results: Dict[str, int] = {}
        try:
            self.observer.emit(CYCLE_START, at=started.isoformat())
            if self.before_cycle is not None:
                try:
                    self.before_cycle()
                except Exception as e:
                    logger.exception(f"Pre-cycle hook failed: {e}")

            links = self.links_store.load_links()
            if not links:
                logger.warning("No category links configured")

            for name, url in links.items():
                self.observer.emit(CATEGORY_START, category=name, url=url)
                try:
                    results[name] = self.pipeline.process_category(name, url)
                    self.sleep(random.uniform(*self.category_delay))
                except Exception as e:
                    logger.error(f"Error processing {name}: {e}")
                    self.observer.emit(CATEGORY_FAILED, category=name, error=repr(e))
                    self.sleep(random.uniform(*self.failure_delay))

            record_run_time(self.schedule_file, self.clock())
            self.cycles_completed += 1
            self.observer.emit(CYCLE_END, categories=len(links), delivered=sum(results.values()))
        finally:
            self.state = SchedulerState.IDLE
        return results

    def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """
        立即執行一輪，之後每隔 interval_seconds 再執行

        Args:
            max_cycles: 最多執行幾輪（None 表示不停止）
        """
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            try:
                self.run_cycle()
            except Exception as e:
                logger.exception(f"Scraping cycle failed: {e}")
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            self.sleep(self.interval_seconds)
