"""
管理指令模組

每輪排程開始前以 getUpdates 讀取未處理的訊息，讓管理者新增 / 刪除分類、匯出資料。
每位管理者有獨立的 OperatorSession（有限狀態機），狀態轉換必須符合轉換表。
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import requests

from .export import build_export_archive
from .links import CategoryError, CategoryLinksStore, validate_uid
from .notifier import TelegramError, TelegramNotifier

logger = logging.getLogger(__name__)


OFFSET_FILE = "telegram_offset.txt"

HELP_TEXT = (
    "📜 Список команд:\n"
    "/start - Активация бота\n"
    "/scraping - Добавить категорию\n"
    "/list - Список категорий\n"
    "/remove <название> - Удалить категорию\n"
    "/get_jsons - Экспорт данных\n"
    "/cancel - Отмена операции"
)


class SessionState(Enum):
    IDLE = "idle"
    AWAITING_NAME = "awaiting_name"
    AWAITING_UID = "awaiting_uid"
    AWAITING_URL = "awaiting_url"


# 允許的狀態轉換
TRANSITIONS = {
    SessionState.IDLE: {SessionState.AWAITING_NAME},
    SessionState.AWAITING_NAME: {SessionState.AWAITING_UID, SessionState.IDLE},
    SessionState.AWAITING_UID: {SessionState.AWAITING_URL, SessionState.IDLE},
    SessionState.AWAITING_URL: {SessionState.IDLE},
}


class InvalidTransition(Exception):
    pass


@dataclass
class OperatorSession:
    """單一管理者的對話狀態"""
    state: SessionState = SessionState.IDLE
    name: Optional[str] = None
    uid: Optional[str] = None

    def transition(self, target: SessionState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {target.value}")
        self.state = target
        if target is SessionState.IDLE:
            self.name = None
            self.uid = None

    def reset(self) -> None:
        self.state = SessionState.IDLE
        self.name = None
        self.uid = None


class CommandHandler:
    """處理管理者文字訊息"""

    def __init__(self, links_store: CategoryLinksStore, notifier: Optional[TelegramNotifier] = None):
        self.links_store = links_store
        self.notifier = notifier
        self.sessions: Dict[str, OperatorSession] = {}

    def session_for(self, chat_id: str) -> OperatorSession:
        return self.sessions.setdefault(str(chat_id), OperatorSession())

    def handle(self, chat_id: str, text: str) -> str:
        """
        處理一則訊息

        Returns:
            要回覆給管理者的文字
        """
        session = self.session_for(chat_id)
        text = (text or "").strip()
        command = text.split(maxsplit=1)[0].lower() if text else ""

        if command == "/cancel":
            session.reset()
            return "🚫 Операция отменена"

        if session.state is SessionState.AWAITING_NAME:
            session.name = text
            session.transition(SessionState.AWAITING_UID)
            return "🔢 Введите UID (латиница, цифры, _-):\nПример: phones_oskemen"

        if session.state is SessionState.AWAITING_UID:
            if text in self.links_store.load_links():
                return "⚠️ Этот UID уже используется!"
            try:
                session.uid = validate_uid(text)
            except CategoryError:
                return "❌ Недопустимый UID!\nПопробуйте снова или /cancel"
            session.transition(SessionState.AWAITING_URL)
            return f"🌐 Введите URL категории:\nПример: https://www.{self.links_store.site_domain}/elektronika/"

        if session.state is SessionState.AWAITING_URL:
            try:
                self.links_store.add(session.name, session.uid, text)
            except CategoryError as e:
                return f"❌ {e}"
            reply = f"✅ Категория добавлена!\nНазвание: {session.name}\nUID: {session.uid}"
            session.transition(SessionState.IDLE)
            return reply

        return self._handle_idle(chat_id, session, command, text)

    def _handle_idle(self, chat_id: str, session: OperatorSession, command: str, text: str) -> str:
        if command == "/start":
            return "🚀 Бот активирован! /help - список команд"
        if command == "/help":
            return HELP_TEXT
        if command in ("/scraping", "/add"):
            session.transition(SessionState.AWAITING_NAME)
            return "📝 Введите название категории:"
        if command == "/list":
            categories = self.links_store.categories()
            if not categories:
                return "Категорий нет"
            return "\n".join(f"• {name} ({uid})" for name, uid in categories.items())
        if command == "/remove":
            parts = text.split(maxsplit=1)
            if len(parts) < 2:
                return "Использование: /remove <название>"
            try:
                self.links_store.remove(parts[1].strip())
            except CategoryError:
                return "❌ Категория не найдена"
            return f"🗑 Категория \"{parts[1].strip()}\" удалена"
        if command == "/get_jsons":
            return self._export(chat_id)
        return "ℹ️ Используйте команды из меню /help"

    def _export(self, chat_id: str) -> str:
        archive = build_export_archive(self.links_store.data_dir)
        if archive is None:
            return "❌ Нет данных для экспорта"
        try:
            if self.notifier is None or not self.notifier.send_document(
                archive, caption="📦 Архив данных:\nlinks, data, found, sent", chat_id=chat_id
            ):
                return "❌ Не удалось создать архив"
        finally:
            os.remove(archive)
        return "📦 Архив отправлен"


def _load_offset(offset_file: str) -> Optional[int]:
    if not os.path.exists(offset_file):
        return None
    try:
        with open(offset_file, "r") as f:
            return int(f.read().strip())
    except (ValueError, OSError):
        return None


def _save_offset(offset_file: str, offset: int) -> None:
    directory = os.path.dirname(offset_file)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(offset_file, "w") as f:
        f.write(str(offset))


def process_commands(
    handler: CommandHandler,
    notifier: TelegramNotifier,
    admin_chat_ids,
    data_dir: str = "data",
) -> int:
    """
    讀取並處理未處理的管理指令，只處理來自管理者 chat 的訊息

    Returns:
        處理的訊息數
    """
    if not notifier.bot_token:
        return 0

    offset_file = os.path.join(data_dir, OFFSET_FILE)
    params = {"timeout": 0}
    offset = _load_offset(offset_file)
    if offset is not None:
        params["offset"] = offset

    try:
        response = requests.get(notifier._api_url("getUpdates"), params=params, timeout=5)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Failed to fetch Telegram updates: {e}")
        return 0

    if not data.get("ok") or not data.get("result"):
        return 0

    allowed = {str(cid) for cid in admin_chat_ids}
    handled = 0
    last_update_id = None

    for update in data["result"]:
        last_update_id = update["update_id"]
        message = update.get("message") or update.get("edited_message")
        if not message:
            continue

        msg_chat_id = str(message["chat"]["id"])
        if msg_chat_id not in allowed:
            continue

        reply = handler.handle(msg_chat_id, message.get("text") or "")
        handled += 1
        try:
            notifier.send_text(reply, chat_id=msg_chat_id, parse_mode=None)
        except (TelegramError, requests.RequestException) as e:
            logger.warning(f"Failed to reply to {msg_chat_id}: {e}")

    if last_update_id is not None:
        _save_offset(offset_file, last_update_id + 1)
    return handled
