"""Telegram Bot API delivery module."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import TelegramConfig

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
SEND_TIMEOUT = 30  # seconds

MAIN_KEYBOARD = {
    "keyboard": [
        [{"text": "/status"}, {"text": "/help"}],
        [{"text": "/create"}],
    ],
    "resize_keyboard": True,
    "one_time_keyboard": False,
}


class TelegramNotifier:
    """Sends messages to and receives updates from a Telegram bot."""

    def __init__(self, config: TelegramConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self._api_url = f"{API_BASE}/bot{config.token}"

    def _call(self, method: str, payload: Dict[str, Any], timeout: float) -> Any:
        response = self.session.post(f"{self._api_url}/{method}", json=payload, timeout=timeout)
        try:
            data = response.json()
        except ValueError:
            data = None
        # Error responses (HTTP 400/403) carry the reason in "description".
        if isinstance(data, dict) and not data.get("ok"):
            description = data.get("description") or f"HTTP {response.status_code}"
            raise RuntimeError(f"Telegram {method} failed: {description}")
        response.raise_for_status()
        if not isinstance(data, dict):
            raise RuntimeError(f"Telegram {method} returned a non-JSON response")
        return data.get("result")

    def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = "HTML",
        button: Optional[Tuple[str, str]] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Send a message to a chat.

        Args:
            chat_id: Target chat.
            text: Message text, already formatted for ``parse_mode``.
            parse_mode: Telegram parse mode, or None for plain text.
            button: Optional ``(label, url)`` shown as an inline link button.
            reply_markup: Explicit reply markup; overrides ``button``.

        Returns:
            True if Telegram accepted the message, False otherwise.
        """
        if not text or not text.strip():
            logger.info("Message is empty; not sending.")
            return False

        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        elif button is not None:
            label, url = button
            payload["reply_markup"] = {"inline_keyboard": [[{"text": label, "url": url}]]}

        try:
            self._call("sendMessage", payload, timeout=SEND_TIMEOUT)
        except Exception as e:
            logger.error(f"Failed to send Telegram message to {chat_id}: {e}")
            return False
        logger.debug(f"Message preview: {text[:50]}...")
        return True

    def get_updates(self, offset: int, timeout: int = 30) -> List[Dict[str, Any]]:
        """
        Long-poll for new bot updates.

        Raises:
            requests.RequestException: On transport or HTTP errors.
            RuntimeError: If Telegram reports a failure, with its description.
        """
        result = self._call(
            "getUpdates",
            {"offset": offset, "timeout": timeout, "allowed_updates": ["message"]},
            timeout=timeout + 10,
        )
        return result or []
