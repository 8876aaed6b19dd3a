"""Chat commands: status, help and issue creation from Telegram."""

import logging
import threading
from typing import Any, Dict, Optional

from .config import AppConfig
from .poller import OPEN_BUTTON_LABEL, PollerState
from .renderer import escape_html, issue_url, render_issue_created
from .telegram_notifier import MAIN_KEYBOARD, TelegramNotifier
from .youtrack_client import IssueCreationFailed, YouTrackClient

logger = logging.getLogger(__name__)

ERROR_BACKOFF_SECONDS = 2
UPDATES_TIMEOUT = 30


def _command_token(text: str) -> str:
    """Return the bare command name: "/create@MyBot foo" -> "/create"."""
    token = text.split(maxsplit=1)[0] if text.strip() else ""
    return token.split("@", 1)[0].lower()


def _command_args(text: str) -> str:
    parts = text.split(maxsplit=1)
    return parts[1].strip() if len(parts) > 1 else ""


class CommandHandler:
    """Handles messages sent to the bot from the configured chat."""

    def __init__(
        self,
        config: AppConfig,
        client: YouTrackClient,
        notifier: TelegramNotifier,
        state: PollerState,
    ):
        self.config = config
        self.client = client
        self.notifier = notifier
        self.state = state
        self.chat_id = config.telegram.chat_id

    def _reply(self, text: str, **kwargs) -> bool:
        return self.notifier.send_message(self.chat_id, text, **kwargs)

    def handle_message(self, message: Dict[str, Any]) -> None:
        chat = message.get("chat") or {}
        if chat.get("id") != self.chat_id:
            logger.debug(f"Ignoring message from chat {chat.get('id')}")
            return

        text = (message.get("text") or "").strip()
        if not text:
            return

        if not text.startswith("/"):
            if self.state.consume_awaiting_summary():
                self.create_issue(text)
            return

        command = _command_token(text)
        if command == "/start":
            self.cmd_start()
        elif command == "/help":
            self.cmd_help()
        elif command == "/status":
            self.cmd_status()
        elif command == "/create":
            self.cmd_create(_command_args(text))
        else:
            logger.debug(f"Unknown command {command}")

    def cmd_start(self) -> None:
        self._reply(
            "<b>YouTrack Telegram Bot</b>\n\n"
            "Automatic notifications from YouTrack and issue creation.\n\n"
            "Commands: /help",
            reply_markup=MAIN_KEYBOARD,
        )

    def cmd_help(self) -> None:
        self._reply(
            "<b>Commands:</b>\n"
            "/create &lt;text&gt; - create an issue\n"
            "/status - bot statistics\n\n"
            "<b>Example:</b>\n"
            "/create Fix login button bug\n\n"
            f"YouTrack: <code>{escape_html(self.config.tracker.base_url)}</code>\n"
            f"Poll interval: {self.config.polling.interval_seconds}s"
        )

    def cmd_status(self) -> None:
        snapshot = self.state.snapshot()
        self._reply(
            "<b>Status</b>\n\n"
            f"YouTrack: <code>{escape_html(self.config.tracker.base_url)}</code>\n"
            f"Notifications sent: {snapshot.sent_count}\n"
            f"Poll interval: {self.config.polling.interval_seconds}s"
        )

    def cmd_create(self, summary: str) -> None:
        if not summary:
            self.state.set_awaiting_summary(True)
            self._reply("Please enter the issue summary:")
            return
        self.state.set_awaiting_summary(False)
        self.create_issue(summary)

    def create_issue(self, summary: str, description: Optional[str] = None) -> Optional[str]:
        """Create an issue and report the outcome to the chat."""
        summary = summary.strip()
        if not summary:
            return None
        try:
            issue_id = self.client.create_issue(self.config.tracker.project_id, summary, description)
        except IssueCreationFailed as e:
            logger.error(f"Issue creation failed: {e}")
            self._reply(f"Failed to create issue: {escape_html(str(e))}")
            return None

        self._reply(
            render_issue_created(issue_id, summary, description),
            button=(OPEN_BUTTON_LABEL, issue_url(self.config.tracker.base_url, issue_id)),
        )
        return issue_id


class CommandListener:
    """Long-polls Telegram for updates and dispatches them to a CommandHandler."""

    def __init__(
        self,
        notifier: TelegramNotifier,
        handler: CommandHandler,
        shutdown_event: Optional[threading.Event] = None,
    ):
        self.notifier = notifier
        self.handler = handler
        self.offset = 0
        self._shutdown_event = shutdown_event or threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> int:
        """Fetch and dispatch one batch of updates. Returns the batch size."""
        updates = self.notifier.get_updates(self.offset, timeout=UPDATES_TIMEOUT)
        for update in updates:
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self.offset = max(self.offset, update_id + 1)
            message = update.get("message")
            if not message:
                continue
            try:
                self.handler.handle_message(message)
            except Exception as e:
                logger.error(f"Error handling update {update_id}: {e}", exc_info=True)
        return len(updates)

    def run(self) -> None:
        logger.info("Command listener started")
        while not self._shutdown_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.warning(f"Update poll error: {e}")
                self._shutdown_event.wait(ERROR_BACKOFF_SECONDS)

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name="command-listener", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        self._shutdown_event.set()
