"""Poll loop relaying tracker notifications and issue updates to Telegram."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import AppConfig
from .dedup import DedupCache
from .renderer import issue_url, render_issue, render_notification
from .telegram_notifier import TelegramNotifier
from .youtrack_client import YouTrackClient

logger = logging.getLogger(__name__)

OPEN_BUTTON_LABEL = "Open in YouTrack"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class StatusSnapshot:
    sent_count: int
    seen_ids: int
    last_issue_check_ms: int


class PollerState:
    """
    Mutable relay state shared by the poll loop and the command listener.

    Every read and write goes through the methods below, which hold a lock.
    """

    def __init__(self, dedup_max_size: int, last_issue_check_ms: int):
        self._lock = threading.Lock()
        self._dedup = DedupCache(dedup_max_size)
        self._last_issue_check_ms = last_issue_check_ms
        self._sent_count = 0
        self._awaiting_issue_summary = False

    def mark_seen(self, notification_id: str) -> bool:
        with self._lock:
            return self._dedup.add(notification_id)

    def evict_seen(self) -> bool:
        with self._lock:
            return self._dedup.evict_if_needed()

    @property
    def last_issue_check_ms(self) -> int:
        with self._lock:
            return self._last_issue_check_ms

    def advance_issue_cursor(self, cycle_start_ms: int) -> None:
        with self._lock:
            self._last_issue_check_ms = cycle_start_ms

    def record_sent(self) -> None:
        with self._lock:
            self._sent_count += 1

    def set_awaiting_summary(self, awaiting: bool) -> None:
        with self._lock:
            self._awaiting_issue_summary = awaiting

    def consume_awaiting_summary(self) -> bool:
        """Return whether a summary was awaited, clearing the flag."""
        with self._lock:
            awaiting = self._awaiting_issue_summary
            self._awaiting_issue_summary = False
            return awaiting

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(
                sent_count=self._sent_count,
                seen_ids=len(self._dedup),
                last_issue_check_ms=self._last_issue_check_ms,
            )


class RelayPoller:
    """
    Periodically relays new notifications and updated issues.

    Attributes:
        client: YouTrack API client
        notifier: Telegram delivery
        state: Shared relay state
        interval: Seconds to sleep between cycles
    """

    def __init__(
        self,
        config: AppConfig,
        client: YouTrackClient,
        notifier: TelegramNotifier,
        state: PollerState,
        clock: Callable[[], int] = now_ms,
        shutdown_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.client = client
        self.notifier = notifier
        self.state = state
        self.interval = config.polling.interval_seconds
        self._clock = clock
        self._shutdown_event = shutdown_event or threading.Event()

    def _deliver(self, text: str, issue_id: str) -> bool:
        link = issue_url(self.config.tracker.base_url, issue_id)
        delivered = self.notifier.send_message(
            self.config.telegram.chat_id,
            text,
            button=(OPEN_BUTTON_LABEL, link),
        )
        if delivered:
            self.state.record_sent()
        else:
            logger.warning(f"Delivery failed for {issue_id}")
        return delivered

    def run_cycle(self) -> int:
        """
        Run one poll cycle.

        Returns:
            Number of messages delivered.

        Raises:
            TrackerUnavailable: If a fetch fails; the issue cursor is then
                left where it was.
        """
        cycle_start_ms = self._clock()
        delivered = 0

        notifications = self.client.fetch_notifications()
        for notification in notifications:
            if not self.state.mark_seen(notification.id):
                continue
            issue_id = notification.metadata.issue_id or notification.id
            if self._deliver(render_notification(notification), issue_id):
                delivered += 1

        try:
            issues = self.client.fetch_recent_issues(self.state.last_issue_check_ms)
            for issue in issues:
                if self._deliver(render_issue(issue), issue.id):
                    delivered += 1
            self.state.advance_issue_cursor(cycle_start_ms)
        finally:
            # Ids marked above count toward the bound even if the issue fetch fails.
            self.state.evict_seen()

        logger.info(
            f"Cycle complete: {len(notifications)} notifications, "
            f"{len(issues)} updated issues, {delivered} messages delivered"
        )
        return delivered

    def stop(self) -> None:
        self._shutdown_event.set()

    def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """
        Poll until stopped.

        A failing cycle is logged and the loop still sleeps and retries.

        Args:
            max_cycles: Stop after this many cycles (None means never).
        """
        logger.info(f"Starting poll loop (interval: {self.interval}s)")
        cycles = 0
        while not self._shutdown_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"Error during poll cycle: {e}", exc_info=True)

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            self._shutdown_event.wait(self.interval)

        logger.info("Poll loop stopped")
