"""In-memory tracking of notification ids that were already delivered."""

import logging
from typing import Set

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1000


class DedupCache:
    """
    Bounded set of delivered notification ids.

    When the set grows past ``max_size`` it is cleared completely rather than
    evicting single entries, so ids seen before a flush are delivered again
    if the tracker still reports them.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        self.max_size = max_size
        self._seen: Set[str] = set()

    def add(self, notification_id: str) -> bool:
        """Return True the first time an id is added, False after."""
        if notification_id in self._seen:
            return False
        self._seen.add(notification_id)
        return True

    def evict_if_needed(self) -> bool:
        """Clear the whole set if it holds more than max_size ids."""
        if len(self._seen) <= self.max_size:
            return False
        logger.info(f"Dedup cache reached {len(self._seen)} ids (max {self.max_size}), clearing")
        self._seen.clear()
        return True

    def __contains__(self, notification_id: str) -> bool:
        return notification_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)
