"""Heuristic metadata extraction from free-form notification text."""

import re
from typing import Optional

from .models import NotificationMetadata

ISSUE_ID_RE = re.compile(r"\b([A-Z]+-\d+)\b")
_TITLE_RE = re.compile(r"[^\n<]*")
_STATE_RE = re.compile(r"state:\s*([^\s<]+)", re.IGNORECASE)


def find_issue_id(content: str) -> Optional[str]:
    """Return the first ticket-key shaped token in the text, if any."""
    match = ISSUE_ID_RE.search(content or "")
    return match.group(1) if match else None


def extract_metadata(content: str) -> NotificationMetadata:
    """
    Derive issue fields from notification text.

    Any ticket-key shaped token counts as the issue id, even inside
    unrelated prose. Fields that cannot be found are left as None.
    """
    content = content or ""

    issue_id = None
    title = None
    match = ISSUE_ID_RE.search(content)
    if match:
        issue_id = match.group(1)
        tail = _TITLE_RE.match(content, match.end()).group(0)
        title = tail.lstrip(" \t:-").rstrip() or None

    status = None
    state_match = _STATE_RE.search(content)
    if state_match:
        status = state_match.group(1)

    return NotificationMetadata(
        issue_id=issue_id,
        issue_title=title,
        issue_status=status,
    )
