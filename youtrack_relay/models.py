"""Data models for tracker notifications and issues."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class NotificationMetadata:
    """Structured fields describing the issue a notification is about."""
    issue_id: Optional[str] = None
    issue_title: Optional[str] = None
    issue_status: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    """Represents a YouTrack notification."""
    id: str            # tracker-assigned notification id
    content: str       # decoded raw text (may still contain HTML)
    metadata: NotificationMetadata = field(default_factory=NotificationMetadata)


@dataclass(frozen=True)
class Issue:
    """Represents a recently updated YouTrack issue."""
    id: str            # idReadable when available, internal id otherwise
    summary: str
    description: Optional[str] = None
    state: Optional[str] = None
