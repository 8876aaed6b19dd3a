"""YouTrack REST client for notifications, recent issues and issue creation."""

import json
import logging
from dataclasses import replace
from typing import Any, List, NamedTuple, Optional

import requests

from .config import TrackerConfig
from .decoder import decode_content
from .extractor import extract_metadata, find_issue_id
from .models import Issue, Notification, NotificationMetadata

logger = logging.getLogger(__name__)

NOTIFICATIONS_PATH = "/api/users/me/notifications"
NOTIFICATION_FIELDS = "id,content,metadata"
ISSUES_PATH = "/api/issues"
ISSUE_FIELDS = "id,idReadable,summary,description,updated,customFields(name,value(name))"
ISSUE_PAGE_SIZE = 50
CREATED_FIELDS = "id,idReadable"

# Returned by create_issue when the tracker accepted the issue but sent no id back.
CREATED_SENTINEL = "created"


class RelayError(Exception):
    """Base class for tracker errors."""


class TrackerUnavailable(RelayError):
    """A fetch failed with a non-2xx status or a transport error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class IssueCreationFailed(RelayError):
    """The tracker refused or never answered an issue creation request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# Shapes a loosely typed JSON field can take.
ABSENT = "absent"
PRIMITIVE = "primitive"
OBJECT = "object"


class Field(NamedTuple):
    kind: str
    value: Any


def classify(value: Any) -> Field:
    """Tag a raw JSON value as absent, a string primitive, or anything else."""
    if value is None:
        return Field(ABSENT, None)
    if isinstance(value, str):
        return Field(PRIMITIVE, value)
    return Field(OBJECT, value)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return str(value)


def parse_content(raw: Any) -> str:
    """Normalize the notification content field to text."""
    field = classify(raw)
    if field.kind == ABSENT:
        return ""
    if field.kind == PRIMITIVE:
        return decode_content(field.value)
    return json.dumps(field.value, ensure_ascii=False)


def _metadata_from_object(data: dict) -> NotificationMetadata:
    description = _optional_str(data.get("description"))
    return NotificationMetadata(
        issue_id=_optional_str(data.get("issueId")),
        issue_title=_optional_str(data.get("issueTitle")),
        issue_status=_optional_str(data.get("issueStatus")),
        description=decode_content(description) if description else None,
    )


def _metadata_from_string(raw: str) -> Optional[NotificationMetadata]:
    try:
        data = json.loads(decode_content(raw))
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return _metadata_from_object(data)


def _fill_missing(structured: NotificationMetadata, fallback: NotificationMetadata) -> NotificationMetadata:
    return NotificationMetadata(
        issue_id=structured.issue_id or fallback.issue_id,
        issue_title=structured.issue_title or fallback.issue_title,
        issue_status=structured.issue_status or fallback.issue_status,
        description=structured.description or fallback.description,
    )


def parse_metadata(raw: Any, content: str) -> NotificationMetadata:
    """
    Resolve notification metadata from whatever shape the API returned.

    Structured metadata is preferred field by field, with gaps filled from the
    text extractor. An issue id found in the content always wins over the one
    in structured metadata.
    """
    extracted = extract_metadata(content)
    field = classify(raw)

    structured = None
    if field.kind == OBJECT and isinstance(field.value, dict):
        structured = _metadata_from_object(field.value)
    elif field.kind == PRIMITIVE:
        structured = _metadata_from_string(field.value)

    if structured is None:
        return extracted

    metadata = _fill_missing(structured, extracted)
    content_issue_id = find_issue_id(content)
    if content_issue_id:
        metadata = replace(metadata, issue_id=content_issue_id)
    return metadata


def parse_notification(item: Any) -> Optional[Notification]:
    """Build a Notification from one API element, or None if it is unusable."""
    if not isinstance(item, dict):
        return None
    notification_id = _optional_str(item.get("id"))
    if not notification_id:
        return None

    content = parse_content(item.get("content"))
    return Notification(
        id=notification_id,
        content=content,
        metadata=parse_metadata(item.get("metadata"), content),
    )


def _issue_state(custom_fields: Any) -> Optional[str]:
    if not isinstance(custom_fields, list):
        return None
    for custom_field in custom_fields:
        if isinstance(custom_field, dict) and custom_field.get("name") == "State":
            value = custom_field.get("value")
            if isinstance(value, dict):
                return _optional_str(value.get("name"))
            return None
    return None


def parse_issue(item: Any) -> Optional[Issue]:
    """Build an Issue from one API element, or None if it has no id."""
    if not isinstance(item, dict):
        return None
    issue_id = _optional_str(item.get("idReadable")) or _optional_str(item.get("id"))
    if not issue_id:
        return None
    return Issue(
        id=issue_id,
        summary=_optional_str(item.get("summary")) or "",
        description=_optional_str(item.get("description")),
        state=_issue_state(item.get("customFields")),
    )


def _updated_after(item: Any, since_exclusive_ms: int) -> bool:
    updated = item.get("updated") if isinstance(item, dict) else None
    if isinstance(updated, bool) or not isinstance(updated, (int, float)):
        return False
    return updated > since_exclusive_ms


class YouTrackClient:
    """Client for the YouTrack REST API."""

    def __init__(self, config: TrackerConfig, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            config: Tracker configuration.
            session: Optional pre-built session (used by tests).
        """
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {config.token}",
            "Accept": "application/json",
        })

    def _get_json_list(self, path: str, params: dict) -> List[Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TrackerUnavailable(f"GET {path} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TrackerUnavailable(
                f"GET {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"GET {path} returned a non-JSON body, treating as empty")
            return []
        if not isinstance(data, list):
            logger.warning(f"GET {path} returned {type(data).__name__} instead of a list, treating as empty")
            return []
        return data

    def fetch_notifications(self) -> List[Notification]:
        """
        Fetch the current user's notifications.

        Returns:
            Parsed notifications; unusable elements are skipped.

        Raises:
            TrackerUnavailable: On a non-2xx response or transport error.
        """
        items = self._get_json_list(NOTIFICATIONS_PATH, {"fields": NOTIFICATION_FIELDS})

        notifications = []
        for item in items:
            try:
                notification = parse_notification(item)
            except Exception as e:
                logger.debug(f"Error parsing notification element: {e}")
                continue
            if notification is None:
                logger.debug("Skipping notification element without an id")
                continue
            notifications.append(notification)

        logger.info(f"Fetched {len(notifications)} notifications ({len(items)} elements)")
        return notifications

    def fetch_recent_issues(self, since_exclusive_ms: int) -> List[Issue]:
        """
        Fetch issues updated strictly after the given time.

        Args:
            since_exclusive_ms: Epoch milliseconds; issues updated at exactly
                this instant are excluded.

        Raises:
            TrackerUnavailable: On a non-2xx response or transport error.
        """
        items = self._get_json_list(
            ISSUES_PATH,
            {"fields": ISSUE_FIELDS, "$top": ISSUE_PAGE_SIZE},
        )

        issues = []
        for item in items:
            if not _updated_after(item, since_exclusive_ms):
                continue
            try:
                issue = parse_issue(item)
            except Exception as e:
                logger.debug(f"Error parsing issue element: {e}")
                continue
            if issue is not None:
                issues.append(issue)

        logger.info(f"Found {len(issues)} issues updated since {since_exclusive_ms}")
        return issues

    def create_issue(self, project_id: str, summary: str, description: Optional[str] = None) -> str:
        """
        Create an issue.

        Args:
            project_id: Internal id of the target project (e.g. "0-1").
            summary: Issue summary.
            description: Optional issue description.

        Returns:
            The readable id of the new issue, its internal id, or
            CREATED_SENTINEL when the response carries neither.

        Raises:
            IssueCreationFailed: On a non-2xx response or transport error.
        """
        payload = {"project": {"id": project_id}, "summary": summary}
        if description:
            payload["description"] = description

        url = f"{self.base_url}{ISSUES_PATH}"
        try:
            response = self.session.post(
                url,
                params={"fields": CREATED_FIELDS},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise IssueCreationFailed(f"request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise IssueCreationFailed(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return CREATED_SENTINEL

        issue_id = _optional_str(data.get("idReadable")) or _optional_str(data.get("id"))
        logger.info(f"Created issue {issue_id or CREATED_SENTINEL} in project {project_id}")
        return issue_id or CREATED_SENTINEL
