"""Rendering of notifications and issues as Telegram HTML messages."""

import html
import re
from typing import Optional

from .models import Issue, Notification

NOTIFICATION_BODY_LIMIT = 300
ISSUE_DESCRIPTION_LIMIT = 200
ELLIPSIS = "…"

# Emphasis never crosses a newline or an existing tag, which keeps the
# generated tags balanced and properly nested.
_EMPHASIS_RULES = (
    (re.compile(r"\*\*([^<>\n]+?)\*\*"), r"<b>\1</b>"),
    (re.compile(r"\*([^<>\n*]+?)\*"), r"<b>\1</b>"),
    (re.compile(r"~~([^<>\n]+?)~~"), r"<s>\1</s>"),
    (re.compile(r"_([^<>\n_]+?)_"), r"<i>\1</i>"),
)
_CODE_SPAN_RE = re.compile(r"(`[^`\n]+`)")

# Attributes must carry a value, so "a<b and c>d" is text and not a <b> tag.
_TAG_ATTRS = r"""(?:\s+[\w:-]+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'<>]+))*\s*/?>"""
_LINE_BREAK_TAG_RE = re.compile(r"<(?:br|/?p|/?div)" + _TAG_ATTRS, re.IGNORECASE)
_TAG_RE = re.compile(r"</?[A-Za-z][A-Za-z0-9]*" + _TAG_ATTRS)
_URL_RE = re.compile(r"https?://\S+")
_SEPARATOR_RE = re.compile(r"^[\s\-_=~*—–━─]{3,}$")
_BOILERPLATE_RE = re.compile(
    r"\b(?:changed|created|updated|resolved) by\b"
    r"|you received this"
    r"|notification settings"
    r"|unsubscribe"
    r"|sent by youtrack"
    r"|this (?:message|email) was sent",
    re.IGNORECASE,
)
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def escape_html(text: str) -> str:
    """Escape the characters Telegram's HTML parser treats as markup."""
    return html.escape(text or "", quote=False)


def _apply_emphasis(text: str) -> str:
    for pattern, replacement in _EMPHASIS_RULES:
        text = pattern.sub(replacement, text)
    return text


def render_markdown(text: str) -> str:
    """
    Convert lightweight markdown to Telegram HTML.

    The input is escaped before any substitution, so angle brackets in user
    content can never become tags.
    """
    parts = _CODE_SPAN_RE.split(escape_html(text))
    rendered = []
    for part in parts:
        if _CODE_SPAN_RE.fullmatch(part):
            rendered.append(f"<code>{part[1:-1]}</code>")
        else:
            rendered.append(_apply_emphasis(part))
    return "".join(rendered)


def strip_noise(text: str) -> str:
    """Reduce a tracker notification body to its human-written text."""
    if not text:
        return ""
    text = _LINE_BREAK_TAG_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text)
    text = _URL_RE.sub("", text)

    lines = []
    for line in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        line = line.rstrip()
        if _BOILERPLATE_RE.search(line) or _SEPARATOR_RE.match(line):
            continue
        lines.append(line)

    cleaned = "\n".join(lines)
    cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned)
    return cleaned.strip()


def truncate(text: str, limit: int) -> str:
    """Cut text to at most ``limit`` characters, ending in an ellipsis if cut."""
    if len(text) <= limit:
        return text
    return text[:limit - len(ELLIPSIS)].rstrip() + ELLIPSIS


def issue_url(base_url: str, issue_id: str) -> str:
    return f"{base_url.rstrip('/')}/issue/{issue_id}"


def render_notification(notification: Notification) -> str:
    metadata = notification.metadata
    issue_id = metadata.issue_id or notification.id
    status = metadata.issue_status or "Unknown"
    title = metadata.issue_title or "No title"
    body = truncate(strip_noise(metadata.description or notification.content), NOTIFICATION_BODY_LIMIT)

    message = (
        "<b>Notification</b>\n\n"
        f"<b>{escape_html(issue_id)}</b>\n"
        f"Status: {escape_html(status)}\n"
        f"Title: {escape_html(title)}"
    )
    if body:
        message += f"\n\n{render_markdown(body)}"
    return message


def render_issue(issue: Issue) -> str:
    status = issue.state or "No Status"

    message = (
        "<b>Issue Update</b>\n\n"
        f"<b>{escape_html(issue.id)}</b>\n"
        f"Status: {escape_html(status)}\n"
        f"Summary: {escape_html(issue.summary)}"
    )
    if issue.description and issue.description.strip():
        description = truncate(issue.description.strip(), ISSUE_DESCRIPTION_LIMIT)
        message += f"\n\n{render_markdown(description)}"
    return message


def render_issue_created(issue_id: str, summary: str, description: Optional[str] = None) -> str:
    message = (
        "<b>Issue created</b>\n\n"
        f"ID: <code>{escape_html(issue_id)}</code>\n"
        f"Summary: {escape_html(summary)}"
    )
    if description:
        message += f"\n\n{render_markdown(truncate(description, ISSUE_DESCRIPTION_LIMIT))}"
    return message
