"""tracksort schemas — typed boundary contracts."""

from tracksort.schemas.enums import EventKind, StoreMutation, WebhookAction
from tracksort.schemas.issue import (
    Issue,
    IssueCollection,
    NewIssue,
    PositionUpdate,
    WebhookNotification,
    parse_body,
)

__all__ = [
    "EventKind",
    "Issue",
    "IssueCollection",
    "NewIssue",
    "PositionUpdate",
    "StoreMutation",
    "WebhookAction",
    "WebhookNotification",
    "parse_body",
]
