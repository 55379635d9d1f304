"""Shared enumerations for tracksort schemas.

Defined in one place so the webhook translator, broadcaster and HTTP
layer agree on the wire values.
"""

from enum import Enum


class EventKind(str, Enum):
    """Change event pushed to real-time subscribers."""
    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


class WebhookAction(str, Enum):
    """GitHub ``issues`` webhook actions that tracksort reacts to."""
    OPENED = "opened"
    REOPENED = "reopened"
    EDITED = "edited"
    CLOSED = "closed"


class StoreMutation(str, Enum):
    """Position-store change implied by a webhook action."""
    NONE = "none"
    REMOVE = "remove"
    INSERT_FIRST = "insert_first"
