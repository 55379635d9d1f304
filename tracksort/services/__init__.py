from tracksort.services.broadcaster import ChangeEvent, EventBroadcaster, Subscription
from tracksort.services.issue_service import HandlerResult, IssueService, SourceGateway
from tracksort.services.webhook import Translation, WebhookTranslator

__all__ = [
    "ChangeEvent",
    "EventBroadcaster",
    "HandlerResult",
    "IssueService",
    "SourceGateway",
    "Subscription",
    "Translation",
    "WebhookTranslator",
]
