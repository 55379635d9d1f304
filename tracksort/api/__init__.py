from tracksort.api.app import ISSUES_PATH, WEBHOOK_PATH, EVENTS_PATH, create_app

__all__ = [
    "EVENTS_PATH",
    "ISSUES_PATH",
    "WEBHOOK_PATH",
    "create_app",
]
