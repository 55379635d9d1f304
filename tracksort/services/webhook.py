"""WebhookTranslator — GitHub ``issues`` notifications to store changes.

    closed             remove key (+ persist)        -> removed
    edited             nothing                        -> updated
    opened / reopened  first-position key (+ persist) -> created
    anything else      nothing                        -> UnknownActionWarning

``translate`` is pure; ``apply`` performs the store mutation and returns
the issue payload to broadcast.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from tracksort.exceptions import KeyspaceExhaustedError, UnknownActionWarning
from tracksort.ordering.assigner import OrderAssigner
from tracksort.ordering.reconciler import SORT_FIELD
from tracksort.schemas.enums import EventKind, StoreMutation, WebhookAction
from tracksort.schemas.issue import WebhookNotification, parse_body
from tracksort.storage.position_store import PositionStore

logger = structlog.get_logger()

ACTION_TABLE: dict[WebhookAction, tuple[EventKind, StoreMutation]] = {
    WebhookAction.CLOSED: (EventKind.REMOVED, StoreMutation.REMOVE),
    WebhookAction.EDITED: (EventKind.UPDATED, StoreMutation.NONE),
    WebhookAction.OPENED: (EventKind.CREATED, StoreMutation.INSERT_FIRST),
    WebhookAction.REOPENED: (EventKind.CREATED, StoreMutation.INSERT_FIRST),
}


@dataclass(frozen=True)
class Translation:
    """Outcome of translating one notification."""

    action: WebhookAction
    kind: EventKind
    issue_id: str
    issue: dict[str, Any]
    mutation: StoreMutation


class WebhookTranslator:
    """Maps provider notifications onto PositionStore mutations."""

    def __init__(self, store: PositionStore, assigner: OrderAssigner | None = None) -> None:
        self._store = store
        self._assigner = assigner or OrderAssigner()

    def translate(self, body: bytes | str) -> Translation:
        """Parse a notification body and look up its action.

        Raises:
            FormatError: Unparseable body, or missing issue / identity.
            UnknownActionWarning: Action outside the table.
        """
        notification, raw = parse_body(WebhookNotification, body)

        try:
            action = WebhookAction(notification.action)
        except ValueError:
            raise UnknownActionWarning(
                f"Received unknown action: {notification.action}",
                issue_id=notification.issue.identity,
                action=notification.action,
            ) from None

        kind, mutation = ACTION_TABLE[action]
        return Translation(
            action=action,
            kind=kind,
            issue_id=notification.issue.identity,
            issue=dict(raw["issue"]),
            mutation=mutation,
        )

    def apply(self, translation: Translation) -> dict[str, Any]:
        """Perform the translation's store mutation.

        Returns the issue payload for broadcasting, carrying
        ``sort_position`` whenever the identity still has a key.
        """
        issue = dict(translation.issue)
        issue_id = translation.issue_id

        if translation.mutation is StoreMutation.REMOVE:
            with self._store.lock:
                if self._store.remove(issue_id):
                    self._store.persist()
            logger.info("Issue position removed", issue_id=issue_id)
            return issue

        if translation.mutation is StoreMutation.INSERT_FIRST:
            with self._store.lock:
                key = self._store.get(issue_id)
                # A key chosen in the create request stands; any other moves to the top.
                if key is None or not self._store.take_placed(issue_id):
                    key = self._first_position(issue_id)
                    self._store.set(issue_id, key)
                    self._store.persist()
                    logger.info(
                        "Issue placed first",
                        issue_id=issue_id,
                        sort_position=key,
                        action=translation.action.value,
                    )
            issue[SORT_FIELD] = key
            return issue

        key = self._store.get(issue_id)
        if key is not None:
            issue[SORT_FIELD] = key
        return issue

    def _first_position(self, issue_id: str) -> float:
        try:
            _, min_key = self._store.extremes()
            return self._assigner.first_position(min_key, empty=len(self._store) == 0)
        except KeyspaceExhaustedError:
            logger.warning("No room before the first issue, rebalancing", issue_id=issue_id)
            self._store.rebalance()
            _, min_key = self._store.extremes()
            return self._assigner.first_position(min_key, empty=len(self._store) == 0)
