"""IssueService — the work behind each HTTP endpoint.

Every handler follows the same sequence: read and validate the body,
mutate the store, persist, then hand back the response payload together
with the change event (if any) that the transport emits once the
response is on its way.

Store mutations end in a blocking snapshot write. The async handlers run
them in a worker thread; the synchronous ones (``reposition``,
``handle_webhook``) are dispatched to a thread by the transport. The
store's lock keeps each read-assign-persist sequence atomic.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from tracksort.exceptions import FormatError, UnknownActionWarning
from tracksort.ordering.reconciler import SORT_FIELD, Reconciler, identity_of
from tracksort.schemas.enums import EventKind
from tracksort.schemas.issue import IssueCollection, NewIssue, PositionUpdate, parse_body
from tracksort.services.broadcaster import ChangeEvent, EventBroadcaster
from tracksort.services.webhook import WebhookTranslator
from tracksort.storage.position_store import PositionStore
from tracksort.utils.logging import get_logger

logger = structlog.get_logger()


def _event_id(issue_id: str) -> int | str:
    # GitHub ids are integers; path segments arrive as strings.
    if issue_id.isascii() and issue_id.isdigit():
        return int(issue_id)
    return issue_id


class SourceGateway(Protocol):
    """Issue tracker the records come from."""

    async def fetch(
        self, collection: IssueCollection, *, user_agent: str | None = None
    ) -> list[dict[str, Any]]: ...

    async def create(
        self, collection: IssueCollection, body: bytes, *, user_agent: str | None = None
    ) -> dict[str, Any]: ...


@dataclass(frozen=True)
class HandlerResult:
    """Response payload plus the event to emit after responding."""

    body: Any
    event: ChangeEvent | None = None


class IssueService:
    """Coordinates gateway, reconciler, store, translator and broadcaster."""

    def __init__(
        self,
        store: PositionStore,
        reconciler: Reconciler,
        gateway: SourceGateway,
        broadcaster: EventBroadcaster,
        translator: WebhookTranslator,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._gateway = gateway
        self._broadcaster = broadcaster
        self._translator = translator

    @property
    def store(self) -> PositionStore:
        return self._store

    @property
    def broadcaster(self) -> EventBroadcaster:
        return self._broadcaster

    async def list_issues(
        self,
        collection: IssueCollection,
        *,
        user_agent: str | None = None,
    ) -> HandlerResult:
        issues = await self._gateway.fetch(collection, user_agent=user_agent)
        ordered = await asyncio.to_thread(self._reconciler.reconcile, issues)
        logger.debug("Issues listed", collection=str(collection), count=len(ordered))
        return HandlerResult(body=ordered)

    async def create_issue(
        self,
        collection: IssueCollection,
        body: bytes,
        *,
        user_agent: str | None = None,
    ) -> HandlerResult:
        """Create an issue upstream, keeping any ``sort_position`` the caller sent."""
        new_issue, _ = parse_body(NewIssue, body)
        created = await self._gateway.create(collection, body, user_agent=user_agent)
        issue_id = identity_of(created)

        if new_issue.sort_position is not None:
            await asyncio.to_thread(self._place, issue_id, new_issue.sort_position)
            created = {**created, SORT_FIELD: new_issue.sort_position}

        logger.info(
            "Issue created",
            collection=str(collection),
            issue_id=issue_id,
            sort_position=new_issue.sort_position,
        )
        return HandlerResult(body=created)

    def _place(self, issue_id: str, key: float) -> None:
        with self._store.lock:
            self._store.set(issue_id, key)
            self._store.mark_placed(issue_id)
            self._store.persist()

    def reposition(self, issue_id: str, body: bytes) -> HandlerResult:
        """Store the body's ``sort_position`` for ``issue_id`` and echo the body.

        The ``updated`` event carries the body plus the issue id, numeric
        when the path segment is, unless the body names its own ``id``.
        """
        update, raw = parse_body(PositionUpdate, body)
        with self._store.lock:
            self._store.set(issue_id, update.sort_position)
            self._store.persist()

        logger.info("Issue repositioned", issue_id=issue_id, sort_position=update.sort_position)
        issue = {"id": _event_id(issue_id), **raw}
        return HandlerResult(
            body=raw,
            event=ChangeEvent(kind=EventKind.UPDATED, issue=issue),
        )

    def handle_webhook(self, body: bytes, delivery_id: str | None = None) -> HandlerResult:
        """Translate and apply one notification.

        Never raises for bad input: malformed bodies and unknown actions are
        logged so the provider always gets its acknowledgement.

        Args:
            body: Raw notification payload.
            delivery_id: Provider delivery id, bound to every log line.
        """
        log = get_logger("webhook", correlation_id=delivery_id)
        try:
            translation = self._translator.translate(body)
        except FormatError as exc:
            log.error("Malformed webhook notification", error=str(exc))
            return HandlerResult(body=None)
        except UnknownActionWarning as exc:
            log.warning(
                "Received unknown webhook action",
                action=exc.action,
                issue_id=exc.issue_id,
            )
            return HandlerResult(body=None)

        issue = self._translator.apply(translation)
        log.info(
            "Webhook handled",
            action=translation.action.value,
            kind=translation.kind.value,
            issue_id=translation.issue_id,
        )
        return HandlerResult(
            body=None,
            event=ChangeEvent(kind=translation.kind, issue=issue),
        )

    def publish(self, event: ChangeEvent | None) -> int:
        """Emit a handler's event, if it produced one."""
        if event is None:
            return 0
        return self._broadcaster.emit(event.kind, event.issue)
