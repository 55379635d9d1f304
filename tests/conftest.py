"""Shared test fixtures for tracksort tests.

Provides a file-backed PositionStore in a temp dir and a fully wired
IssueService over the in-memory gateway from ``tests.helpers``.
"""

from pathlib import Path

import pytest

from tests.helpers import FakeGateway, make_issue
from tracksort.ordering.assigner import OrderAssigner
from tracksort.ordering.reconciler import Reconciler
from tracksort.services.broadcaster import EventBroadcaster
from tracksort.services.issue_service import IssueService
from tracksort.services.webhook import WebhookTranslator
from tracksort.storage.position_store import PositionStore


@pytest.fixture
def positions_path(tmp_path: Path) -> Path:
    return tmp_path / "issues.json"


@pytest.fixture
def store(positions_path: Path) -> PositionStore:
    s = PositionStore(persist_path=positions_path)
    s.load()
    return s


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway([make_issue(101), make_issue(102), make_issue(103)])


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster(queue_size=10)


@pytest.fixture
def service(store: PositionStore, gateway: FakeGateway, broadcaster: EventBroadcaster) -> IssueService:
    assigner = OrderAssigner()
    return IssueService(
        store=store,
        reconciler=Reconciler(store, assigner),
        gateway=gateway,
        broadcaster=broadcaster,
        translator=WebhookTranslator(store, assigner),
    )
