"""Tests for WebhookTranslator — notification actions to store mutations."""

import json
from unittest.mock import patch

import pytest

from tests.helpers import make_issue, webhook_body
from tracksort.exceptions import FormatError, UnknownActionWarning
from tracksort.ordering.assigner import OrderAssigner
from tracksort.ordering.reconciler import Reconciler
from tracksort.schemas.enums import EventKind, StoreMutation, WebhookAction
from tracksort.services.webhook import WebhookTranslator
from tracksort.storage.position_store import NEGATIVE_SENTINEL, PositionStore


@pytest.fixture
def translator(store: PositionStore) -> WebhookTranslator:
    return WebhookTranslator(store, OrderAssigner())


# ===========================================================================
# translate
# ===========================================================================


class TestTranslate:
    @pytest.mark.parametrize(
        "action,kind,mutation",
        [
            ("closed", EventKind.REMOVED, StoreMutation.REMOVE),
            ("edited", EventKind.UPDATED, StoreMutation.NONE),
            ("opened", EventKind.CREATED, StoreMutation.INSERT_FIRST),
            ("reopened", EventKind.CREATED, StoreMutation.INSERT_FIRST),
        ],
    )
    def test_action_table(self, translator: WebhookTranslator, action, kind, mutation):
        translation = translator.translate(webhook_body(action, make_issue(7)))
        assert translation.action == WebhookAction(action)
        assert translation.kind == kind
        assert translation.mutation == mutation
        assert translation.issue_id == "7"
        assert translation.issue == make_issue(7)

    def test_unknown_action(self, translator: WebhookTranslator):
        with pytest.raises(UnknownActionWarning) as exc_info:
            translator.translate(webhook_body("labeled", make_issue(7)))
        assert exc_info.value.action == "labeled"
        assert exc_info.value.issue_id == "7"

    def test_unparseable_body(self, translator: WebhookTranslator):
        with pytest.raises(FormatError):
            translator.translate(b"{oops")

    def test_missing_issue(self, translator: WebhookTranslator):
        with pytest.raises(FormatError):
            translator.translate(json.dumps({"action": "opened"}).encode())

    def test_issue_without_id(self, translator: WebhookTranslator):
        with pytest.raises(FormatError):
            translator.translate(json.dumps({"action": "opened", "issue": {"title": "x"}}).encode())

    def test_missing_action(self, translator: WebhookTranslator):
        with pytest.raises(FormatError):
            translator.translate(json.dumps({"issue": make_issue(1)}).encode())

    def test_translate_does_not_touch_store(self, translator: WebhookTranslator, store: PositionStore):
        translator.translate(webhook_body("opened", make_issue(7)))
        assert len(store) == 0


# ===========================================================================
# apply
# ===========================================================================


class TestApply:
    def test_opened_sorts_before_everything(self, translator: WebhookTranslator, store: PositionStore):
        store.set("1", -5.0)
        store.set("2", 5.0)
        issue = translator.apply(translator.translate(webhook_body("opened", make_issue(3))))

        assert store.get(3) < -5.0
        assert issue["sort_position"] == store.get(3)

    def test_opened_persists(self, translator: WebhookTranslator, store: PositionStore, positions_path):
        translator.apply(translator.translate(webhook_body("opened", make_issue(3))))
        assert json.loads(positions_path.read_text()) == {"3": store.get(3)}

    def test_opened_on_empty_store(self, translator: WebhookTranslator, store: PositionStore):
        translator.apply(translator.translate(webhook_body("opened", make_issue(1))))
        assert store.get(1) == NEGATIVE_SENTINEL

    def test_second_opening_after_empty_store_goes_below(self, translator: WebhookTranslator, store: PositionStore):
        translator.apply(translator.translate(webhook_body("opened", make_issue(1))))
        translator.apply(translator.translate(webhook_body("opened", make_issue(2))))
        assert store.get(1) == NEGATIVE_SENTINEL
        assert store.get(2) < store.get(1)

    def test_opened_keeps_key_chosen_at_creation(self, translator: WebhookTranslator, store: PositionStore):
        store.set("1", -5.0)
        store.set("3", 42.0)
        store.mark_placed("3")
        with patch.object(store, "persist") as persist:
            issue = translator.apply(translator.translate(webhook_body("opened", make_issue(3))))
        persist.assert_not_called()
        assert store.get(3) == 42.0
        assert issue["sort_position"] == 42.0

    def test_creation_key_kept_only_once(self, translator: WebhookTranslator, store: PositionStore):
        store.set("1", -5.0)
        store.set("3", 42.0)
        store.mark_placed("3")
        translator.apply(translator.translate(webhook_body("opened", make_issue(3))))
        translator.apply(translator.translate(webhook_body("reopened", make_issue(3))))
        assert store.get(3) < -5.0

    def test_opened_moves_stored_key_first(self, translator: WebhookTranslator, store: PositionStore):
        store.set("1", -5.0)
        store.set("3", 42.0)
        issue = translator.apply(translator.translate(webhook_body("opened", make_issue(3))))
        assert store.get(3) < -5.0
        assert issue["sort_position"] == store.get(3)

    def test_opened_below_key_beyond_sentinel_without_rebalance(
        self, translator: WebhookTranslator, store: PositionStore
    ):
        store.set("1", -1e20)
        store.set("2", 7.0)
        with patch.object(store, "rebalance") as rebalance:
            translator.apply(translator.translate(webhook_body("opened", make_issue(3))))
        rebalance.assert_not_called()
        assert store.get(1) == -1e20
        assert store.get(3) < -1e20

    def test_closed_removes_and_persists(self, translator: WebhookTranslator, store: PositionStore, positions_path):
        store.set("3", 1.0)
        store.set("4", 2.0)
        issue = translator.apply(translator.translate(webhook_body("closed", make_issue(3))))
        assert store.get(3) is None
        assert json.loads(positions_path.read_text()) == {"4": 2.0}
        assert "sort_position" not in issue

    def test_closed_unknown_identity_is_noop(self, translator: WebhookTranslator, store: PositionStore):
        with patch.object(store, "persist") as persist:
            translator.apply(translator.translate(webhook_body("closed", make_issue(3))))
        persist.assert_not_called()

    def test_edited_leaves_store_alone(self, translator: WebhookTranslator, store: PositionStore):
        store.set("3", 1.5)
        issue = translator.apply(translator.translate(webhook_body("edited", make_issue(3, title="New"))))
        assert store.snapshot() == {"3": 1.5}
        assert issue["title"] == "New"
        assert issue["sort_position"] == 1.5


# ===========================================================================
# Lifecycle properties
# ===========================================================================


class TestLifecycle:
    def test_new_issue_first_after_reconciliation(self, translator: WebhookTranslator, store: PositionStore):
        reconciler = Reconciler(store, OrderAssigner())
        reconciler.reconcile([make_issue(i) for i in range(1, 6)])
        previous = store.snapshot()

        translator.apply(translator.translate(webhook_body("opened", make_issue(99))))
        result = reconciler.reconcile([make_issue(i) for i in range(1, 6)] + [make_issue(99)])

        assert result[0]["id"] == 99
        assert all(store.get(99) < key for key in previous.values())

    def test_issue_listed_before_opened_moves_first(self, translator: WebhookTranslator, store: PositionStore):
        reconciler = Reconciler(store, OrderAssigner())
        reconciler.reconcile([make_issue(1), make_issue(2), make_issue(7)])
        others = [store.get(1), store.get(2)]

        translator.apply(translator.translate(webhook_body("opened", make_issue(7))))
        result = reconciler.reconcile([make_issue(1), make_issue(2), make_issue(7)])

        assert all(store.get(7) < key for key in others)
        assert result[0]["id"] == 7

    def test_removal_then_reopen_gets_fresh_lower_key(self, translator: WebhookTranslator, store: PositionStore):
        reconciler = Reconciler(store, OrderAssigner())
        reconciler.reconcile([make_issue(1), make_issue(2), make_issue(3)])
        old_key = store.get(2)

        translator.apply(translator.translate(webhook_body("closed", make_issue(2))))
        assert 2 not in store
        translator.apply(translator.translate(webhook_body("reopened", make_issue(2))))

        new_key = store.get(2)
        assert new_key != old_key
        assert new_key < old_key
        assert new_key < min(store.get(1), store.get(3))
