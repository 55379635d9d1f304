"""Reconciler — merge stored ordering keys into a freshly fetched batch.

One pass:
  1. read ``(max, min)`` from the store once
  2. attach stored keys; give unseen identities batch-mode keys
  3. persist if anything was assigned
  4. stable-sort ascending by ``sort_position``

Steps 1-3 run under the store lock so concurrent passes cannot hand out
keys from the same interval.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import structlog

from tracksort.exceptions import FormatError, KeyspaceExhaustedError
from tracksort.ordering.assigner import OrderAssigner
from tracksort.storage.position_store import PositionStore

logger = structlog.get_logger()

SORT_FIELD = "sort_position"


def identity_of(record: Mapping[str, Any]) -> str:
    """Return a record's identity as the store's string key.

    Raises:
        FormatError: If the record has no usable ``id``.
    """
    if not isinstance(record, Mapping):
        raise FormatError(f"Expected an issue object, got {type(record).__name__}")
    issue_id = record.get("id")
    if issue_id is None or isinstance(issue_id, bool) or str(issue_id).strip() == "":
        raise FormatError("Issue is missing an id")
    return str(issue_id)


class Reconciler:
    """Applies the store's ordering to fetched issues."""

    def __init__(self, store: PositionStore, assigner: OrderAssigner | None = None) -> None:
        self._store = store
        self._assigner = assigner or OrderAssigner()

    def reconcile(self, batch: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Return ``batch`` as new dicts carrying ``sort_position``, sorted.

        Raises:
            FormatError: If any record lacks an identity.
        """
        identities = [identity_of(record) for record in batch]

        with self._store.lock:
            keys = {identity: self._store.get(identity) for identity in identities}
            unseen = [i for i in dict.fromkeys(identities) if keys[i] is None]

            if unseen:
                assigned = self._assign(unseen)
                for identity, key in assigned.items():
                    self._store.set(identity, key)
                # Rebalancing may have moved stored keys too.
                keys = {identity: self._store.get(identity) for identity in identities}
                self._store.persist()
                logger.info(
                    "Assigned ordering keys",
                    assigned=len(assigned),
                    batch_size=len(batch),
                )

        ordered = [
            {**record, SORT_FIELD: keys[identity]}
            for record, identity in zip(batch, identities)
        ]
        ordered.sort(key=lambda record: record[SORT_FIELD])
        return ordered

    def _assign(self, unseen: list[str]) -> dict[str, float]:
        try:
            return self._batch_keys(unseen)
        except KeyspaceExhaustedError as exc:
            logger.warning(
                "Ordering keyspace exhausted, rebalancing",
                issue_id=exc.issue_id,
                lower=exc.lower,
                upper=exc.upper,
            )
            self._store.rebalance()
            return self._batch_keys(unseen)

    def _batch_keys(self, unseen: list[str]) -> dict[str, float]:
        max_key, min_key = self._store.extremes()
        taken = set(self._store.snapshot().values())
        return self._assigner.assign_batch(max_key, min_key, unseen, taken=taken)
