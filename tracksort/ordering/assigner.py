"""OrderAssigner — midpoint bisection for new ordering keys.

Two modes:

  * batch: newcomers found while reconciling a fetched list. Starting
    from the store's ``(max, min)``, each newcomer in fetch order gets
    ``mid = (max + min) / 2`` and ``min`` moves up to ``mid``. ``max``
    is fixed for the whole pass, so keys rise toward it and same-batch
    newcomers keep their fetch order.
  * first position: a single newly opened issue, placed halfway between
    the negative sentinel and the current minimum so it sorts first.

When a stored key already lies at or beyond a sentinel (a client may
reposition anywhere), the open bound is pushed past that key instead.

A key is only accepted if it lies strictly inside its interval; otherwise
KeyspaceExhaustedError is raised and the caller rebalances the store.
"""

from __future__ import annotations

from typing import Collection, Iterable

from tracksort.exceptions import KeyspaceExhaustedError
from tracksort.storage.position_store import NEGATIVE_SENTINEL, POSITIVE_SENTINEL


def midpoint(lower: float, upper: float) -> float:
    return (upper + lower) / 2


class OrderAssigner:
    """Stateless key calculator; writing keys back is the caller's job."""

    def __init__(
        self,
        positive_sentinel: float = POSITIVE_SENTINEL,
        negative_sentinel: float = NEGATIVE_SENTINEL,
    ) -> None:
        self.positive_sentinel = positive_sentinel
        self.negative_sentinel = negative_sentinel

    def assign_batch(
        self,
        max_key: float,
        min_key: float,
        identities: Iterable[str],
        taken: Collection[float] = (),
    ) -> dict[str, float]:
        """Assign keys to unseen identities in fetch order.

        Args:
            max_key: Store maximum at the start of the pass.
            min_key: Store minimum at the start of the pass.
            identities: Unassigned identities, fetch order, no duplicates.
            taken: Keys already held by other identities. A midpoint that
                lands on one is treated as the new lower bound.

        Returns:
            Mapping of identity to new key, strictly increasing in input order.

        Raises:
            KeyspaceExhaustedError: If a midpoint collapses onto a bound.
        """
        upper = max_key
        lower = min_key
        if upper <= lower:
            # Single distinct stored value: open the gap above it.
            upper = self._above(lower)

        assigned: dict[str, float] = {}
        for identity in identities:
            key = midpoint(lower, upper)
            while key in taken and lower < key < upper:
                lower = key
                key = midpoint(lower, upper)
            if not lower < key < upper:
                raise KeyspaceExhaustedError(
                    f"No room between {lower!r} and {upper!r}",
                    issue_id=identity,
                    lower=lower,
                    upper=upper,
                )
            assigned[identity] = key
            lower = key
        return assigned

    def first_position(self, min_key: float, *, empty: bool = False) -> float:
        """Key that sorts before every existing key.

        Args:
            min_key: Current store minimum (the negative sentinel when empty).
            empty: True when the store holds no keys, so there is nothing
                to collide with.

        Raises:
            KeyspaceExhaustedError: If the result would not be below ``min_key``.
        """
        if empty:
            return midpoint(self.negative_sentinel, min_key)
        lower = self._below(min_key)
        key = midpoint(lower, min_key)
        if not lower < key < min_key:
            raise KeyspaceExhaustedError(
                f"No room below {min_key!r}",
                lower=lower,
                upper=min_key,
            )
        return key

    def _above(self, key: float) -> float:
        """Upper bound for a gap opened above ``key``.

        The positive sentinel, unless ``key`` already sits at or past it.
        """
        if key < self.positive_sentinel:
            return self.positive_sentinel
        return key + max(abs(key), 1.0)

    def _below(self, key: float) -> float:
        if key > self.negative_sentinel:
            return self.negative_sentinel
        return key - max(abs(key), 1.0)
