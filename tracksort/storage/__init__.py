"""Storage layer — persisted ordering keys."""

from tracksort.storage.position_store import (
    NEGATIVE_SENTINEL,
    POSITIVE_SENTINEL,
    PositionStore,
)

__all__ = [
    "NEGATIVE_SENTINEL",
    "POSITIVE_SENTINEL",
    "PositionStore",
]
