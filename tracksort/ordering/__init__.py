"""Ordering engine — key assignment and batch reconciliation."""

from tracksort.ordering.assigner import OrderAssigner, midpoint
from tracksort.ordering.reconciler import SORT_FIELD, Reconciler, identity_of

__all__ = [
    "OrderAssigner",
    "Reconciler",
    "SORT_FIELD",
    "identity_of",
    "midpoint",
]
