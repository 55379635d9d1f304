"""PositionStore — persisted identity -> ordering-key mapping.

The whole mapping lives in memory and is written back as a single JSON
object (``{"<issue id>": <key>, ...}``) on every persist. The in-memory
copy is authoritative: a failed write is logged and the next successful
persist catches the file up.
"""

from __future__ import annotations

import json
import math
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterator

import structlog

from tracksort.exceptions import FormatError, PersistenceError

logger = structlog.get_logger()

# Half of the safe-integer range on either side. Returned by extremes() on an
# empty store so bisection always starts from a finite interval.
POSITIVE_SENTINEL: float = float(2**52)
NEGATIVE_SENTINEL: float = -float(2**52)


class PositionStore:
    """Identity -> ordering key map with whole-file JSON snapshots.

    Thread-safe. ``lock`` is re-entrant so callers can hold it across a
    read-assign-persist sequence while the store's own methods re-acquire
    it. Snapshot writes are serialized by a separate writer lock.
    """

    def __init__(self, persist_path: Path | None = None) -> None:
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._snapshot_seq = 0
        self._written_seq = 0
        self._positions: dict[str, float] = {}
        # Identities whose key came from a create request, not yet announced
        self._placed: set[str] = set()
        self._persist_path = persist_path

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def persist_path(self) -> Path | None:
        return self._persist_path

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Replace the in-memory mapping with the snapshot on disk.

        A missing file yields an empty mapping. Returns the entry count.

        Raises:
            FormatError: If the file is not a JSON object of numbers.
            PersistenceError: If the file exists but cannot be read.
        """
        with self._lock:
            self._positions = {}
            self._placed = set()
            if self._persist_path is None or not self._persist_path.exists():
                logger.info(
                    "No positions snapshot, starting empty",
                    path=str(self._persist_path) if self._persist_path else None,
                )
                return 0

            try:
                with open(self._persist_path, encoding="utf-8") as f:
                    raw = json.load(f)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise FormatError(
                    f"Positions snapshot {self._persist_path} is not valid JSON: {exc}"
                ) from exc
            except OSError as exc:
                raise PersistenceError(
                    f"Cannot read positions snapshot: {exc}",
                    path=str(self._persist_path),
                ) from exc

            if not isinstance(raw, dict):
                raise FormatError(
                    f"Positions snapshot must be a JSON object, got {type(raw).__name__}"
                )

            for issue_id, key in raw.items():
                if isinstance(key, bool) or not isinstance(key, (int, float)) or not math.isfinite(key):
                    raise FormatError(
                        f"Positions snapshot has a non-numeric key for {issue_id!r}",
                        issue_id=issue_id,
                    )
                self._positions[issue_id] = float(key)

            logger.info(
                "Positions loaded from disk",
                path=str(self._persist_path),
                count=len(self._positions),
            )
            return len(self._positions)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(self, issue_id: str | int) -> float | None:
        """Return the ordering key for an identity, or None."""
        with self._lock:
            return self._positions.get(str(issue_id))

    def extremes(self) -> tuple[float, float]:
        """Return ``(max, min)`` over all keys, or the sentinels when empty."""
        with self._lock:
            if not self._positions:
                return POSITIVE_SENTINEL, NEGATIVE_SENTINEL
            values = self._positions.values()
            return max(values), min(values)

    def snapshot(self) -> dict[str, float]:
        """Return a copy of the mapping."""
        with self._lock:
            return dict(self._positions)

    def ordered(self) -> list[tuple[str, float]]:
        """Return ``(identity, key)`` pairs ascending by key, ties by identity."""
        with self._lock:
            return sorted(self._positions.items(), key=lambda kv: (kv[1], kv[0]))

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)

    def __contains__(self, issue_id: object) -> bool:
        with self._lock:
            return str(issue_id) in self._positions

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    # ------------------------------------------------------------------
    # Write (in memory)
    # ------------------------------------------------------------------

    def set(self, issue_id: str | int, key: float) -> None:
        """Set the key for an identity. Does not persist."""
        if isinstance(key, bool) or not isinstance(key, (int, float)) or not math.isfinite(key):
            raise FormatError(f"Ordering key must be a finite number, got {key!r}", issue_id=str(issue_id))
        with self._lock:
            self._positions[str(issue_id)] = float(key)

    def remove(self, issue_id: str | int) -> bool:
        """Delete an identity's key. Returns True if one was present."""
        with self._lock:
            self._placed.discard(str(issue_id))
            return self._positions.pop(str(issue_id), None) is not None

    def mark_placed(self, issue_id: str | int) -> None:
        """Record that a client chose this identity's key when creating it."""
        with self._lock:
            self._placed.add(str(issue_id))

    def take_placed(self, issue_id: str | int) -> bool:
        """Clear the client-chosen flag. Returns True if it was set."""
        with self._lock:
            if str(issue_id) in self._placed:
                self._placed.discard(str(issue_id))
                return True
            return False

    def rebalance(self) -> int:
        """Respace every key evenly across the sentinel interval.

        Relative order is preserved; equal keys are separated by identity.
        Does not persist. Returns the number of entries moved.
        """
        with self._lock:
            entries = self.ordered()
            if not entries:
                return 0
            step = (POSITIVE_SENTINEL - NEGATIVE_SENTINEL) / (len(entries) + 1)
            self._positions = {
                issue_id: NEGATIVE_SENTINEL + step * (i + 1)
                for i, (issue_id, _) in enumerate(entries)
            }
            logger.warning("Ordering keys rebalanced", count=len(entries))
            return len(entries)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def persist(self) -> bool:
        """Overwrite the snapshot file with the current mapping.

        Failures are logged and reported by returning False; the in-memory
        mapping is left untouched and there is no retry. Safe to call from
        several threads: a snapshot older than the one already on disk is
        skipped.
        """
        if self._persist_path is None:
            return True

        with self._lock:
            self._snapshot_seq += 1
            seq = self._snapshot_seq
            data = dict(self._positions)

        try:
            self._write_snapshot(data, seq)
        except PersistenceError as exc:
            logger.error(
                "Failed to save positions file",
                path=exc.path,
                error=str(exc),
            )
            return False

        logger.info("Positions file saved", path=str(self._persist_path), count=len(data))
        return True

    def _write_snapshot(self, data: dict[str, float], seq: int) -> None:
        """Write to a temporary sibling and rename over the snapshot."""
        path = self._persist_path
        with self._write_lock:
            if seq < self._written_seq:
                logger.debug("Skipping stale positions snapshot", seq=seq, written=self._written_seq)
                return
            tmp_name: str | None = None
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f)
                os.replace(tmp_name, path)
                tmp_name = None
                self._written_seq = seq
            except OSError as exc:
                raise PersistenceError(str(exc), path=str(path)) from exc
            finally:
                if tmp_name is not None and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
