"""In-memory usage ledger.

Notes:
- Per-process only: all state is local to one running instance.
- Thread-safe: one lock guards appends, scans and compaction.
"""

from __future__ import annotations

import threading
from typing import Iterable

from kagi_relay.quota.models import UsageRecord


class UsageLedger:
    """Ordered collection of usage records with windowed counting.

    Counting is a linear scan. At the scale of one bot instance with per-user
    quotas this stays cheap, and compaction bounds the list to one month.
    """

    def __init__(self, records: Iterable[UsageRecord] = ()) -> None:
        self._lock = threading.RLock()
        self._records: list[UsageRecord] = list(records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"UsageLedger(size={len(self)})"

    def append(self, record: UsageRecord) -> None:
        with self._lock:
            self._records.append(record)

    def count(self, identity: str, since: float, scope: str | None = None) -> int:
        """Count records for ``identity`` at or after ``since``.

        Args:
            identity: Identity to match.
            since: Window start (UNIX seconds, inclusive).
            scope: Only count this scope when given; any scope when None.

        Returns:
            Number of matching records.
        """
        with self._lock:
            return sum(
                1
                for record in self._records
                if record.identity == identity
                and record.occurred_at >= since
                and (scope is None or record.scope == scope)
            )

    def discard_older_than(self, cutoff: float) -> int:
        """Drop every record with ``occurred_at < cutoff``.

        Returns:
            Number of records removed.
        """
        with self._lock:
            kept = [record for record in self._records if record.occurred_at >= cutoff]
            removed = len(self._records) - len(kept)
            self._records = kept
            return removed

    def snapshot(self) -> list[UsageRecord]:
        """Return a copy of the records, safe to serialize outside the lock."""
        with self._lock:
            return list(self._records)

    def replace(self, records: Iterable[UsageRecord]) -> None:
        with self._lock:
            self._records = list(records)
