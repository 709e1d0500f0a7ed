"""Usage store interface.

The quota engine depends on this abstraction so the JSON file can be swapped
for another backend (e.g. SQLite or an append log) without touching the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from kagi_relay.quota.models import UsageRecord


class AbstractUsageStore(ABC):
    """Interface for durable usage record stores."""

    @abstractmethod
    def load(self) -> list[UsageRecord]:
        """Read every persisted record.

        Returns:
            Records in stored order; empty when nothing was persisted yet.

        Raises:
            StorageError: If the backing store cannot be read or decoded.
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, records: Sequence[UsageRecord]) -> None:
        """Replace the persisted records with ``records``.

        Raises:
            StorageError: If the backing store cannot be written.
        """
        raise NotImplementedError
