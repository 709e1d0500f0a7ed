"""JSON file usage store.

File format: a JSON array of ``{"userId", "command", "timestamp"}`` objects with
``timestamp`` in UNIX epoch milliseconds. Every save rewrites the whole file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Sequence

from kagi_relay.adapters.usage_store.base import AbstractUsageStore
from kagi_relay.core.errors import StorageError
from kagi_relay.quota.models import UsageRecord

logger = logging.getLogger(__name__)


def _record_to_json(record: UsageRecord) -> dict[str, Any]:
    return {
        "userId": record.identity,
        "command": record.scope,
        "timestamp": int(round(record.occurred_at * 1000)),
    }


def _record_from_json(item: Any) -> UsageRecord:
    if not isinstance(item, dict):
        raise ValueError(f"expected an object, got {type(item).__name__}")
    identity, scope, timestamp = item["userId"], item["command"], item["timestamp"]
    if not isinstance(identity, str) or not isinstance(scope, str):
        raise ValueError("userId and command must be strings")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise ValueError("timestamp must be a number")
    return UsageRecord(
        identity=identity,
        scope=scope,
        occurred_at=float(timestamp) / 1000.0,
    )


class JsonFileUsageStore(AbstractUsageStore):
    """Usage store backed by a single JSON file.

    Writes go to a temporary file in the same directory and are moved into
    place, so readers never observe a partially written file. Concurrent saves
    are serialized by a lock.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[UsageRecord]:
        if not self._path.is_file():
            logger.info("usage_store.missing", extra={"path": str(self._path)})
            return []

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("usage file must contain a JSON array")
            records = [_record_from_json(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise StorageError(
                code="usage_store_load_failed",
                message=f"Could not load usage records: {exc}",
                details={"path": str(self._path)},
            ) from exc

        logger.info(
            "usage_store.loaded",
            extra={"path": str(self._path), "records": len(records)},
        )
        return records

    def save(self, records: Sequence[UsageRecord]) -> None:
        payload = json.dumps([_record_to_json(record) for record in records])

        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=self._path.parent,
                    prefix=f".{self._path.name}.",
                    suffix=".tmp",
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        handle.write(payload)
                    os.replace(tmp_name, self._path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as exc:
                raise StorageError(
                    code="usage_store_save_failed",
                    message=f"Could not save usage records: {exc}",
                    details={"path": str(self._path)},
                ) from exc

        logger.debug(
            "usage_store.saved",
            extra={"path": str(self._path), "records": len(records)},
        )
