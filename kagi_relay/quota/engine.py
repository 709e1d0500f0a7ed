"""Per-identity, multi-tier quota engine.

Every paid Kagi call is gated by this engine. It answers two questions for the
command layer: "may this identity run this command now?" (``can_proceed``) and
"this identity just ran it" (``record``). Usage is counted per identity, per
command scope and across all scopes, over rolling windows ending now.

Design notes:
- ``can_proceed`` and ``record`` are separate calls with the Kagi request in
  between. Concurrent commands from one identity can all pass the check before
  any of them is recorded, which overshoots the limit by the number of
  in-flight commands. Serializing admission would block users on Kagi latency.
- Internal faults while evaluating a command fail open: the command is allowed.
- Persistence is best-effort. A failed save is logged; the in-memory ledger is
  authoritative for the running process.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterable

from kagi_relay.adapters.usage_store.base import AbstractUsageStore
from kagi_relay.core.errors import EvaluationError, StorageError
from kagi_relay.core.logging import hash_identifier
from kagi_relay.quota.ledger import UsageLedger
from kagi_relay.quota.models import (
    RETENTION_SECONDS,
    UNLIMITED,
    QuotaConfiguration,
    QuotaRule,
    RemainingQuota,
    UsageRecord,
)

logger = logging.getLogger(__name__)


class QuotaEngine:
    """Admission control and usage accounting for Kagi commands."""

    def __init__(
        self,
        config: QuotaConfiguration,
        *,
        privileged: Iterable[str] = (),
        store: AbstractUsageStore | None = None,
        ledger: UsageLedger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Validated quota configuration.
            privileged: Identities exempt from every rule and from accounting.
            store: Durable store; persistence is disabled when None.
            ledger: Ledger to use (a fresh empty one by default).
            clock: Time source returning UNIX time in seconds.
        """
        self._config = config
        self._privileged = frozenset(privileged)
        self._store = store
        self._ledger = ledger if ledger is not None else UsageLedger()
        self._clock = clock
        # Held from snapshot to write so an older snapshot never lands last
        self._save_lock = threading.Lock()

    @property
    def config(self) -> QuotaConfiguration:
        return self._config

    @property
    def ledger(self) -> UsageLedger:
        return self._ledger

    @property
    def persistence_enabled(self) -> bool:
        return self._store is not None

    def is_privileged(self, identity: str) -> bool:
        return identity in self._privileged

    # -- admission ---------------------------------------------------------

    def can_proceed(self, identity: str, scope: str) -> bool:
        """Return whether ``identity`` may run ``scope`` now.

        The per-scope rule is checked first, then the global rule. Unlimited
        rules are skipped without touching the ledger.
        """
        if self.is_privileged(identity):
            return True

        try:
            return self._evaluate(identity, scope)
        except EvaluationError as exc:
            self._log_evaluation_failed(identity, scope, exc.code, exc.message)
            return True
        except Exception as exc:
            self._log_evaluation_failed(identity, scope, type(exc).__name__, str(exc))
            return True

    def _evaluate(self, identity: str, scope: str) -> bool:
        now = self._clock()

        scope_rule = self._config.rule_for(scope)
        if scope_rule is not None and not scope_rule.is_unlimited:
            used = self._count(identity, scope_rule, now, scope=scope)
            if used >= scope_rule.limit:
                self._log_denied(identity, scope, "scope", scope_rule, used)
                return False

        global_rule = self._config.global_rule
        if not global_rule.is_unlimited:
            used = self._count(identity, global_rule, now)
            if used >= global_rule.limit:
                self._log_denied(identity, scope, "global", global_rule, used)
                return False

        return True

    def _count(self, identity: str, rule: QuotaRule, now: float, *, scope: str | None = None) -> int:
        try:
            return self._ledger.count(identity, since=now - rule.period.seconds, scope=scope)
        except Exception as exc:
            raise EvaluationError(
                code="quota_evaluation_failed",
                message=f"Could not count usage: {exc}",
                details={"scope": scope or "*"},
            ) from exc

    def _log_evaluation_failed(self, identity: str, scope: str, code: str, message: str) -> None:
        logger.error(
            "quota.evaluation_failed",
            extra={
                "identity_hash": hash_identifier(identity),
                "scope": scope,
                "error_code": code,
                "error_msg": message,
            },
            exc_info=True,
        )

    def _log_denied(self, identity: str, scope: str, tier: str, rule: QuotaRule, used: int) -> None:
        logger.warning(
            "quota.denied",
            extra={
                "identity_hash": hash_identifier(identity),
                "scope": scope,
                "limit_type": tier,
                "limit": rule.limit,
                "period": rule.period.value,
                "used": used,
            },
        )

    # -- accounting --------------------------------------------------------

    def record(self, identity: str, scope: str) -> None:
        """Charge one action in ``scope`` to ``identity``.

        Privileged identities are never recorded. When persistence is enabled
        the full ledger is saved; a save failure does not propagate.
        """
        if self.is_privileged(identity):
            return

        self._ledger.append(UsageRecord(identity=identity, scope=scope, occurred_at=self._clock()))
        logger.debug(
            "quota.recorded",
            extra={"identity_hash": hash_identifier(identity), "scope": scope},
        )
        self._save()

    def load(self) -> None:
        """Populate the ledger from the store, starting empty on failure."""
        if self._store is None:
            return

        try:
            records = self._store.load()
        except StorageError as exc:
            logger.warning(
                "quota.store_load_failed",
                extra={"error_code": exc.code, "error_msg": exc.message},
            )
            records = []

        self._ledger.replace(records)

    def compact(self) -> int:
        """Drop records older than the longest window and persist the result.

        Returns:
            Number of records removed.
        """
        cutoff = self._clock() - RETENTION_SECONDS
        removed = self._ledger.discard_older_than(cutoff)
        logger.info(
            "quota.compacted",
            extra={"removed": removed, "remaining": len(self._ledger)},
        )
        self._save()
        return removed

    def _save(self) -> None:
        if self._store is None:
            return
        try:
            with self._save_lock:
                self._store.save(self._ledger.snapshot())
        except StorageError as exc:
            logger.error(
                "quota.store_save_failed",
                extra={"error_code": exc.code, "error_msg": exc.message},
            )

    # -- introspection -----------------------------------------------------

    def remaining_quota(self, identity: str, scope: str) -> RemainingQuota:
        """Remaining actions per tier for display; ``-1`` means unlimited."""
        if self.is_privileged(identity):
            return RemainingQuota(scope_remaining=UNLIMITED, global_remaining=UNLIMITED)

        now = self._clock()

        scope_remaining = UNLIMITED
        scope_rule = self._config.rule_for(scope)
        if scope_rule is not None and not scope_rule.is_unlimited:
            scope_remaining = scope_rule.limit - self._ledger.count(
                identity, since=now - scope_rule.period.seconds, scope=scope
            )

        global_remaining = UNLIMITED
        global_rule = self._config.global_rule
        if not global_rule.is_unlimited:
            global_remaining = global_rule.limit - self._ledger.count(
                identity, since=now - global_rule.period.seconds
            )

        return RemainingQuota(scope_remaining=scope_remaining, global_remaining=global_remaining)

    def describe_scope_limit(self, scope: str) -> QuotaRule | None:
        rule = self._config.rule_for(scope)
        if rule is None or rule.is_unlimited:
            return None
        return rule

    def describe_global_limit(self) -> QuotaRule | None:
        rule = self._config.global_rule
        return None if rule.is_unlimited else rule
