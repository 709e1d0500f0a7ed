"""Value types shared by the quota engine, its configuration and its store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

# Sentinel limit meaning "no cap". Never evaluated against the ledger.
UNLIMITED = -1

_HOUR = 60 * 60
_DAY = 24 * _HOUR


class QuotaPeriod(str, Enum):
    """Rolling window lengths a quota rule can be expressed in."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def seconds(self) -> int:
        return _PERIOD_SECONDS[self]


_PERIOD_SECONDS: dict[QuotaPeriod, int] = {
    QuotaPeriod.HOURLY: _HOUR,
    QuotaPeriod.DAILY: _DAY,
    QuotaPeriod.WEEKLY: 7 * _DAY,
    QuotaPeriod.MONTHLY: 30 * _DAY,
}

# Longest window any rule can use; records older than this are dead weight.
RETENTION_SECONDS = QuotaPeriod.MONTHLY.seconds


@dataclass(frozen=True)
class UsageRecord:
    """One admitted and completed action.

    Attributes:
        identity: End-user key the action is charged to.
        scope: Command the action belongs to (e.g. "search").
        occurred_at: UNIX time in seconds.
    """

    identity: str
    scope: str
    occurred_at: float


@dataclass(frozen=True)
class QuotaRule:
    """A cap of ``limit`` actions per rolling ``period``."""

    limit: int
    period: QuotaPeriod

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED


@dataclass(frozen=True)
class QuotaConfiguration:
    """Global rule plus optional per-scope rules.

    A scope missing from ``per_scope`` has no cap of its own; only the global
    rule applies to it.
    """

    global_rule: QuotaRule
    per_scope: Mapping[str, QuotaRule] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the mapping so the configuration stays read-only after startup
        object.__setattr__(self, "per_scope", MappingProxyType(dict(self.per_scope)))

    def rule_for(self, scope: str) -> QuotaRule | None:
        return self.per_scope.get(scope)


@dataclass(frozen=True)
class RemainingQuota:
    """Remaining actions per tier; ``UNLIMITED`` (-1) when a tier has no cap.

    Values are raw: a concurrent burst can push them below zero, and callers
    clamp for display.
    """

    scope_remaining: int
    global_remaining: int
