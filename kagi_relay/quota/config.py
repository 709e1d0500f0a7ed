"""Build a validated QuotaConfiguration from flat settings.

The set of commands that may carry their own limit is fixed. A command whose
limit is not configured simply has no per-command rule; it is still subject to
the global rule.
"""

from __future__ import annotations

import logging

from kagi_relay.core.config import QuotaSettings
from kagi_relay.core.errors import ConfigurationError
from kagi_relay.quota.models import UNLIMITED, QuotaConfiguration, QuotaPeriod, QuotaRule

logger = logging.getLogger(__name__)

KNOWN_COMMANDS: tuple[str, ...] = ("fastgpt", "websearch", "newssearch", "summarize", "search")

DEFAULT_PERIOD = QuotaPeriod.DAILY


def parse_period(raw: str | None, *, setting: str) -> QuotaPeriod:
    """Parse a period name, defaulting to daily when unset.

    Args:
        raw: Period string from configuration (case-insensitive) or None.
        setting: Name of the setting, used in error details.

    Returns:
        QuotaPeriod matching the string.

    Raises:
        ConfigurationError: If the string is not a known period.
    """
    if raw is None or not raw.strip():
        return DEFAULT_PERIOD

    try:
        return QuotaPeriod(raw.strip().lower())
    except ValueError:
        valid = ", ".join(p.value for p in QuotaPeriod)
        raise ConfigurationError(
            code="invalid_quota_period",
            message=f"Unknown quota period '{raw}' for {setting}. Expected one of: {valid}",
            details={"setting": setting, "value": raw},
        ) from None


def parse_limit(raw: str, *, setting: str) -> int:
    """Parse a limit: ``-1`` for unlimited or a non-negative integer.

    Raises:
        ConfigurationError: If the value is not an integer or is below -1.
    """
    try:
        limit = int(raw.strip())
    except ValueError:
        raise ConfigurationError(
            code="invalid_quota_limit",
            message=f"Quota limit for {setting} must be an integer, got '{raw}'",
            details={"setting": setting, "value": raw},
        ) from None

    if limit < UNLIMITED:
        raise ConfigurationError(
            code="invalid_quota_limit",
            message=f"Quota limit for {setting} must be -1 (unlimited) or >= 0, got {limit}",
            details={"setting": setting, "value": raw},
        )
    return limit


def parse_privileged_identities(raw: str | None) -> frozenset[str]:
    """Parse a comma-separated identity list.

    Examples:
        >>> sorted(parse_privileged_identities("123, 456 ,,123"))
        ['123', '456']
        >>> parse_privileged_identities(None)
        frozenset()
    """
    if not raw:
        return frozenset()
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def build_quota_configuration(quota_settings: QuotaSettings) -> QuotaConfiguration:
    """Turn raw quota settings into an immutable QuotaConfiguration.

    Args:
        quota_settings: Flat settings (``QUERY_LIMIT_*`` environment keys).

    Returns:
        Validated configuration.

    Raises:
        ConfigurationError: On a malformed limit or period.
    """
    raw_global = quota_settings.global_limit
    global_limit = (
        parse_limit(raw_global, setting="QUERY_LIMIT_GLOBAL")
        if raw_global is not None and raw_global.strip()
        else UNLIMITED
    )
    global_rule = QuotaRule(
        limit=global_limit,
        period=parse_period(quota_settings.global_period, setting="QUERY_LIMIT_GLOBAL_PERIOD"),
    )

    per_scope: dict[str, QuotaRule] = {}
    for command in KNOWN_COMMANDS:
        key = f"QUERY_LIMIT_{command.upper()}"
        raw_limit: str | None = getattr(quota_settings, f"{command}_limit")
        if raw_limit is None or not raw_limit.strip():
            continue
        per_scope[command] = QuotaRule(
            limit=parse_limit(raw_limit, setting=key),
            period=parse_period(getattr(quota_settings, f"{command}_period"), setting=f"{key}_PERIOD"),
        )

    logger.info(
        "quota.configuration_built",
        extra={
            "global_limit": global_rule.limit,
            "global_period": global_rule.period.value,
            "limited_commands": sorted(per_scope),
        },
    )

    return QuotaConfiguration(global_rule=global_rule, per_scope=per_scope)
