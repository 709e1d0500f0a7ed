"""Quota enforcement dependencies for FastAPI routes.

This module wires the quota engine into the HTTP layer.

Flow for a paid command:
1. ``require_quota(command)`` resolves the caller identity and asks the engine
   whether it may proceed; a denial raises 429 before Kagi is called.
2. The route performs the Kagi call.
3. On success the route commits the returned ticket, which records usage.
   A failed Kagi call is never recorded, so it does not consume quota.

The engine instance lives on ``app.state`` and is created once per app.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool

from kagi_relay.adapters.usage_store.json_file import JsonFileUsageStore
from kagi_relay.core.config import QuotaSettings, settings
from kagi_relay.core.errors import (
    DirectMessageNotAllowedError,
    QuotaExceededAppError,
    ValidationAppError,
)
from kagi_relay.core.logging import hash_identifier
from kagi_relay.quota.config import build_quota_configuration, parse_privileged_identities
from kagi_relay.quota.engine import QuotaEngine

logger = logging.getLogger(__name__)

GUILD_HEADER = "X-Guild-ID"


def build_quota_engine(
    quota_settings: QuotaSettings,
    *,
    clock: Callable[[], float] = time.time,
) -> QuotaEngine:
    """Create the quota engine described by settings.

    Raises:
        ConfigurationError: If a limit or period is malformed.
    """
    config = build_quota_configuration(quota_settings)
    privileged = parse_privileged_identities(quota_settings.privileged_users)
    store = JsonFileUsageStore(quota_settings.data_file) if quota_settings.persist else None

    logger.info(
        "quota.engine_built",
        extra={
            "persist": quota_settings.persist,
            "privileged_count": len(privileged),
        },
    )
    return QuotaEngine(config, privileged=privileged, store=store, clock=clock)


def get_quota_engine(request: Request) -> QuotaEngine:
    return request.app.state.quota_engine


def get_identity(request: Request) -> str:
    """Read the invoking user's identity from the configured header.

    Raises:
        ValidationAppError: If the header is missing or blank.
    """
    header_name = settings.app.identity_header
    identity = (request.headers.get(header_name) or "").strip()
    if not identity:
        raise ValidationAppError(
            code="missing_identity",
            message=f"Missing user identity. Provide the {header_name} header.",
        )
    return identity


def enforce_direct_message_policy(request: Request) -> None:
    """Reject commands issued outside a guild when DMs are disabled."""
    if settings.app.allow_direct_messages:
        return
    if (request.headers.get(GUILD_HEADER) or "").strip():
        return
    raise DirectMessageNotAllowedError(
        code="direct_messages_disabled",
        message="Commands cannot be used in Direct Messages.",
    )


def build_limit_message(engine: QuotaEngine, command: str) -> str:
    """Build the user-facing explanation for a quota denial."""
    message = "You have reached your query limit. "

    command_rule = engine.describe_scope_limit(command)
    if command_rule is not None:
        message += (
            f"The limit for /{command} is {command_rule.limit} queries "
            f"per {command_rule.period.value}. "
        )

    global_rule = engine.describe_global_limit()
    if global_rule is not None:
        message += f"The global limit is {global_rule.limit} queries per {global_rule.period.value}."

    return message.strip()


@dataclass
class QuotaTicket:
    """Admission granted to one identity for one command.

    ``commit`` must be awaited once the Kagi call succeeded.
    """

    engine: QuotaEngine
    identity: str
    scope: str

    async def commit(self) -> None:
        # record() may rewrite the usage file; keep it off the event loop
        await run_in_threadpool(self.engine.record, self.identity, self.scope)


def require_quota(command: str) -> Callable[..., Awaitable[QuotaTicket]]:
    """Build a FastAPI dependency gating a route on ``command``'s quota.

    Usage:
        @router.post("/search")
        async def search(ticket: QuotaTicket = Depends(require_quota("search"))):
            ...
            await ticket.commit()
    """

    async def _enforce(
        request: Request,
        identity: str = Depends(get_identity),
        engine: QuotaEngine = Depends(get_quota_engine),
    ) -> QuotaTicket:
        enforce_direct_message_policy(request)

        if engine.can_proceed(identity, command):
            return QuotaTicket(engine=engine, identity=identity, scope=command)

        command_rule = engine.describe_scope_limit(command)
        global_rule = engine.describe_global_limit()
        logger.warning(
            "quota.exceeded",
            extra={
                "identity_hash": hash_identifier(identity),
                "command": command,
                "command_limit": command_rule.limit if command_rule else None,
                "global_limit": global_rule.limit if global_rule else None,
            },
        )
        raise QuotaExceededAppError(
            code="quota_exceeded",
            message=build_limit_message(engine, command),
            details={"scope": command},
        )

    return _enforce
