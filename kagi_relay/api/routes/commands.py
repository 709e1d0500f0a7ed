from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from kagi_relay.core.quota import (
    QuotaTicket,
    enforce_direct_message_policy,
    get_identity,
    get_quota_engine,
    require_quota,
)
from kagi_relay.quota.engine import QuotaEngine
from kagi_relay.schemas.commands import (
    CommandReply,
    FastGPTCommandRequest,
    QueryCommandRequest,
    SearchCommandRequest,
    SummarizeConversationRequest,
    SummarizeTextRequest,
    SummarizeUrlRequest,
)
from kagi_relay.services.command_service import CommandService, build_limits_reply

router = APIRouter(prefix="/commands", tags=["Commands"])


def get_command_service(request: Request) -> CommandService:
    return request.app.state.command_service


@router.post("/search", response_model=CommandReply)
async def search(
    body: SearchCommandRequest,
    ticket: QuotaTicket = Depends(require_quota("search")),
    service: CommandService = Depends(get_command_service),
) -> CommandReply:
    """Search the web using the Kagi Search API."""
    reply = await service.search(body.query, limit=body.limit)
    await ticket.commit()
    return reply


@router.post("/websearch", response_model=CommandReply)
async def websearch(
    body: QueryCommandRequest,
    ticket: QuotaTicket = Depends(require_quota("websearch")),
    service: CommandService = Depends(get_command_service),
) -> CommandReply:
    """Search non-commercial web content with the Web Enrichment API."""
    reply = await service.websearch(body.query)
    await ticket.commit()
    return reply


@router.post("/newssearch", response_model=CommandReply)
async def newssearch(
    body: QueryCommandRequest,
    ticket: QuotaTicket = Depends(require_quota("newssearch")),
    service: CommandService = Depends(get_command_service),
) -> CommandReply:
    """Search non-commercial news with the News Enrichment API."""
    reply = await service.newssearch(body.query)
    await ticket.commit()
    return reply


@router.post("/fastgpt", response_model=CommandReply)
async def fastgpt(
    body: FastGPTCommandRequest,
    ticket: QuotaTicket = Depends(require_quota("fastgpt")),
    service: CommandService = Depends(get_command_service),
) -> CommandReply:
    """Ask Kagi FastGPT a question.

    Long answers come back split: ``content`` is the first message and
    ``followups`` hold the rest in order.
    """
    reply = await service.fastgpt(body.query, cache=body.cache)
    await ticket.commit()
    return reply


@router.post("/summarize/url", response_model=CommandReply)
async def summarize_url(
    body: SummarizeUrlRequest,
    ticket: QuotaTicket = Depends(require_quota("summarize")),
    service: CommandService = Depends(get_command_service),
) -> CommandReply:
    """Summarize the content of a URL with the Universal Summarizer."""
    reply = await service.summarize_url(body)
    await ticket.commit()
    return reply


@router.post("/summarize/text", response_model=CommandReply)
async def summarize_text(
    body: SummarizeTextRequest,
    ticket: QuotaTicket = Depends(require_quota("summarize")),
    service: CommandService = Depends(get_command_service),
) -> CommandReply:
    """Summarize a block of text with the Universal Summarizer."""
    reply = await service.summarize_text(body)
    await ticket.commit()
    return reply


@router.post("/summarize/conversation", response_model=CommandReply)
async def summarize_conversation(
    body: SummarizeConversationRequest,
    ticket: QuotaTicket = Depends(require_quota("summarize")),
    service: CommandService = Depends(get_command_service),
) -> CommandReply:
    """Summarize recent channel messages supplied by the chat gateway.

    Transcripts over 10 000 characters are summarized with FastGPT instead.
    """
    reply = await service.summarize_conversation(body)
    await ticket.commit()
    return reply


@router.get("/limits", response_model=CommandReply)
async def limits(
    request: Request,
    identity: str = Depends(get_identity),
    engine: QuotaEngine = Depends(get_quota_engine),
) -> CommandReply:
    """Show the caller's remaining query limits. Never counts against quota."""
    enforce_direct_message_policy(request)
    return build_limits_reply(engine, identity)
