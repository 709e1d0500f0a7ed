"""Command service turning Kagi responses into chat-ready replies.

Each public coroutine corresponds to one chat command. It:
- Calls the Kagi adapter
- Renders the result the way the bot always has (embeds, colors, footers)
- Splits or truncates text so every message fits the channel limit
- Rewrites Kagi failures into the user-facing wording of that command

Quota enforcement is not done here; routes gate and record around these calls.
"""

import logging
import math
from datetime import datetime, timezone

from kagi_relay.adapters.kagi.base import AbstractKagiClient
from kagi_relay.core.config import settings
from kagi_relay.core.errors import KagiAppError, ValidationAppError
from kagi_relay.quota.config import KNOWN_COMMANDS
from kagi_relay.quota.engine import QuotaEngine
from kagi_relay.schemas.commands import (
    ChatMessage,
    CommandReply,
    Embed,
    FollowUp,
    SummarizeConversationRequest,
    SummarizeTextRequest,
    SummarizeUrlRequest,
)
from kagi_relay.schemas.kagi import KagiMeta, SearchObject, SummarizeResponse
from kagi_relay.utils.markdown import html_to_markdown
from kagi_relay.utils.message_splitter import fit_message, truncate

logger = logging.getLogger(__name__)

SEARCH_COLOR = 0x0099FF
NEWS_COLOR = 0x00FF99
SUMMARY_COLOR = 0x8855FF
LIMITS_COLOR = 0x3498DB

SNIPPET_MAX_CHARS = 100
ENRICHMENT_MAX_RESULTS = 10
RELATED_SEARCHES_SHOWN = 5
FASTGPT_SOURCES_SHOWN = 5

# Transcripts longer than this go to FastGPT instead of the summarizer
CONVERSATION_SUMMARIZER_MAX_CHARS = 10_000

SUMMARIZER_PRICE_PER_1K_TOKENS = 0.03
FASTGPT_PRICE_PER_1K_TOKENS = 0.015
MURIEL_NOTE = "Note: The Muriel engine costs $1 USD per summary, regardless of length."


def estimate_token_count(text: str) -> int:
    """Rough token estimate used for summary output (4 characters per token).

    Args:
        text: Generated text.

    Returns:
        int: Estimated token count, rounded up.
    """
    return math.ceil(len(text) / 4)


def format_summary_price(input_tokens: int, output_tokens: int, engine: str | None) -> str:
    """Format the estimated Universal Summarizer cost.

    Muriel is billed at a fixed price; the other engines per 1000 tokens.

    Args:
        input_tokens: Tokens reported by Kagi.
        output_tokens: Estimated output tokens.
        engine: Summarization engine, ``None`` for the default.

    Returns:
        str: Human-readable price such as ``$0.0042 USD``.
    """
    if engine == "muriel":
        return "$1.00 USD (fixed price)"
    price = (input_tokens + output_tokens) / 1000 * SUMMARIZER_PRICE_PER_1K_TOKENS
    return f"${price:.4f} USD"


def format_api_balance(meta: KagiMeta) -> str:
    if meta.api_balance is None:
        return "N/A"
    return f"${meta.api_balance:.3f}"


def format_conversation(messages: list[ChatMessage]) -> list[str]:
    """Render transcript lines as ``author: content``, dropping blank messages.

    Bot authors are suffixed with `` (Bot)``.
    """
    lines = []
    for message in messages:
        if not message.content.strip():
            continue
        author = f"{message.author} (Bot)" if message.bot else message.author
        lines.append(f"{author}: {message.content}")
    return lines


def _kagi_failure(api_name: str, exc: KagiAppError) -> KagiAppError:
    """Reword an adapter error the way the command reports it to users."""
    message = f"An error occurred while querying the {api_name}."
    detail = (exc.details or {}).get("upstream_detail") or exc.message
    if detail:
        message += f" Error: {detail}"
    return KagiAppError(code=exc.code, message=message, details=exc.details)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CommandService:
    """Runs the Kagi-backed chat commands."""

    def __init__(self, kagi: AbstractKagiClient) -> None:
        """Initialize the service.

        Args:
            kagi: Kagi API client used by every command.
        """
        self.kagi = kagi

    async def search(self, query: str, limit: int = 5) -> CommandReply:
        """``/search``: Kagi Search API results with related searches."""
        try:
            response = await self.kagi.search(query)
        except KagiAppError as exc:
            raise _kagi_failure("Kagi Search API", exc) from exc

        results = response.results
        if not results:
            return CommandReply(content="No results found for your query.")

        shown = min(limit, len(results))
        balance = format_api_balance(response.meta)
        embed = Embed(
            title=f"Search Results for: {query}",
            description="Powered by Kagi Search API",
            color=SEARCH_COLOR,
            footer=f"API Balance: {balance}",
            timestamp=_now(),
        )
        self._add_result_fields(embed, results[:shown], link_text="Link")

        related = response.related_searches
        if related:
            embed.add_field("Related Searches", ", ".join(related[:RELATED_SEARCHES_SHOWN]))

        if len(results) > shown:
            embed.footer = f"Showing {shown} of {len(results)} results | API Balance: {balance}"

        logger.info("command.search_rendered", extra={"results": len(results), "shown": shown})
        return CommandReply(embeds=[embed])

    async def websearch(self, query: str) -> CommandReply:
        """``/websearch``: non-commercial web results from the Web Enrichment API."""
        try:
            response = await self.kagi.enrich_web(query)
        except KagiAppError as exc:
            raise _kagi_failure("Kagi Web Enrichment API", exc) from exc

        return self._enrichment_reply(
            response.results,
            response.meta,
            title=f"Web Search Results for: {query}",
            description="Non-commercial web content from Kagi Enrichment API",
            color=SEARCH_COLOR,
            empty_message="No results found for your query.",
            link_text="Link",
        )

    async def newssearch(self, query: str) -> CommandReply:
        """``/newssearch``: non-commercial news from the News Enrichment API."""
        try:
            response = await self.kagi.enrich_news(query)
        except KagiAppError as exc:
            raise _kagi_failure("Kagi News Enrichment API", exc) from exc

        return self._enrichment_reply(
            response.results,
            response.meta,
            title=f"News Search Results for: {query}",
            description="Non-commercial news content from Kagi Enrichment API",
            color=NEWS_COLOR,
            empty_message="No news results found for your query.",
            link_text="Read more",
            show_published=True,
        )

    async def fastgpt(self, query: str, *, cache: bool = True) -> CommandReply:
        """``/fastgpt``: answer with sources, split into channel-sized messages."""
        try:
            response = await self.kagi.fastgpt(query, cache=cache, web_search=True)
        except KagiAppError as exc:
            raise _kagi_failure("Kagi FastGPT API", exc) from exc

        content = f"**Query:** {query}\n\n{html_to_markdown(response.data.output)}"

        references = response.data.references
        if references:
            content += "\n\n**Sources:**\n"
            for index, ref in enumerate(references[:FASTGPT_SOURCES_SHOWN], start=1):
                content += f"{index}. [{ref.title}]({ref.url})\n"
            if len(references) > FASTGPT_SOURCES_SHOWN:
                content += f"...and {len(references) - FASTGPT_SOURCES_SHOWN} more sources"

        content += f"\n\n**API Balance:** {format_api_balance(response.meta)}"

        chunks = fit_message(content, limit=settings.app.max_message_length)
        logger.info(
            "command.fastgpt_rendered",
            extra={"chars": len(content), "messages": len(chunks), "references": len(references)},
        )
        return CommandReply(
            content=chunks[0],
            followups=[FollowUp(content=chunk) for chunk in chunks[1:]],
        )

    async def summarize_url(self, request: SummarizeUrlRequest) -> CommandReply:
        response = await self._summarize(
            request.engine,
            url=request.url,
            summary_type=request.summary_type,
            target_language=request.target_language,
            cache=request.cache,
        )
        embed = self._summary_embed("URL Summary", response, request.engine, request.summary_type)
        embed.url = request.url
        return self._summary_reply(embed, request.engine, request.target_language)

    async def summarize_text(self, request: SummarizeTextRequest) -> CommandReply:
        response = await self._summarize(
            request.engine,
            text=request.text,
            summary_type=request.summary_type,
            target_language=request.target_language,
            cache=request.cache,
        )
        embed = self._summary_embed("Text Summary", response, request.engine, request.summary_type)
        return self._summary_reply(embed, request.engine, request.target_language)

    async def summarize_conversation(self, request: SummarizeConversationRequest) -> CommandReply:
        """Summarize a channel transcript.

        Short transcripts use the Universal Summarizer. Longer ones are sent to
        FastGPT without web search, since the summarizer rejects them.

        Raises:
            ValidationAppError: If no message has text content.
        """
        lines = format_conversation(request.messages)
        if not lines:
            raise ValidationAppError(
                code="empty_conversation",
                message="No messages with text content found to summarize",
            )
        transcript = "\n".join(lines)

        if len(transcript) <= CONVERSATION_SUMMARIZER_MAX_CHARS:
            response = await self._summarize(
                request.engine,
                text=transcript,
                summary_type=request.summary_type,
                target_language=request.target_language,
            )
            embed = self._summary_embed(
                "Channel Summary",
                response,
                request.engine,
                request.summary_type,
                messages_analyzed=len(lines),
            )
            return self._summary_reply(embed, request.engine, request.target_language)

        logger.info(
            "command.conversation_fastgpt_fallback",
            extra={"chars": len(transcript), "messages": len(lines)},
        )
        try:
            fallback = await self.kagi.fastgpt(
                f"Summarize the following chat conversation:\n\n{transcript}",
                cache=False,
                web_search=False,
            )
        except KagiAppError as exc:
            raise _kagi_failure("Kagi API", exc) from exc

        output = fallback.data.output
        input_tokens = fallback.data.tokens
        output_tokens = estimate_token_count(output)
        total = input_tokens + output_tokens
        cost = total / 1000 * FASTGPT_PRICE_PER_1K_TOKENS

        embed = Embed(
            title="Channel Summary (FastGPT)",
            description=output,
            color=SUMMARY_COLOR,
            timestamp=_now(),
        )
        embed.add_field("Messages Analyzed", str(len(lines)), inline=True)
        embed.add_field("Input Tokens", str(input_tokens), inline=True)
        embed.add_field("Output Tokens", str(output_tokens), inline=True)
        embed.add_field("Total Tokens", str(total), inline=True)
        embed.add_field("Estimated Cost", f"${cost:.4f} USD", inline=True)

        return self._summary_reply(embed, request.engine, target_language=None)

    async def _summarize(self, engine: str | None, **params) -> SummarizeResponse:
        try:
            return await self.kagi.summarize(engine=engine, **params)
        except KagiAppError as exc:
            raise _kagi_failure("Kagi API", exc) from exc

    @staticmethod
    def _summary_embed(
        title: str,
        response: SummarizeResponse,
        engine: str | None,
        summary_type: str | None,
        *,
        messages_analyzed: int | None = None,
    ) -> Embed:
        output = response.data.output
        input_tokens = response.data.tokens
        output_tokens = estimate_token_count(output)

        embed = Embed(title=title, description=output, color=SUMMARY_COLOR, timestamp=_now())
        embed.add_field("Engine", engine or "cecil (default)", inline=True)
        embed.add_field("Summary Type", summary_type or "summary (default)", inline=True)
        if messages_analyzed is not None:
            embed.add_field("Messages Analyzed", str(messages_analyzed), inline=True)
        embed.add_field("Input Tokens", str(input_tokens), inline=True)
        embed.add_field("Output Tokens", str(output_tokens), inline=True)
        embed.add_field("Total Tokens", str(input_tokens + output_tokens), inline=True)
        embed.add_field(
            "Estimated Cost",
            format_summary_price(input_tokens, output_tokens, engine),
            inline=True,
        )
        return embed

    @staticmethod
    def _summary_reply(embed: Embed, engine: str | None, target_language: str | None) -> CommandReply:
        if target_language:
            embed.add_field("Target Language", target_language, inline=True)

        followups = []
        if engine == "muriel":
            followups.append(FollowUp(content=MURIEL_NOTE, ephemeral=True))
        return CommandReply(embeds=[embed], followups=followups)

    def _enrichment_reply(
        self,
        results: list[SearchObject],
        meta: KagiMeta,
        *,
        title: str,
        description: str,
        color: int,
        empty_message: str,
        link_text: str,
        show_published: bool = False,
    ) -> CommandReply:
        if not results:
            return CommandReply(content=empty_message)

        shown = min(ENRICHMENT_MAX_RESULTS, len(results))
        balance = format_api_balance(meta)
        embed = Embed(
            title=title,
            description=description,
            color=color,
            footer=f"API Balance: {balance}",
            timestamp=_now(),
        )
        self._add_result_fields(
            embed, results[:shown], link_text=link_text, show_published=show_published
        )
        if len(results) > shown:
            embed.footer = f"Showing {shown} of {len(results)} results | API Balance: {balance}"
        return CommandReply(embeds=[embed])

    @staticmethod
    def _add_result_fields(
        embed: Embed,
        results: list[SearchObject],
        *,
        link_text: str,
        show_published: bool = False,
    ) -> None:
        for index, result in enumerate(results, start=1):
            snippet = truncate(result.snippet or "No description available", SNIPPET_MAX_CHARS)
            value = ""
            if show_published and result.published:
                value = f"📅 {_format_published(result.published)}\n"
            value += f"{snippet}\n[{link_text}]({result.url})"
            embed.add_field(f"{index}. {result.title or 'No title'}", value)


def _format_published(published: str) -> str:
    """Show an ISO timestamp as its date; unparseable values pass through."""
    try:
        return datetime.fromisoformat(published.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return published


def build_limits_reply(engine: QuotaEngine, identity: str) -> CommandReply:
    """``/limits``: private overview of the caller's remaining quota.

    Args:
        engine: Quota engine owned by the app.
        identity: Invoking user.

    Returns:
        CommandReply: Ephemeral embed listing every tier.
    """
    privileged = engine.is_privileged(identity)

    global_rule = engine.describe_global_limit()
    if global_rule is None or privileged:
        description = "**Global Limit:** Unlimited\n\n"
    else:
        remaining = engine.remaining_quota(identity, KNOWN_COMMANDS[0]).global_remaining
        description = (
            f"**Global Limit:** {_display_remaining(remaining)}/{global_rule.limit} "
            f"remaining ({global_rule.period.value})\n\n"
        )

    description += "**Command Limits:**\n"
    for command in KNOWN_COMMANDS:
        rule = engine.describe_scope_limit(command)
        if rule is None or privileged:
            description += f"/{command}: Unlimited\n"
            continue
        remaining = engine.remaining_quota(identity, command).scope_remaining
        description += (
            f"/{command}: {_display_remaining(remaining)}/{rule.limit} "
            f"remaining ({rule.period.value})\n"
        )

    embed = Embed(
        title="Your Query Limits",
        description=description,
        color=LIMITS_COLOR,
        footer="Limits reset based on the configured time period",
    )
    return CommandReply(embeds=[embed], ephemeral=True)


def _display_remaining(remaining: int) -> int:
    # Usage can exceed a limit that was lowered after the records were made
    return max(remaining, 0)
