"""Pydantic schemas for command requests and chat-ready replies."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from kagi_relay.schemas.kagi import SummaryEngine, SummaryType


class QueryCommandRequest(BaseModel):
    """Body of the enrichment commands (``/websearch``, ``/newssearch``)."""

    query: str = Field(..., min_length=1, description="The search query.")


class SearchCommandRequest(QueryCommandRequest):
    limit: int = Field(
        5,
        ge=1,
        le=10,
        description="Maximum number of results to display (1-10).",
    )


class FastGPTCommandRequest(BaseModel):
    query: str = Field(..., min_length=1, description="The question you want to ask.")
    cache: bool = Field(True, description="Whether to allow cached responses.")


class SummaryOptions(BaseModel):
    """Options shared by every summarize subcommand."""

    engine: SummaryEngine | None = Field(
        default=None,
        description="cecil (default, friendly and fast), agnes (formal, technical) or muriel (enterprise-grade, fixed $1 price).",
    )
    summary_type: SummaryType | None = Field(
        default=None,
        description="summary (paragraphs of prose) or takeaway (bulleted key points).",
    )
    target_language: str | None = Field(
        default=None,
        min_length=2,
        max_length=5,
        description="Target language code, e.g. EN, ES, FR, DE, JA, ZH, RU.",
    )


class SummarizeUrlRequest(SummaryOptions):
    url: str = Field(..., min_length=1, description="The URL to summarize.")
    cache: bool | None = Field(default=None, description="Whether to allow cached responses.")


class SummarizeTextRequest(SummaryOptions):
    text: str = Field(..., min_length=1, description="The text to summarize.")
    cache: bool | None = Field(default=None, description="Whether to allow cached responses.")


class ChatMessage(BaseModel):
    """One message of a channel transcript, oldest first."""

    author: str = Field(..., min_length=1, description="Display name of the message author.")
    content: str = Field("", description="Message text; blank messages are skipped.")
    bot: bool = Field(False, description="Whether the author is a bot account.")


class SummarizeConversationRequest(SummaryOptions):
    messages: list[ChatMessage] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Recent channel messages in chronological order (at most 100).",
    )


class EmbedField(BaseModel):
    name: str
    value: str
    inline: bool = False


class Embed(BaseModel):
    """Rich message card, mirroring the chat platform's embed object."""

    title: str | None = None
    description: str | None = None
    url: str | None = None
    color: int | None = None
    fields: list[EmbedField] = Field(default_factory=list)
    footer: str | None = None
    timestamp: datetime | None = None

    def add_field(self, name: str, value: str, *, inline: bool = False) -> "Embed":
        self.fields.append(EmbedField(name=name, value=value, inline=inline))
        return self


class FollowUp(BaseModel):
    content: str
    ephemeral: bool = False


class CommandReply(BaseModel):
    """What the chat gateway should post in answer to a command."""

    content: str | None = Field(
        default=None,
        description="Plain message text of the first reply.",
    )
    embeds: list[Embed] = Field(default_factory=list)
    followups: list[FollowUp] = Field(
        default_factory=list,
        description="Further messages to send after the first reply, in order.",
    )
    ephemeral: bool = Field(
        False,
        description="Whether the first reply should only be visible to the invoking user.",
    )
