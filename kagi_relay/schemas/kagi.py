"""Pydantic models for Kagi API responses.

Only the fields the relay renders are modelled; unknown fields are ignored.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SEARCH_RESULT = 0
RELATED_SEARCHES = 1


class KagiMeta(BaseModel):
    """Response envelope metadata."""

    id: str | None = None
    node: str | None = None
    ms: int | None = None
    api_balance: float | None = None


class Thumbnail(BaseModel):
    url: str
    height: int | None = None
    width: int | None = None


class SearchObject(BaseModel):
    """One item of a search or enrichment ``data`` array.

    ``t == 0`` is a search result; ``t == 1`` carries related searches in
    ``list`` (exposed here as ``related``).
    """

    model_config = ConfigDict(populate_by_name=True)

    t: int = SEARCH_RESULT
    rank: int | None = None
    url: str | None = None
    title: str | None = None
    snippet: str | None = None
    published: str | None = None
    thumbnail: Thumbnail | None = None
    related: list[str] | None = Field(default=None, alias="list")


class SearchResponse(BaseModel):
    """Response of the Search and Enrichment APIs."""

    meta: KagiMeta = Field(default_factory=KagiMeta)
    data: list[SearchObject] = Field(default_factory=list)

    @property
    def results(self) -> list[SearchObject]:
        return [item for item in self.data if item.t == SEARCH_RESULT]

    @property
    def related_searches(self) -> list[str]:
        for item in self.data:
            if item.t == RELATED_SEARCHES and item.related:
                return item.related
        return []


class Reference(BaseModel):
    title: str = ""
    snippet: str = ""
    url: str


class FastGPTData(BaseModel):
    output: str
    tokens: int = 0
    references: list[Reference] = Field(default_factory=list)


class FastGPTResponse(BaseModel):
    meta: KagiMeta = Field(default_factory=KagiMeta)
    data: FastGPTData


class SummaryData(BaseModel):
    output: str
    tokens: int = 0


class SummarizeResponse(BaseModel):
    meta: KagiMeta = Field(default_factory=KagiMeta)
    data: SummaryData


SummaryEngine = Literal["cecil", "agnes", "muriel"]
SummaryType = Literal["summary", "takeaway"]
