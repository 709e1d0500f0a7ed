from abc import ABC, abstractmethod

from kagi_relay.schemas.kagi import FastGPTResponse, SearchResponse, SummarizeResponse


class AbstractKagiClient(ABC):
	"""Interface for clients of the Kagi API used by the relay commands."""

	@abstractmethod
	async def fastgpt(self, query: str, *, cache: bool = True, web_search: bool = True) -> FastGPTResponse:
		"""Answer a question with FastGPT.

		Raises:
			KagiAppError: If the call fails or the payload is invalid.
		"""
		...

	@abstractmethod
	async def enrich_web(self, query: str) -> SearchResponse:
		"""Query the Web Enrichment (non-commercial web) index."""
		...

	@abstractmethod
	async def enrich_news(self, query: str) -> SearchResponse:
		"""Query the News Enrichment (non-commercial news) index."""
		...

	@abstractmethod
	async def summarize(
		self,
		*,
		url: str | None = None,
		text: str | None = None,
		engine: str | None = None,
		summary_type: str | None = None,
		target_language: str | None = None,
		cache: bool | None = None,
	) -> SummarizeResponse:
		"""Summarize a URL or a block of text with the Universal Summarizer.

		Exactly one of ``url`` and ``text`` must be given.
		"""
		...

	@abstractmethod
	async def search(self, query: str, *, limit: int | None = None) -> SearchResponse:
		"""Run a Kagi Search API query."""
		...

	async def aclose(self) -> None:
		"""Release network resources. No-op by default."""
		return None
