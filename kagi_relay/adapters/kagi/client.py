"""Kagi API client adapter."""

import logging
import time
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from kagi_relay.adapters.kagi.base import AbstractKagiClient
from kagi_relay.core.errors import KagiAppError
from kagi_relay.schemas.kagi import FastGPTResponse, SearchResponse, SummarizeResponse

logger = logging.getLogger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


def _upstream_detail(response: httpx.Response) -> str | None:
    """Extract the error detail Kagi puts in JSON error bodies, if any."""
    try:
        body = response.json()
    except ValueError:
        return None

    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str):
            return detail
        # v0 endpoints return {"error": [{"code": ..., "msg": ...}]}
        errors = body.get("error")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            msg = errors[0].get("msg")
            if isinstance(msg, str):
                return msg
    return None


class KagiClient(AbstractKagiClient):
    """Async Kagi API client built on httpx.

    One ``httpx.AsyncClient`` is shared for the lifetime of the app so
    connections are pooled across commands.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://kagi.com/api/v0",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Kagi API token.
            base_url: API root, without trailing slash.
            timeout_seconds: Per-request timeout.
            transport: Optional transport (tests use ``httpx.MockTransport``).
        """
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bot {api_key}"},
            timeout=timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        model: type[ResponseModel],
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> ResponseModel:
        start = time.perf_counter()
        try:
            response = await self.client.request(method, path, params=params, json=json_body)
        except httpx.HTTPError as exc:
            logger.error(
                "kagi.transport_error",
                extra={"endpoint": path, "error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise KagiAppError(
                code="kagi_unreachable",
                message=f"Could not reach the Kagi API: {exc}",
            ) from exc

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.debug(
            "kagi.request",
            extra={"endpoint": path, "method": method, "status": response.status_code, "duration_ms": duration_ms},
        )

        if response.is_error:
            detail = _upstream_detail(response)
            logger.error(
                "kagi.api_error",
                extra={"endpoint": path, "status": response.status_code, "upstream_detail": detail},
            )
            message = f"Kagi API returned HTTP {response.status_code}"
            if detail:
                message += f": {detail}"
            raise KagiAppError(
                code="kagi_api_error",
                message=message,
                details={"http_status": response.status_code, "upstream_detail": detail or ""},
            )

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise KagiAppError(
                code="kagi_invalid_response",
                message=f"Kagi API returned an unexpected payload for {path}",
                details={"http_status": response.status_code},
            ) from exc

    async def fastgpt(self, query: str, *, cache: bool = True, web_search: bool = True) -> FastGPTResponse:
        return await self._request(
            "POST",
            "/fastgpt",
            FastGPTResponse,
            json_body={"query": query, "cache": cache, "web_search": web_search},
        )

    async def enrich_web(self, query: str) -> SearchResponse:
        return await self._request("GET", "/enrich/web", SearchResponse, params={"q": query})

    async def enrich_news(self, query: str) -> SearchResponse:
        return await self._request("GET", "/enrich/news", SearchResponse, params={"q": query})

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
        if (url is None) == (text is None):
            raise ValueError("exactly one of url or text is required")

        payload: dict[str, Any] = {
            "url": url,
            "text": text,
            "engine": engine,
            "summary_type": summary_type,
            "target_language": target_language,
            "cache": cache,
        }
        payload = {key: value for key, value in payload.items() if value is not None}

        # Text can be long, so it goes in a JSON body; URLs use query params
        if text is not None:
            return await self._request("POST", "/summarize", SummarizeResponse, json_body=payload)

        if "cache" in payload:
            payload["cache"] = "true" if payload["cache"] else "false"
        return await self._request("GET", "/summarize", SummarizeResponse, params=payload)

    async def search(self, query: str, *, limit: int | None = None) -> SearchResponse:
        params: dict[str, Any] = {"q": query}
        if limit is not None:
            params["limit"] = limit
        return await self._request("GET", "/search", SearchResponse, params=params)
