"""Tests for the httpx-based Kagi client using a mock transport."""

import json

import httpx
import pytest

from kagi_relay.adapters.kagi.client import KagiClient
from kagi_relay.adapters.kagi.factory import create_kagi_client
from kagi_relay.core.config import KagiSettings
from kagi_relay.core.errors import ConfigurationError, KagiAppError

META = {"id": "abc", "node": "us-east", "ms": 12, "api_balance": 9.5}


def _client(handler) -> KagiClient:
    return KagiClient(
        api_key="secret-token",
        base_url="https://kagi.test/api/v0/",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_fastgpt_posts_json_with_bot_auth() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "meta": META,
                "data": {
                    "output": "<p>Answer</p>",
                    "tokens": 120,
                    "references": [{"title": "Doc", "snippet": "s", "url": "https://a.example"}],
                },
            },
        )

    client = _client(handler)
    result = await client.fastgpt("what is kagi?", cache=False)
    await client.aclose()

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v0/fastgpt"
    assert request.headers["Authorization"] == "Bot secret-token"
    assert json.loads(request.content) == {"query": "what is kagi?", "cache": False, "web_search": True}
    assert result.data.output == "<p>Answer</p>"
    assert result.data.references[0].url == "https://a.example"
    assert result.meta.api_balance == 9.5


@pytest.mark.asyncio
async def test_enrichment_endpoints_use_query_param() -> None:
    paths: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append((request.url.path, request.url.params["q"]))
        return httpx.Response(200, json={"meta": META, "data": [{"t": 0, "url": "https://n.example", "title": "N"}]})

    client = _client(handler)
    web = await client.enrich_web("rust")
    news = await client.enrich_news("elections")
    await client.aclose()

    assert paths == [("/api/v0/enrich/web", "rust"), ("/api/v0/enrich/news", "elections")]
    assert web.results[0].title == "N"
    assert news.results[0].url == "https://n.example"


@pytest.mark.asyncio
async def test_search_parses_results_and_related_searches() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["limit"] == "3"
        return httpx.Response(
            200,
            json={
                "meta": META,
                "data": [
                    {"t": 0, "rank": 1, "url": "https://1.example", "title": "One", "snippet": "first"},
                    {"t": 1, "list": ["kagi search", "kagi api"]},
                    {"t": 0, "rank": 2, "url": "https://2.example", "title": "Two"},
                ],
            },
        )

    client = _client(handler)
    response = await client.search("kagi", limit=3)
    await client.aclose()

    assert [r.title for r in response.results] == ["One", "Two"]
    assert response.related_searches == ["kagi search", "kagi api"]


@pytest.mark.asyncio
async def test_summarize_url_uses_get_and_drops_unset_params() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"meta": META, "data": {"output": "Short.", "tokens": 400}})

    client = _client(handler)
    result = await client.summarize(url="https://article.example", engine="agnes", cache=False)
    await client.aclose()

    request = seen[0]
    assert request.method == "GET"
    assert dict(request.url.params) == {
        "url": "https://article.example",
        "engine": "agnes",
        "cache": "false",
    }
    assert result.data.tokens == 400


@pytest.mark.asyncio
async def test_summarize_text_posts_json_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"meta": META, "data": {"output": "Sum", "tokens": 10}})

    client = _client(handler)
    await client.summarize(text="long text", summary_type="takeaway", target_language="DE")
    await client.aclose()

    request = seen[0]
    assert request.method == "POST"
    assert json.loads(request.content) == {
        "text": "long text",
        "summary_type": "takeaway",
        "target_language": "DE",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [{}, {"url": "https://a.example", "text": "both"}])
async def test_summarize_requires_exactly_one_source(kwargs) -> None:
    client = _client(lambda request: httpx.Response(200))

    with pytest.raises(ValueError):
        await client.summarize(**kwargs)
    await client.aclose()


@pytest.mark.asyncio
async def test_error_body_detail_is_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"detail": "Invalid API key"})

    client = _client(handler)
    with pytest.raises(KagiAppError) as exc_info:
        await client.enrich_web("x")
    await client.aclose()

    error = exc_info.value
    assert error.code == "kagi_api_error"
    assert error.details["http_status"] == 401
    assert error.details["upstream_detail"] == "Invalid API key"
    assert "Invalid API key" in error.message


@pytest.mark.asyncio
async def test_v0_error_list_is_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"meta": META, "data": None, "error": [{"code": 1, "msg": "Insufficient credit"}]},
        )

    client = _client(handler)
    with pytest.raises(KagiAppError) as exc_info:
        await client.search("x")
    await client.aclose()

    assert exc_info.value.details["upstream_detail"] == "Insufficient credit"


@pytest.mark.asyncio
async def test_non_json_error_body_still_raises() -> None:
    client = _client(lambda request: httpx.Response(503, text="upstream down"))

    with pytest.raises(KagiAppError) as exc_info:
        await client.search("x")
    await client.aclose()

    assert exc_info.value.details["http_status"] == 503
    assert exc_info.value.details["upstream_detail"] == ""


@pytest.mark.asyncio
async def test_transport_error_maps_to_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(KagiAppError) as exc_info:
        await client.fastgpt("x")
    await client.aclose()

    assert exc_info.value.code == "kagi_unreachable"


@pytest.mark.asyncio
async def test_unexpected_payload_maps_to_invalid_response() -> None:
    client = _client(lambda request: httpx.Response(200, json={"meta": META, "data": {"tokens": 1}}))

    with pytest.raises(KagiAppError) as exc_info:
        await client.fastgpt("x")
    await client.aclose()

    assert exc_info.value.code == "kagi_invalid_response"


def test_factory_requires_api_key() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        create_kagi_client(KagiSettings(api_key=None))

    assert exc_info.value.code == "kagi_missing_api_key"


def test_factory_builds_client_from_settings() -> None:
    client = create_kagi_client(KagiSettings(api_key="k", base_url="https://kagi.test/api/v0"))

    assert isinstance(client, KagiClient)
    assert client.client.headers["Authorization"] == "Bot k"
