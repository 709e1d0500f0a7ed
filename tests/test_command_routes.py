"""Integration tests for the command routes with a stubbed Kagi client."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from kagi_relay.adapters.kagi.base import AbstractKagiClient
from kagi_relay.core.app_factory import create_app
from kagi_relay.core.config import settings
from kagi_relay.core.errors import KagiAppError
from kagi_relay.quota.engine import QuotaEngine
from kagi_relay.quota.models import QuotaConfiguration, QuotaPeriod, QuotaRule
from kagi_relay.schemas.kagi import FastGPTResponse, SearchResponse, SummarizeResponse

USER = {"X-User-ID": "U1", "X-Guild-ID": "G1"}


def _search_response() -> SearchResponse:
    return SearchResponse.model_validate(
        {
            "meta": {"api_balance": 1.0},
            "data": [{"t": 0, "url": "https://a.example", "title": "A", "snippet": "about a"}],
        }
    )


@pytest.fixture
def kagi() -> AsyncMock:
    client = AsyncMock(spec=AbstractKagiClient)
    client.search.return_value = _search_response()
    client.enrich_web.return_value = _search_response()
    client.enrich_news.return_value = _search_response()
    client.fastgpt.return_value = FastGPTResponse.model_validate(
        {"meta": {"api_balance": 1.0}, "data": {"output": "<p>42</p>", "tokens": 5, "references": []}}
    )
    client.summarize.return_value = SummarizeResponse.model_validate(
        {"meta": {}, "data": {"output": "tl;dr", "tokens": 100}}
    )
    return client


@pytest.fixture
def engine() -> QuotaEngine:
    config = QuotaConfiguration(
        global_rule=QuotaRule(2, QuotaPeriod.DAILY),
        per_scope={"search": QuotaRule(1, QuotaPeriod.DAILY)},
    )
    return QuotaEngine(config, privileged={"ADMIN"}, clock=Mock(return_value=1_000_000.0))


@pytest.fixture
def client(kagi: AsyncMock, engine: QuotaEngine) -> TestClient:
    return TestClient(create_app(kagi_client=kagi, quota_engine=engine))


def test_search_returns_embed_and_records_usage(client: TestClient, engine: QuotaEngine) -> None:
    resp = client.post("/v1/commands/search", json={"query": "kagi", "limit": 3}, headers=USER)

    assert resp.status_code == 200
    body = resp.json()
    assert body["embeds"][0]["title"] == "Search Results for: kagi"
    assert body["ephemeral"] is False
    assert engine.ledger.count("U1", since=0.0, scope="search") == 1


def test_second_search_is_denied_with_limit_message(client: TestClient, kagi: AsyncMock) -> None:
    client.post("/v1/commands/search", json={"query": "one"}, headers=USER)

    resp = client.post("/v1/commands/search", json={"query": "two"}, headers=USER)

    assert resp.status_code == 429
    error = resp.json()["error"]
    assert error["code"] == "quota_exceeded"
    assert error["message"] == (
        "You have reached your query limit. The limit for /search is 1 queries per daily. "
        "The global limit is 2 queries per daily."
    )
    assert kagi.search.await_count == 1


def test_global_limit_applies_across_commands(client: TestClient) -> None:
    assert client.post("/v1/commands/websearch", json={"query": "a"}, headers=USER).status_code == 200
    assert client.post("/v1/commands/newssearch", json={"query": "b"}, headers=USER).status_code == 200

    resp = client.post("/v1/commands/fastgpt", json={"query": "c"}, headers=USER)

    assert resp.status_code == 429
    assert resp.json()["error"]["message"] == (
        "You have reached your query limit. The global limit is 2 queries per daily."
    )


def test_failed_kagi_call_is_not_recorded(client: TestClient, kagi: AsyncMock, engine: QuotaEngine) -> None:
    kagi.search.side_effect = KagiAppError(
        code="kagi_api_error",
        message="Kagi API returned HTTP 500",
        details={"http_status": 500, "upstream_detail": ""},
    )

    resp = client.post("/v1/commands/search", json={"query": "kagi"}, headers=USER)

    assert resp.status_code == 502
    assert resp.json()["error"]["message"].startswith("An error occurred while querying the Kagi Search API.")
    assert len(engine.ledger) == 0


def test_privileged_user_is_never_limited(client: TestClient, engine: QuotaEngine) -> None:
    headers = {"X-User-ID": "ADMIN", "X-Guild-ID": "G1"}

    for _ in range(5):
        resp = client.post("/v1/commands/search", json={"query": "x"}, headers=headers)
        assert resp.status_code == 200

    assert len(engine.ledger) == 0


def test_fastgpt_reply(client: TestClient, kagi: AsyncMock) -> None:
    resp = client.post("/v1/commands/fastgpt", json={"query": "meaning of life", "cache": False}, headers=USER)

    assert resp.status_code == 200
    assert resp.json()["content"].startswith("**Query:** meaning of life\n\n42")
    kagi.fastgpt.assert_awaited_once_with("meaning of life", cache=False, web_search=True)


@pytest.mark.parametrize(
    "path, body",
    [
        ("/v1/commands/summarize/url", {"url": "https://a.example", "engine": "agnes"}),
        ("/v1/commands/summarize/text", {"text": "some long text", "summary_type": "takeaway"}),
        ("/v1/commands/summarize/conversation", {"messages": [{"author": "a", "content": "hi"}]}),
    ],
)
def test_summarize_routes_share_one_scope(client: TestClient, engine: QuotaEngine, path: str, body: dict) -> None:
    resp = client.post(path, json=body, headers=USER)

    assert resp.status_code == 200
    assert resp.json()["embeds"][0]["color"] == 0x8855FF
    assert engine.ledger.count("U1", since=0.0, scope="summarize") == 1


def test_invalid_summary_engine_is_rejected(client: TestClient, engine: QuotaEngine) -> None:
    resp = client.post("/v1/commands/summarize/text", json={"text": "x", "engine": "gpt"}, headers=USER)

    assert resp.status_code == 422
    assert len(engine.ledger) == 0


def test_search_limit_out_of_range_is_rejected(client: TestClient) -> None:
    resp = client.post("/v1/commands/search", json={"query": "x", "limit": 11}, headers=USER)

    assert resp.status_code == 422


def test_missing_identity_is_rejected(client: TestClient, kagi: AsyncMock) -> None:
    resp = client.post("/v1/commands/search", json={"query": "x"}, headers={"X-Guild-ID": "G1"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "missing_identity"
    kagi.search.assert_not_awaited()


def test_direct_messages_can_be_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.app, "allow_direct_messages", False)

    resp = client.post("/v1/commands/search", json={"query": "x"}, headers={"X-User-ID": "U1"})
    limits = client.get("/v1/commands/limits", headers={"X-User-ID": "U1"})
    in_guild = client.post("/v1/commands/search", json={"query": "x"}, headers=USER)

    assert resp.status_code == 403
    assert resp.json()["error"]["message"] == "Commands cannot be used in Direct Messages."
    assert limits.status_code == 403
    assert in_guild.status_code == 200


def test_direct_messages_allowed_by_default(client: TestClient) -> None:
    resp = client.post("/v1/commands/websearch", json={"query": "x"}, headers={"X-User-ID": "U1"})

    assert resp.status_code == 200


def test_limits_never_consume_quota(client: TestClient, engine: QuotaEngine) -> None:
    client.post("/v1/commands/search", json={"query": "x"}, headers=USER)

    for _ in range(3):
        resp = client.get("/v1/commands/limits", headers=USER)
        assert resp.status_code == 200

    body = resp.json()
    assert body["ephemeral"] is True
    description = body["embeds"][0]["description"]
    assert "**Global Limit:** 1/2 remaining (daily)" in description
    assert "/search: 0/1 remaining (daily)" in description
    assert len(engine.ledger) == 1


def test_health_reports_quota_state(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "quota": {"persistence_enabled": False, "records": 0}}


def test_lifespan_closes_kagi_client(kagi: AsyncMock, engine: QuotaEngine) -> None:
    app = create_app(kagi_client=kagi, quota_engine=engine)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200

    kagi.aclose.assert_awaited_once()


def test_openapi_documents_identity_header(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    assert schema["components"]["securitySchemes"]["ChatUserIdentity"]["name"] == "X-User-ID"
    assert schema["paths"]["/v1/commands/search"]["post"]["security"] == [{"ChatUserIdentity": []}]
    assert "security" not in schema["paths"]["/health"]["get"]
