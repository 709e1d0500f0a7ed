from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from kagi_relay.adapters.kagi.base import AbstractKagiClient
from kagi_relay.core.app_factory import create_app
from kagi_relay.quota.engine import QuotaEngine
from kagi_relay.quota.models import QuotaConfiguration, QuotaPeriod, QuotaRule


@pytest.fixture
def client() -> TestClient:
    engine = QuotaEngine(QuotaConfiguration(global_rule=QuotaRule(-1, QuotaPeriod.DAILY)))
    return TestClient(create_app(kagi_client=AsyncMock(spec=AbstractKagiClient), quota_engine=engine))


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)
    assert len(generated) > 0

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_error_responses_carry_the_request_id(client: TestClient):
    resp = client.get("/v1/commands/limits", headers={"X-Request-ID": "req-err-1"})

    assert resp.status_code == 400
    assert resp.headers.get("X-Request-ID") == "req-err-1"
    assert resp.json()["error"]["request_id"] == "req-err-1"
