import json
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from kisansure.di import get_http
from kisansure.main import app

API_KEY = "test-secret-key-123"


def make_record(**overrides):
    record = {
        "state": "Maharashtra",
        "district": "Nashik",
        "market": "Lasalgaon",
        "commodity": "Onion",
        "variety": "Red",
        "grade": "FAQ",
        "arrival_date": "12/03/2025",
        "min_price": "1000",
        "max_price": "1800",
        "modal_price": "1500",
    }
    record.update(overrides)
    return record


def prices_payload(records):
    return {
        "title": "Current Daily Price of Various Commodities from Various Markets (Mandi)",
        "status": "ok",
        "total": len(records),
        "count": len(records),
        "limit": "10",
        "offset": "0",
        "records": records,
    }


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def calls() -> List[httpx.Request]:
    return []


@pytest.fixture
def mock_http(calls) -> Callable[..., httpx.AsyncClient]:
    """Build an AsyncClient whose transport records requests and answers with `handler`."""

    def factory(handler) -> httpx.AsyncClient:
        def recorder(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(recorder))

    return factory


@pytest.fixture
def configured_env(monkeypatch):
    monkeypatch.setenv("VITE_AGMARKNET_API_KEY", API_KEY)
    monkeypatch.delenv("DATA_GOV_IN_API_KEY", raising=False)
    monkeypatch.setenv("DATAGOV_BASE", "https://api.data.gov.in/resource")


@pytest.fixture
def relay(mock_http, configured_env):
    """
    TestClient for the relay. Call it with an upstream handler:
        client = relay(lambda req: httpx.Response(200, json={...}))
    """
    clients = []

    def factory(handler) -> TestClient:
        upstream = mock_http(handler)
        app.dependency_overrides[get_http] = lambda: upstream
        test_client = TestClient(app)
        clients.append(test_client)
        return test_client

    yield factory

    for c in clients:
        c.close()
    app.dependency_overrides.clear()


def json_handler(body, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=json.dumps(body).encode(),
                              headers={"Content-Type": "application/json"})

    return handler
