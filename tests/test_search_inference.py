"""
Tests for natural-language search filter inference: the keyword heuristic,
the model path and the fallback between them.
"""

import json

import httpx
import pytest
from httpx import AsyncClient

from soultrip.main import app
from soultrip.api.deps import get_http_client
from soultrip.core.config import get_settings
from soultrip.services.search_service import sanitize_model_filters, simple_infer


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def model_enabled(monkeypatch):
    monkeypatch.setattr(get_settings(), "OPENAI_API_KEY", "sk-test")


def _use_transport(handler):
    async def override_get_http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as mock_client:
            yield mock_client

    app.dependency_overrides[get_http_client] = override_get_http_client


# --- heuristic ---

def test_simple_infer_difficulty_and_dates():
    filters = simple_infer("A gentle retreat from 2026-03-01 to 2026-03-12")
    assert filters.difficulty == "easy"
    assert filters.start_date == "2026-03-01"
    assert filters.end_date == "2026-03-12"
    assert filters.countries is None


def test_simple_infer_region_expands_to_countries():
    filters = simple_infer("hard trek somewhere in South America")
    assert filters.difficulty == "challenging"
    assert "peru" in filters.countries
    assert "brazil" in filters.countries


def test_simple_infer_most_specific_region_wins():
    filters = simple_infer("beaches in southeast asia")
    assert "thailand" in filters.countries
    assert "india" not in filters.countries


def test_simple_infer_named_countries():
    filters = simple_infer("yoga in Nepal or the USA")
    assert filters.countries == ["nepal", "united states"]
    assert filters.difficulty is None


def test_simple_infer_needs_whole_words():
    # "india" must not match inside "indiana"
    filters = simple_infer("road trip through indiana")
    assert filters.countries is None


def test_sanitize_drops_invalid_fields():
    filters = sanitize_model_filters({
        "startDate": "2026-02-30",
        "endDate": "2026-04-10",
        "countries": ["Peru", "", 7, " Chile "],
        "difficulty": "extreme",
    })
    assert filters.start_date is None
    assert filters.end_date == "2026-04-10"
    assert filters.countries == ["peru", "chile"]
    assert filters.difficulty is None


# --- endpoint ---

@pytest.mark.asyncio
async def test_infer_without_key_uses_heuristic(client: AsyncClient):
    response = await client.post("/api/v1/search/infer", json={"query": "intense climb in Peru"})
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "heuristic"
    assert data["filters"]["difficulty"] == "intense"
    assert data["filters"]["countries"] == ["peru"]


@pytest.mark.asyncio
async def test_infer_empty_query(client: AsyncClient):
    response = await client.post("/api/v1/search/infer", json={"query": "   "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing query"

    response = await client.post("/api/v1/search/infer", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_infer_with_model(client: AsyncClient, model_enabled):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion(json.dumps({
            "startDate": "2026-06-01",
            "endDate": None,
            "countries": ["Japan"],
            "difficulty": "moderate",
        })))

    _use_transport(handler)
    response = await client.post("/api/v1/search/infer", json={"query": "temples in japan next june"})

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "llm"
    assert data["filters"] == {
        "start_date": "2026-06-01",
        "end_date": None,
        "countries": ["japan"],
        "difficulty": "moderate",
    }
    assert seen["url"].endswith("/chat/completions")
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["messages"][1]["content"] == "Description: temples in japan next june"


@pytest.mark.asyncio
async def test_infer_falls_back_on_model_error(client: AsyncClient, model_enabled):
    _use_transport(lambda request: httpx.Response(500, json={"error": "overloaded"}))

    response = await client.post("/api/v1/search/infer", json={"query": "easy walk in Portugal"})

    data = response.json()
    assert data["source"] == "heuristic"
    assert data["filters"]["countries"] == ["portugal"]


@pytest.mark.asyncio
async def test_infer_falls_back_on_unparseable_answer(client: AsyncClient, model_enabled):
    _use_transport(lambda request: httpx.Response(200, json=_completion("Sure! Here are filters...")))

    response = await client.post("/api/v1/search/infer", json={"query": "moderate hike in Chile"})

    data = response.json()
    assert data["source"] == "heuristic"
    assert data["filters"]["difficulty"] == "moderate"


@pytest.mark.asyncio
async def test_infer_falls_back_on_network_error(client: AsyncClient, model_enabled):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    _use_transport(handler)

    response = await client.post("/api/v1/search/infer", json={"query": "retreat in India"})

    assert response.json()["source"] == "heuristic"


@pytest.mark.asyncio
async def test_infer_falls_back_on_non_string_answer(client: AsyncClient, model_enabled):
    body = {"choices": [{"message": {"role": "assistant", "content": {"difficulty": "easy"}}}]}
    _use_transport(lambda request: httpx.Response(200, json=body))

    response = await client.post("/api/v1/search/infer", json={"query": "challenging trek in Nepal"})

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "heuristic"
    assert data["filters"]["difficulty"] == "challenging"
    assert data["filters"]["countries"] == ["nepal"]
