"""
Natural-language search filter inference.

Turns a free-text trip description ("easy hike in south america from
2025-05-01") into listing filters. With an OpenAI-compatible API key the
description goes to a chat-completions model; without one, or whenever that
call fails or returns something unusable, a keyword/regex heuristic is used.
Nothing is stored.
"""

import json
import re
import time
from datetime import date
from typing import Any, Optional

import httpx

from soultrip.core.config import get_settings
from soultrip.core.logging import get_logger
from soultrip.core.metrics import record_inference
from soultrip.schemas.search import SearchFilters, SearchInferenceResponse

logger = get_logger(__name__)

DIFFICULTIES = ("easy", "moderate", "challenging", "intense")

# Checked in order; first match wins
DIFFICULTY_PATTERNS = (
    (re.compile(r"\b(easy|beginner|gentle|relaxed)\b"), "easy"),
    (re.compile(r"\b(moderate|medium|intermediate)\b"), "moderate"),
    (re.compile(r"\b(challenging|hard|difficult|tough)\b"), "challenging"),
    (re.compile(r"\b(intense|extreme)\b"), "intense"),
)

ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")

REGIONS = {
    "asia": [
        "China", "India", "Japan", "Indonesia", "Pakistan", "Bangladesh", "Vietnam",
        "Philippines", "Thailand", "Myanmar", "South Korea", "Nepal", "Sri Lanka", "Malaysia",
        "Cambodia", "Laos", "Mongolia", "Bhutan", "Singapore", "Brunei", "Timor-Leste", "Maldives",
    ],
    "southeast asia": [
        "Indonesia", "Thailand", "Vietnam", "Philippines", "Malaysia", "Singapore", "Cambodia",
        "Laos", "Myanmar", "Brunei", "Timor-Leste",
    ],
    "south asia": ["India", "Pakistan", "Bangladesh", "Sri Lanka", "Nepal", "Bhutan", "Maldives"],
    "east asia": ["China", "Japan", "South Korea", "Mongolia", "Taiwan"],
    "europe": [
        "United Kingdom", "Ireland", "France", "Spain", "Portugal", "Italy", "Germany",
        "Netherlands", "Belgium", "Switzerland", "Austria", "Greece", "Norway", "Sweden",
        "Finland", "Denmark", "Poland", "Czech Republic", "Hungary", "Croatia", "Slovenia",
        "Slovakia", "Romania", "Bulgaria",
    ],
    "western europe": [
        "France", "Spain", "Portugal", "Italy", "Germany", "Netherlands", "Belgium",
        "Switzerland", "Austria",
    ],
    "africa": [
        "Morocco", "Egypt", "South Africa", "Kenya", "Tanzania", "Ethiopia", "Ghana", "Nigeria",
        "Rwanda", "Uganda", "Namibia", "Botswana",
    ],
    "north america": ["United States", "Canada", "Mexico"],
    "central america": [
        "Guatemala", "Belize", "Honduras", "El Salvador", "Nicaragua", "Costa Rica", "Panama",
    ],
    "south america": [
        "Brazil", "Argentina", "Chile", "Peru", "Colombia", "Ecuador", "Bolivia", "Paraguay",
        "Uruguay", "Venezuela",
    ],
    "oceania": ["Australia", "New Zealand", "Fiji", "Samoa", "Papua New Guinea", "Vanuatu"],
}

# Longest first, so "southeast asia" wins over "asia"
_REGION_KEYS = sorted(REGIONS, key=len, reverse=True)

KNOWN_COUNTRIES = (
    "nepal", "india", "peru", "spain", "italy", "france", "portugal", "greece", "japan",
    "thailand", "indonesia", "morocco", "united states", "usa", "canada", "mexico", "brazil",
    "argentina", "chile", "australia", "new zealand", "egypt", "turkey",
)

COUNTRY_ALIASES = {"usa": "united states"}

SYSTEM_PROMPT = """You are an assistant that extracts search filters from a brief trip description.
Return a STRICT JSON object with keys: startDate, endDate, countries, difficulty.
Rules:
- Dates must be in YYYY-MM-DD when you can infer a concrete date; otherwise null.
- Difficulty must be one of: easy | moderate | challenging | intense | null.
- Countries should be an array of country names in Title Case mentioned in the description directly or indirectly (e.g. if a continent is mentioned, include the top 10 countries in that continent).
- If you cannot infer a field, set it to null. Do not guess beyond common sense."""


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def simple_infer(query: str) -> SearchFilters:
    """Keyword and regex inference, used when no model is available."""
    q = query.lower()

    difficulty = None
    for pattern, value in DIFFICULTY_PATTERNS:
        if pattern.search(q):
            difficulty = value
            break

    dates = ISO_DATE.findall(q)
    start_date = dates[0] if len(dates) > 0 else None
    end_date = dates[1] if len(dates) > 1 else None

    countries: list[str] = []
    for region in _REGION_KEYS:
        if _contains_phrase(q, region):
            countries = [name.lower() for name in REGIONS[region]]
            break

    for country in KNOWN_COUNTRIES:
        if _contains_phrase(q, country):
            name = COUNTRY_ALIASES.get(country, country)
            if name not in countries:
                countries.append(name)

    return SearchFilters(
        start_date=start_date,
        end_date=end_date,
        countries=countries or None,
        difficulty=difficulty,
    )


def _clean_date(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        return None


def sanitize_model_filters(parsed: dict) -> SearchFilters:
    """Coerce a model's JSON answer into valid filters; bad fields become null."""
    countries = None
    raw_countries = parsed.get("countries")
    if isinstance(raw_countries, list):
        cleaned = [c.strip().lower() for c in raw_countries if isinstance(c, str) and c.strip()]
        countries = cleaned or None

    difficulty = parsed.get("difficulty")
    if difficulty not in DIFFICULTIES:
        difficulty = None

    return SearchFilters(
        start_date=_clean_date(parsed.get("startDate")),
        end_date=_clean_date(parsed.get("endDate")),
        countries=countries,
        difficulty=difficulty,
    )


async def _ask_model(query: str, client: httpx.AsyncClient) -> Optional[SearchFilters]:
    """Model-inferred filters, or None when the answer cannot be used."""
    settings = get_settings()

    start = time.perf_counter()
    try:
        response = await client.post(
            settings.chat_completions_url,
            headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}"},
            json={
                "model": settings.OPENAI_MODEL,
                "temperature": 0,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Description: {query}"},
                ],
                "response_format": {"type": "json_object"},
            },
            timeout=settings.INFERENCE_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as e:
        logger.warning("inference_request_failed", error=str(e))
        return None
    duration_ms = round((time.perf_counter() - start) * 1000, 2)

    if response.is_error:
        logger.warning("inference_bad_status", status_code=response.status_code, duration_ms=duration_ms)
        return None

    try:
        content = response.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError):
        logger.warning("inference_malformed_response", duration_ms=duration_ms)
        return None
    if not content or not isinstance(content, str):
        logger.warning("inference_unparseable_content", duration_ms=duration_ms)
        return None

    try:
        parsed = json.loads(content)
    except ValueError:
        logger.warning("inference_unparseable_content", duration_ms=duration_ms)
        return None
    if not isinstance(parsed, dict):
        return None

    logger.info("inference_completed", duration_ms=duration_ms)
    return sanitize_model_filters(parsed)


async def infer_filters(query: str, client: httpx.AsyncClient) -> SearchInferenceResponse:
    settings = get_settings()

    if settings.llm_inference_enabled:
        filters = await _ask_model(query, client)
        if filters is not None:
            record_inference("llm")
            return SearchInferenceResponse(filters=filters, source="llm")

    record_inference("heuristic")
    return SearchInferenceResponse(filters=simple_infer(query), source="heuristic")
