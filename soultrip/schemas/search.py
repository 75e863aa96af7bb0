"""
Schemas for natural-language search filter inference.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

Difficulty = Literal["easy", "moderate", "challenging", "intense"]


class SearchInferenceRequest(BaseModel):
    query: Optional[str] = Field(None, max_length=2000)


class SearchFilters(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    countries: Optional[list[str]] = None
    difficulty: Optional[Difficulty] = None


class SearchInferenceResponse(BaseModel):
    filters: SearchFilters
    source: Literal["llm", "heuristic"]
