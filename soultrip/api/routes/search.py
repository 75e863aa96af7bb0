"""
Natural-language search filter inference.
"""

import httpx
from fastapi import APIRouter, Depends, HTTPException, status

from soultrip.api.deps import get_http_client
from soultrip.schemas.search import SearchInferenceRequest, SearchInferenceResponse
from soultrip.services.search_service import infer_filters

router = APIRouter(prefix="/search", tags=["Search"])


@router.post("/infer", response_model=SearchInferenceResponse)
async def infer_search_filters(
    body: SearchInferenceRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Infer listing filters (dates, countries, difficulty) from a free-text
    description. Falls back to keyword matching when no model is configured
    or the model call fails.
    """
    query = (body.query or "").strip()
    if not query:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing query",
        )
    return await infer_filters(query, client)
