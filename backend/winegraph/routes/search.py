"""
Read endpoints for the wine graph under /v1/rest.

Empty results become 404, invalid parameters 422, and store failures 503
(with Retry-After when a retry may help). Query text and driver messages
are never returned to the client.
"""

import logging
from typing import Awaitable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..config import Config
from ..errors import ConfigError, QueryError
from ..models.response import TopWine, VarietyCount, WineSummary
from ..services.query_service import QueryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/rest")

T = TypeVar("T")

RETRY_AFTER_SECONDS = "5"


def get_query_service(request: Request) -> QueryService:
    """Query service built by the app lifespan."""
    service = getattr(request.app.state, "query_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Graph store not connected")
    return service


async def _answer(call: Awaitable[list[T]], not_found: str) -> list[T]:
    try:
        results = await call
    except ConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except QueryError as e:
        headers = {"Retry-After": RETRY_AFTER_SECONDS} if e.retryable else None
        raise HTTPException(status_code=503, detail="Graph query failed", headers=headers)
    if not results:
        raise HTTPException(status_code=404, detail=not_found)
    return results


@router.get("/search", response_model=list[WineSummary])
async def search(
    terms: str = Query(..., min_length=1, description="Keywords matched against title, description and variety"),
    max_price: float = Query(..., ge=0, description="Inclusive price ceiling in USD"),
    service: QueryService = Depends(get_query_service),
) -> list[WineSummary]:
    """
    Keyword search ordered by relevance, then rating.

    Returns at most 5 wines.
    """
    return await _answer(
        service.search_by_keywords(terms, max_price, limit=Config.SEARCH_LIMIT),
        not_found="No wines match these terms",
    )


@router.get("/top_by_country", response_model=list[TopWine])
async def top_by_country(
    country: str = Query(..., min_length=1),
    limit: int = Query(default=Config.SEARCH_LIMIT, ge=1, le=Config.MAX_RESULT_LIMIT),
    service: QueryService = Depends(get_query_service),
) -> list[TopWine]:
    """Highest-rated wines from a country."""
    return await _answer(service.top_by_country(country, limit=limit), not_found="Country not found")


@router.get("/top_by_province", response_model=list[TopWine])
async def top_by_province(
    province: str = Query(..., min_length=1),
    limit: int = Query(default=Config.SEARCH_LIMIT, ge=1, le=Config.MAX_RESULT_LIMIT),
    service: QueryService = Depends(get_query_service),
) -> list[TopWine]:
    """Highest-rated wines from a province."""
    return await _answer(service.top_by_province(province, limit=limit), not_found="Province not found")


@router.get("/most_by_variety", response_model=list[VarietyCount])
async def most_by_variety(
    country: str = Query(..., min_length=1),
    limit: int = Query(default=Config.SEARCH_LIMIT, ge=1, le=Config.MAX_RESULT_LIMIT),
    service: QueryService = Depends(get_query_service),
) -> list[VarietyCount]:
    """Grape varieties with the most wines in a country."""
    return await _answer(service.most_by_variety(country, limit=limit), not_found="Country not found")
