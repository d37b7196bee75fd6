"""
Feed endpoints:
  GET  /feed/{user_id}            : ranked content ids (cached or computed)
  GET  /feed/{user_id}/contents   : the same feed, hydrated into content
  POST /feed/{user_id}/precompute : force a recompute and cache it

The orchestrator is built once at startup and attached to app.state.
"""
import logging

from fastapi import APIRouter, HTTPException, Query, Request, status

from fiyofeed.engine.orchestrator import FeedOrchestrator
from fiyofeed.engine.types import ContentType
from fiyofeed.errors import InvalidContentType, StoreUnavailable
from fiyofeed.schemas import (
    ContentResponse,
    FeedContentsResponse,
    FeedResponse,
    PrecomputeResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()

CONTENT_TYPE_QUERY = Query("post", description="'post' or 'clip'")


def get_orchestrator(request: Request) -> FeedOrchestrator:
    return request.app.state.orchestrator


def _parse(content_type: str) -> ContentType:
    try:
        return ContentType.parse(content_type)
    except InvalidContentType as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/{user_id}", response_model=FeedResponse)
async def get_user_feed(
    request: Request,
    user_id: str,
    content_type: str = CONTENT_TYPE_QUERY,
):
    ctype = _parse(content_type)
    try:
        content_ids = await get_orchestrator(request).get_user_feed(user_id, ctype)
    except StoreUnavailable as exc:
        logger.exception("get_user_feed failed for user %s", user_id)
        raise HTTPException(status_code=503, detail="Feed temporarily unavailable") from exc
    return FeedResponse(user_id=user_id, content_type=ctype.value, content_ids=content_ids)


@router.get("/{user_id}/contents", response_model=FeedContentsResponse)
async def get_user_feed_contents(
    request: Request,
    user_id: str,
    content_type: str = CONTENT_TYPE_QUERY,
):
    ctype = _parse(content_type)
    try:
        rows = await get_orchestrator(request).get_feed_contents(user_id, ctype)
    except StoreUnavailable as exc:
        logger.exception("get_feed_contents failed for user %s", user_id)
        raise HTTPException(status_code=503, detail="Feed temporarily unavailable") from exc
    return FeedContentsResponse(
        user_id=user_id,
        content_type=ctype.value,
        contents=[ContentResponse.from_row(row) for row in rows],
    )


@router.post("/{user_id}/precompute", response_model=PrecomputeResponse)
async def precompute_user_feed(
    request: Request,
    user_id: str,
    content_type: str = CONTENT_TYPE_QUERY,
):
    ctype = _parse(content_type)
    try:
        content_ids = await get_orchestrator(request).precompute_feed(
            user_id, ctype, force=True
        )
    except StoreUnavailable as exc:
        logger.exception("precompute_feed failed for user %s", user_id)
        raise HTTPException(status_code=503, detail="Feed temporarily unavailable") from exc
    return PrecomputeResponse(
        user_id=user_id, content_type=ctype.value, content_ids=content_ids or []
    )
