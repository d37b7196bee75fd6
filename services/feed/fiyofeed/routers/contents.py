"""
Content endpoints (posts and clips share one shape):
  GET    /contents/{content_type}/{content_id}
  GET    /contents/{content_type}/users/{user_id}
  POST   /contents/{content_type}
  PATCH  /contents/{content_type}/{content_id}   (collabs, caption,
                                                  description, hashtags)
  DELETE /contents/{content_type}/{content_id}?user_id=...
"""
import logging

from fastapi import APIRouter, HTTPException, Query, Request, status
from opentelemetry import trace

from fiyofeed.engine.types import ContentType
from fiyofeed.errors import InvalidContentType, StoreUnavailable
from fiyofeed.schemas import ContentCreate, ContentResponse, ContentUpdate

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _store(request: Request):
    return request.app.state.content_store


def _parse(content_type: str) -> ContentType:
    try:
        return ContentType.parse(content_type)
    except InvalidContentType as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _unavailable(exc: StoreUnavailable) -> HTTPException:
    logger.error("Content store unavailable: %s", exc)
    return HTTPException(status_code=503, detail="Content store unavailable")


@router.get("/{content_type}/users/{user_id}", response_model=list[ContentResponse])
async def list_user_contents(request: Request, content_type: str, user_id: str):
    ctype = _parse(content_type)
    try:
        rows = await _store(request).list_by_user(user_id, ctype)
    except StoreUnavailable as exc:
        raise _unavailable(exc) from exc
    return [ContentResponse.from_row(row) for row in rows]


@router.get("/{content_type}/{content_id}", response_model=ContentResponse)
async def get_content(request: Request, content_type: str, content_id: str):
    ctype = _parse(content_type)
    try:
        row = await _store(request).get_content(content_id, ctype)
    except StoreUnavailable as exc:
        raise _unavailable(exc) from exc
    if row is None:
        raise HTTPException(status_code=404, detail=f"{ctype.value.capitalize()} not found")
    return ContentResponse.from_row(row)


@router.post("/{content_type}", response_model=ContentResponse, status_code=status.HTTP_201_CREATED)
async def create_content(request: Request, content_type: str, body: ContentCreate):
    ctype = _parse(content_type)
    with tracer.start_as_current_span("create_content") as span:
        fields = body.model_dump(exclude={"user_id"})
        try:
            row = await _store(request).create_content(body.user_id, ctype, **fields)
        except StoreUnavailable as exc:
            raise _unavailable(exc) from exc
        span.set_attribute("content.id", row.id)
        return ContentResponse.from_row(row)


@router.patch("/{content_type}/{content_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_content(
    request: Request, content_type: str, content_id: str, body: ContentUpdate
):
    ctype = _parse(content_type)
    changes = body.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No updatable fields supplied")
    try:
        updated = await _store(request).update_content(content_id, body.user_id, ctype, changes)
    except StoreUnavailable as exc:
        raise _unavailable(exc) from exc
    if not updated:
        raise HTTPException(status_code=404, detail=f"{ctype.value.capitalize()} not found")


@router.delete("/{content_type}/{content_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_content(
    request: Request,
    content_type: str,
    content_id: str,
    user_id: str = Query(..., description="Author of the content"),
):
    ctype = _parse(content_type)
    try:
        deleted = await _store(request).delete_content(content_id, user_id, ctype)
    except StoreUnavailable as exc:
        raise _unavailable(exc) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail=f"{ctype.value.capitalize()} not found")
    # Cached feeds still referencing it are pruned lazily on hydration
    logger.info("Deleted %s %s", ctype.value, content_id)
