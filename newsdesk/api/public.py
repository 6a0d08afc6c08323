from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse, RedirectResponse

from newsdesk.api.deps import client_context, get_services
from newsdesk.core.config import settings
from newsdesk.core.errors import ArticleNotFound, GenerationError, StorageError
from newsdesk.core.security import require_api_key
from newsdesk.services.container import Services
from newsdesk.services.identity import normalize_category

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["public"], dependencies=[Depends(require_api_key)])

NEWS_ENDPOINT = "/v1/news"


@router.get("/news")
async def list_news(
    request: Request,
    category: str = Query(min_length=1, max_length=64),
    page: int = Query(default=1, ge=1, le=1000),
    page_size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    services: Services = Depends(get_services),
):
    category = category.strip()
    if not category:
        raise HTTPException(status_code=422, detail="category must not be blank")
    if normalize_category(category) not in services.settings.category_list:
        raise HTTPException(status_code=404, detail="Unknown category")

    params = {"category": category, "page": page, "page_size": page_size}
    context = client_context(request)
    cached = services.request_cache.get(NEWS_ENDPOINT, params, context)
    if cached is not None:
        return cached

    try:
        result = await services.news.get_page(category, page, page_size)
    except StorageError as e:
        logger.error("cannot serve %s: %s", category, e)
        raise HTTPException(status_code=503, detail="News storage unavailable")

    services.request_cache.set(NEWS_ENDPOINT, params, result, context=context)
    return result


@router.get("/news/{article_id}")
async def get_article(article_id: str, services: Services = Depends(get_services)):
    try:
        article = await services.news.get_article(article_id)
    except StorageError as e:
        logger.error("cannot load %s: %s", article_id, e)
        raise HTTPException(status_code=503, detail="News storage unavailable")
    if article is None:
        raise HTTPException(status_code=404, detail="Article not found")
    return article.to_public_dict()


@router.get("/audio/{article_id}")
async def get_audio(article_id: str, services: Services = Depends(get_services)):
    try:
        location = await services.audio.get_or_generate(article_id)
    except ArticleNotFound:
        raise HTTPException(status_code=404, detail="Article not found")
    except (GenerationError, StorageError) as e:
        logger.error("audio for %s unavailable: %s", article_id, e)
        raise HTTPException(status_code=502, detail="Failed to generate audio for this article")

    if location.startswith(("http://", "https://")):
        return RedirectResponse(location, status_code=307)

    path = Path(location)
    if not path.is_file():
        logger.error("audio for %s points at missing file %s", article_id, location)
        raise HTTPException(status_code=404, detail="Audio file missing")
    return FileResponse(
        path,
        media_type="audio/mpeg",
        headers={"Cache-Control": "public, max-age=86400", "Accept-Ranges": "bytes"},
    )
