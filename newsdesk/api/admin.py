from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from newsdesk.api.deps import get_services
from newsdesk.api.public import NEWS_ENDPOINT
from newsdesk.core.config import settings
from newsdesk.core.errors import StorageError
from newsdesk.core.scheduler import next_collection_at
from newsdesk.core.security import require_admin
from newsdesk.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/collect")
async def trigger_collection(services: Services = Depends(get_services)):
    summary = await services.collector.run(trigger="manual")
    return summary.to_dict()


@router.get("/stats")
async def stats(request: Request, services: Services = Depends(get_services)):
    try:
        storage_stats = await services.storage.stats()
    except StorageError as e:
        logger.error("storage stats unavailable: %s", e)
        storage_stats = {"backend": services.storage.name, "error": str(e)}
    return {
        "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        "next_collection_at": next_collection_at(getattr(request.app.state, "scheduler", None)),
        "collection": services.collector.stats(),
        "storage": storage_stats,
        "audio": {
            "generated": services.artifacts.generated,
            "failures": services.artifacts.failures,
            "in_flight": services.artifacts.in_flight(),
        },
        "request_cache": services.request_cache.stats(),
    }


@router.get("/cache/stats")
async def cache_stats(services: Services = Depends(get_services)):
    return services.request_cache.stats()


@router.get("/cache/keys")
async def cache_keys(services: Services = Depends(get_services)):
    keys = services.request_cache.keys()
    return {"count": len(keys), "keys": keys}


@router.delete("/cache")
async def clear_cache(services: Services = Depends(get_services)):
    return {"ok": True, "cleared": services.request_cache.clear()}


@router.delete("/cache/news")
async def evict_news_page(
    category: str = Query(min_length=1, max_length=64),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1),
    context: Optional[str] = Query(default=None, description="Client context the page was cached for"),
    services: Services = Depends(get_services),
):
    params = {"category": category.strip(), "page": page, "page_size": page_size}
    if not services.request_cache.has(NEWS_ENDPOINT, params, context):
        raise HTTPException(status_code=404, detail="No cached entry for these parameters")
    services.request_cache.delete(NEWS_ENDPOINT, params, context)
    return {"ok": True, "deleted": 1}
