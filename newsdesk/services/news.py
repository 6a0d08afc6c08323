from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Optional

from newsdesk.models.news import Article, PaginationInfo
from newsdesk.services.identity import normalize_category
from newsdesk.services.index import ArticleIndex
from newsdesk.services.merge import split_by_retention
from newsdesk.storage.base import StorageBackend

logger = logging.getLogger(__name__)


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class NewsService:
    def __init__(self, index: ArticleIndex, storage: StorageBackend, retention: dt.timedelta):
        self.index = index
        self.storage = storage
        self.retention = retention

    async def _partition(self, category: str) -> tuple[Article, ...]:
        articles = self.index.snapshot(category)
        if articles is not None:
            return articles
        logger.info("loading %s from storage (not in index)", category)
        loaded = await self.storage.load_partition(category)
        fresh, _ = split_by_retention(loaded, self.retention, _utc_now())
        fresh.sort(key=lambda a: a.collected_at, reverse=True)
        if not fresh:
            # Empty partitions stay out of the index; the next collection run fills it
            return ()
        async with self.index.partition_lock(category):
            # A collection run may have filled the partition while we were loading
            current = self.index.snapshot(category)
            if current is not None:
                return current
            self.index.swap(category, fresh)
        return tuple(fresh)

    async def get_page(self, category: str, page: int = 1, page_size: int = 6) -> dict[str, Any]:
        category = normalize_category(category)
        # Articles can age out between collection runs; never serve them
        articles, _ = split_by_retention(await self._partition(category), self.retention, _utc_now())
        start = (page - 1) * page_size
        items = articles[start : start + page_size]
        pagination = PaginationInfo.build(page, page_size, len(articles))
        logger.debug("serving %d articles for %s page %d", len(items), category, page)
        return {
            "articles": [a.to_public_dict() for a in items],
            "pagination": pagination.to_dict(),
        }

    async def get_article(self, article_id: str) -> Optional[Article]:
        article = self.index.find(article_id)
        if article is None:
            article = await self.storage.load_entity(article_id)
        return article
