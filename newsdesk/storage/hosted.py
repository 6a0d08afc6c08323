from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Optional, Sequence

import httpx
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from newsdesk.core.config import Settings
from newsdesk.core.db import create_engine, create_sessionmaker, create_tables
from newsdesk.core.errors import ArticleNotFound, StorageError
from newsdesk.models.article import ArticleRow
from newsdesk.models.news import Article
from newsdesk.services.identity import normalize_category
from newsdesk.storage.base import StorageBackend

logger = logging.getLogger(__name__)


def _aware(value: dt.datetime) -> dt.datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def to_row(article: Article) -> ArticleRow:
    return ArticleRow(
        id=article.id,
        title=article.title,
        summary=article.summary,
        url=article.url,
        published_at=article.published_at,
        image_url=article.image_url,
        audio_path=article.audio_path,
        category=article.category,
        collected_at=article.collected_at,
    )


def from_row(row: ArticleRow) -> Article:
    return Article(
        id=row.id,
        title=row.title,
        summary=row.summary,
        url=row.url,
        published_at=row.published_at or "",
        image_url=row.image_url,
        audio_path=row.audio_path,
        category=row.category,
        collected_at=_aware(row.collected_at),
    )


class ObjectStore:
    """Minimal Supabase Storage client: upload bytes, hand back the public URL."""

    def __init__(self, base_url: str, api_key: str, bucket: str, timeout_s: int = 30):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self._headers = {"apikey": api_key, "Authorization": f"Bearer {api_key}"}
        self._timeout = httpx.Timeout(timeout_s)

    def public_url(self, object_path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{object_path}"

    async def upload(self, object_path: str, data: bytes, content_type: str) -> str:
        headers = dict(self._headers)
        headers.update({"Content-Type": content_type, "x-upsert": "true", "cache-control": "86400"})
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{object_path}"
        async with httpx.AsyncClient(headers=headers, timeout=self._timeout) as client:
            resp = await client.post(url, content=data)
            resp.raise_for_status()
        return self.public_url(object_path)


class HostedStorage(StorageBackend):
    """Articles in a relational database (SQLAlchemy async), audio in object storage."""

    name = "hosted"

    def __init__(
        self,
        engine: AsyncEngine,
        object_store: Optional[ObjectStore],
        sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.engine = engine
        self.SessionLocal = sessionmaker or create_sessionmaker(engine)
        self.object_store = object_store
        self._tables_ready = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "HostedStorage":
        store = None
        if settings.supabase_url and settings.supabase_key:
            store = ObjectStore(
                settings.supabase_url,
                settings.supabase_key,
                settings.audio_bucket,
                timeout_s=settings.generation_timeout_seconds,
            )
        return cls(create_engine(settings.database_url), store)

    async def _ensure_tables(self) -> None:
        if not self._tables_ready:
            await create_tables(self.engine)
            self._tables_ready = True

    async def load_partition(self, category: str) -> list[Article]:
        category = normalize_category(category)
        try:
            await self._ensure_tables()
            async with self.SessionLocal() as session:
                stmt = (
                    select(ArticleRow)
                    .where(ArticleRow.category == category)
                    .order_by(ArticleRow.collected_at.desc())
                )
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"cannot load partition {category}: {e}") from e
        return [from_row(r) for r in rows]

    async def save_partition(self, category: str, articles: Sequence[Article]) -> None:
        category = normalize_category(category)
        keep_ids = [a.id for a in articles]
        try:
            await self._ensure_tables()
            async with self.SessionLocal() as session:
                async with session.begin():
                    # Last writer wins for the whole partition
                    await session.execute(
                        delete(ArticleRow).where(
                            ArticleRow.category == category,
                            ArticleRow.id.not_in(keep_ids),
                        )
                    )
                    for a in articles:
                        await session.merge(to_row(a))
        except SQLAlchemyError as e:
            raise StorageError(f"cannot save partition {category}: {e}") from e
        logger.info("saved %d articles for %s", len(articles), category)

    async def load_entity(self, article_id: str) -> Optional[Article]:
        try:
            await self._ensure_tables()
            async with self.SessionLocal() as session:
                row = await session.get(ArticleRow, article_id)
        except SQLAlchemyError as e:
            raise StorageError(f"cannot load {article_id}: {e}") from e
        return from_row(row) if row else None

    async def update_artifact_ref(self, article_id: str, ref: str) -> None:
        try:
            await self._ensure_tables()
            async with self.SessionLocal() as session:
                async with session.begin():
                    res = await session.execute(
                        update(ArticleRow).where(ArticleRow.id == article_id).values(audio_path=ref)
                    )
        except SQLAlchemyError as e:
            raise StorageError(f"cannot update {article_id}: {e}") from e
        if res.rowcount == 0:
            raise ArticleNotFound(article_id)
        logger.info("linked artifact %s to %s", ref, article_id)

    async def store_artifact(self, article_id: str, kind: str, data: bytes) -> str:
        if self.object_store is None:
            raise StorageError("object storage is not configured (SUPABASE_URL / SUPABASE_KEY)")
        object_path = f"articles/{article_id}.mp3"
        try:
            url = await self.object_store.upload(object_path, data, "audio/mpeg")
        except httpx.HTTPError as e:
            raise StorageError(f"cannot upload {kind} for {article_id}: {e}") from e
        logger.info("uploaded %s for %s (%.2f KB)", kind, article_id, len(data) / 1024)
        return url

    async def stats(self) -> dict[str, Any]:
        try:
            await self._ensure_tables()
            async with self.SessionLocal() as session:
                stmt = select(ArticleRow.category, func.count(ArticleRow.id)).group_by(ArticleRow.category)
                rows = (await session.execute(stmt)).all()
                with_audio = await session.scalar(
                    select(func.count(ArticleRow.id)).where(ArticleRow.audio_path.is_not(None))
                )
        except SQLAlchemyError as e:
            raise StorageError(f"cannot read storage stats: {e}") from e
        categories = [{"category": c, "articleCount": n} for c, n in rows]
        return {
            "backend": self.name,
            "categories": categories,
            "totalArticles": sum(n for _, n in rows),
            "articlesWithAudio": with_audio or 0,
        }

    async def close(self) -> None:
        await self.engine.dispose()
