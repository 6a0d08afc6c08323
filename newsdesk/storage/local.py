from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
import os
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional, Sequence

from newsdesk.core.errors import ArticleNotFound, StorageError
from newsdesk.models.news import Article
from newsdesk.services.identity import ID_HASH_LENGTH, category_slug, normalize_category
from newsdesk.storage.base import StorageBackend

logger = logging.getLogger(__name__)


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def _slug_from_id(article_id: str) -> Optional[str]:
    # news_<slug>_<16 hex>
    if not article_id.startswith("news_") or len(article_id) <= 5 + ID_HASH_LENGTH + 1:
        return None
    return article_id[5 : -(ID_HASH_LENGTH + 1)]


class LocalFileStorage(StorageBackend):
    """One JSON document per category under ``<data_dir>/articles``; audio under ``<data_dir>/audio``."""

    name = "local"

    def __init__(self, data_dir: str | os.PathLike):
        self.data_dir = Path(data_dir)
        self.articles_dir = self.data_dir / "articles"
        self.audio_dir = self.data_dir / "audio"
        self._write_lock = asyncio.Lock()

    def _contained(self, path: Path) -> Path:
        resolved = path.resolve()
        if resolved.parent != self.articles_dir.resolve():
            raise StorageError(f"partition path {path} is outside {self.articles_dir}")
        return resolved

    def _partition_path(self, category: str) -> Path:
        return self._contained(self.articles_dir / f"{category_slug(category)}.json")

    def _audio_path(self, article_id: str) -> Path:
        return self.audio_dir / f"{article_id}.mp3"

    def _read_document(self, path: Path) -> Optional[dict[str, Any]]:
        if not path.exists():
            return None
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"cannot read {path}: {e}") from e
        if not isinstance(doc, dict) or not isinstance(doc.get("articles"), list):
            logger.warning("invalid partition file %s, treating as empty", path)
            return None
        return doc

    def _read_partition(self, path: Path) -> list[Article]:
        doc = self._read_document(path)
        if doc is None:
            return []
        try:
            return [Article.from_dict(item) for item in doc["articles"]]
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"malformed article in {path}: {e}") from e

    def _write_partition(self, category: str, articles: Sequence[Article]) -> None:
        doc = {
            "category": normalize_category(category),
            "lastUpdated": _utc_now().isoformat(),
            "totalArticles": len(articles),
            "articles": [a.to_dict() for a in articles],
        }
        _atomic_write(self._partition_path(category), json.dumps(doc, indent=2).encode("utf-8"))

    def _partition_files(self) -> list[Path]:
        if not self.articles_dir.exists():
            return []
        return sorted(self.articles_dir.glob("*.json"))

    def _find_entity(self, article_id: str) -> tuple[Optional[Path], list[Article], int]:
        candidates = []
        slug = _slug_from_id(article_id)
        if slug:
            try:
                candidates.append(self._contained(self.articles_dir / f"{slug}.json"))
            except StorageError:
                logger.warning("ignoring malformed article id %r", article_id)
        names = {c.name for c in candidates}
        candidates.extend(p for p in self._partition_files() if p.name not in names)
        for path in candidates:
            articles = self._read_partition(path)
            for i, a in enumerate(articles):
                if a.id == article_id:
                    return path, articles, i
        return None, [], -1

    async def load_partition(self, category: str) -> list[Article]:
        path = self._partition_path(category)
        articles = await asyncio.to_thread(self._read_partition, path)
        logger.debug("loaded %d articles for %s from %s", len(articles), category, path)
        return articles

    async def save_partition(self, category: str, articles: Sequence[Article]) -> None:
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._write_partition, category, list(articles))
            except OSError as e:
                raise StorageError(f"cannot write partition {category}: {e}") from e
        logger.info("saved %d articles for %s", len(articles), category)

    async def load_entity(self, article_id: str) -> Optional[Article]:
        _, articles, idx = await asyncio.to_thread(self._find_entity, article_id)
        return articles[idx] if idx >= 0 else None

    def _update_ref(self, article_id: str, ref: str) -> None:
        path, articles, idx = self._find_entity(article_id)
        if path is None:
            raise ArticleNotFound(article_id)
        current = articles[idx]
        articles[idx] = replace(current, audio_path=ref)
        self._write_partition(current.category, articles)

    async def update_artifact_ref(self, article_id: str, ref: str) -> None:
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._update_ref, article_id, ref)
            except OSError as e:
                raise StorageError(f"cannot update {article_id}: {e}") from e
        logger.info("linked artifact %s to %s", ref, article_id)

    async def store_artifact(self, article_id: str, kind: str, data: bytes) -> str:
        path = self._audio_path(article_id)
        try:
            await asyncio.to_thread(_atomic_write, path, data)
        except OSError as e:
            raise StorageError(f"cannot write {kind} for {article_id}: {e}") from e
        logger.info("stored %s for %s (%.2f KB)", kind, article_id, len(data) / 1024)
        return str(path)

    def _cleanup(self, max_age: dt.timedelta) -> int:
        if not self.audio_dir.exists():
            return 0
        cutoff = (_utc_now() - max_age).timestamp()
        removed = 0
        for f in self.audio_dir.glob("*.mp3"):
            if f.stat().st_mtime < cutoff:
                f.unlink()
                removed += 1
        return removed

    async def cleanup_artifacts(self, max_age: dt.timedelta) -> int:
        removed = await asyncio.to_thread(self._cleanup, max_age)
        if removed:
            logger.info("removed %d audio files older than %s", removed, max_age)
        return removed

    def _stats(self) -> dict[str, Any]:
        categories = []
        total = 0
        for path in self._partition_files():
            doc = self._read_document(path) or {"articles": []}
            count = len(doc["articles"])
            total += count
            categories.append(
                {
                    "category": doc.get("category") or path.stem,
                    "articleCount": count,
                    "lastUpdated": doc.get("lastUpdated"),
                    "fileSizeKB": round(path.stat().st_size / 1024, 2),
                }
            )
        audio = list(self.audio_dir.glob("*.mp3")) if self.audio_dir.exists() else []
        return {
            "backend": self.name,
            "categories": categories,
            "totalArticles": total,
            "audioFiles": len(audio),
            "audioSizeKB": round(sum(f.stat().st_size for f in audio) / 1024, 2),
        }

    async def stats(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._stats)
