from __future__ import annotations

import asyncio
import threading
from dataclasses import replace
from typing import Iterable, Optional

from newsdesk.models.news import Article
from newsdesk.services.identity import normalize_category


class ArticleIndex:
    """In-memory view of the latest merged set per category.

    Each partition is held as an immutable tuple and replaced whole, so a
    reader sees either the previous set or the new one, never a mix.
    ``partition_lock`` serializes writers of one category (merge + persist
    + swap, artifact linkage) so neither overwrites the other's update.
    """

    def __init__(self) -> None:
        self._partitions: dict[str, tuple[Article, ...]] = {}
        self._guard = threading.Lock()
        self._locks: dict[str, asyncio.Lock] = {}

    def snapshot(self, category: str) -> Optional[tuple[Article, ...]]:
        with self._guard:
            return self._partitions.get(normalize_category(category))

    def swap(self, category: str, articles: Iterable[Article]) -> None:
        frozen = tuple(articles)
        with self._guard:
            self._partitions[normalize_category(category)] = frozen

    def find(self, article_id: str) -> Optional[Article]:
        with self._guard:
            partitions = list(self._partitions.values())
        for articles in partitions:
            for a in articles:
                if a.id == article_id:
                    return a
        return None

    def apply_artifact(self, article_id: str, ref: str) -> bool:
        with self._guard:
            for category, articles in self._partitions.items():
                for i, a in enumerate(articles):
                    if a.id == article_id:
                        updated = replace(a, audio_path=ref)
                        self._partitions[category] = articles[:i] + (updated,) + articles[i + 1 :]
                        return True
        return False

    def partition_lock(self, category: str) -> asyncio.Lock:
        key = normalize_category(category)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = asyncio.Lock()
            return lock

    def counts(self) -> dict[str, int]:
        with self._guard:
            return {c: len(a) for c, a in self._partitions.items()}
