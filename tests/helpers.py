from __future__ import annotations

import datetime as dt
from dataclasses import replace
from typing import Optional, Sequence

from newsdesk.core.errors import ArticleNotFound, ProviderError, StorageError
from newsdesk.models.news import Article, RawCandidate
from newsdesk.services.identity import assign_id, normalize_category
from newsdesk.storage.base import StorageBackend

NOW = dt.datetime(2026, 10, 17, 12, 0, tzinfo=dt.timezone.utc)


def make_article(url: str, category: str = "ai", hours_ago: float = 1, **kw) -> Article:
    return Article(
        id=assign_id(category, url),
        title=kw.pop("title", f"Title {url}"),
        summary=kw.pop("summary", f"Summary {url}"),
        url=url,
        published_at=kw.pop("published_at", "2026-10-17"),
        category=normalize_category(category),
        collected_at=kw.pop("collected_at", dt.datetime.now(dt.timezone.utc) - dt.timedelta(hours=hours_ago)),
        **kw,
    )


def make_raw(url: str, title: Optional[str] = None, description: str = "desc") -> RawCandidate:
    return RawCandidate(title=title or f"Title {url}", description=description, url=url, published_at="2026-10-17")


class FakeStorage(StorageBackend):
    name = "fake"

    def __init__(self, partitions: Optional[dict[str, list[Article]]] = None):
        self.partitions: dict[str, list[Article]] = {k: list(v) for k, v in (partitions or {}).items()}
        self.artifacts: dict[str, bytes] = {}
        self.fail_save = False
        self.fail_load = False
        self.saves: list[tuple[str, list[Article]]] = []

    async def load_partition(self, category: str) -> list[Article]:
        if self.fail_load:
            raise StorageError("load failed")
        return list(self.partitions.get(normalize_category(category), []))

    async def save_partition(self, category: str, articles: Sequence[Article]) -> None:
        if self.fail_save:
            raise StorageError("disk full")
        self.partitions[normalize_category(category)] = list(articles)
        self.saves.append((category, list(articles)))

    async def load_entity(self, article_id: str) -> Optional[Article]:
        for articles in self.partitions.values():
            for a in articles:
                if a.id == article_id:
                    return a
        return None

    async def update_artifact_ref(self, article_id: str, ref: str) -> None:
        for category, articles in self.partitions.items():
            for i, a in enumerate(articles):
                if a.id == article_id:
                    articles[i] = replace(a, audio_path=ref)
                    return
        raise ArticleNotFound(article_id)

    async def store_artifact(self, article_id: str, kind: str, data: bytes) -> str:
        self.artifacts[article_id] = data
        return f"https://cdn.example/{kind}/{article_id}.mp3"


class FakeFetcher:
    def __init__(self, results: Optional[dict[str, list[RawCandidate]]] = None, pages: Optional[dict[str, str]] = None):
        self.results = results or {}
        self.pages = pages or {}
        self.fail: set[str] = set()
        self.searches: list[str] = []

    async def search(self, query: str, page_size: int = 10) -> list[RawCandidate]:
        self.searches.append(query)
        if query in self.fail:
            raise ProviderError(f"search for {query} failed")
        return list(self.results.get(query, []))[:page_size]

    async def fetch_page_html(self, url: str):
        html = self.pages.get(url)
        if html is None:
            return None, "text/html", 404
        return html, "text/html", 200


class FakeSummarizer:
    def __init__(self, fail_urls: Sequence[str] = ()):
        self.fail_titles = {f"Title {u}" for u in fail_urls}
        self.calls = 0
        self.failures = 0
        self.tokens_used = 0
        self.seen: list[tuple[str, bool]] = []

    async def summarize(self, title: str, text: str, from_description: bool = False) -> str:
        self.calls += 1
        self.seen.append((title, from_description))
        if title in self.fail_titles:
            self.failures += 1
            raise ProviderError("summarizer unavailable")
        return f"summary of {title}"
