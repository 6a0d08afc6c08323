from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Any, Optional


def _iso(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.isoformat()


def parse_timestamp(value: str) -> dt.datetime:
    # fromisoformat on older interpreters does not accept a trailing "Z"
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = dt.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


@dataclass(frozen=True)
class RawCandidate:
    """A search result as returned by the provider, before enrichment."""

    title: str
    description: str
    url: str
    published_at: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Candidate:
    """An enriched search result, ready to be merged into a partition."""

    title: str
    summary: str
    url: str
    published_at: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Article:
    id: str
    title: str
    summary: str
    url: str
    published_at: str
    category: str
    collected_at: dt.datetime
    image_url: Optional[str] = None
    audio_path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "url": self.url,
            "publishedAt": self.published_at,
            "imageUrl": self.image_url,
            "audioPath": self.audio_path,
            "category": self.category,
            "collectedAt": _iso(self.collected_at),
        }

    def to_public_dict(self) -> dict[str, Any]:
        d = self.to_dict()
        # Internal bookkeeping is not part of the public payload
        d.pop("collectedAt")
        d.pop("category")
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Article":
        return cls(
            id=data["id"],
            title=data["title"],
            summary=data["summary"],
            url=data["url"],
            published_at=data.get("publishedAt") or "",
            category=data["category"],
            collected_at=parse_timestamp(data["collectedAt"]),
            image_url=data.get("imageUrl") or None,
            audio_path=data.get("audioPath") or None,
        )


@dataclass
class MergeResult:
    merged: list[Article] = field(default_factory=list)
    new_count: int = 0
    duplicate_count: int = 0
    evicted_count: int = 0


@dataclass(frozen=True)
class PaginationInfo:
    page: int
    page_size: int
    total_results: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(cls, page: int, page_size: int, total_results: int) -> "PaginationInfo":
        total_pages = math.ceil(total_results / page_size) if page_size else 0
        return cls(
            page=page,
            page_size=page_size,
            total_results=total_results,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "pageSize": self.page_size,
            "totalResults": self.total_results,
            "totalPages": self.total_pages,
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
        }
