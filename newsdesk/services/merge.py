"""Deduplication and retention for one category partition."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable, Optional, Sequence

from newsdesk.models.news import Article, Candidate, MergeResult, RawCandidate
from newsdesk.services.identity import assign_id, normalize_category

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = dt.timedelta(hours=24)


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def split_by_retention(
    articles: Iterable[Article],
    retention: dt.timedelta,
    now: dt.datetime,
) -> tuple[list[Article], list[Article]]:
    cutoff = now - retention
    valid, evicted = [], []
    for a in articles:
        (valid if a.collected_at > cutoff else evicted).append(a)
    return valid, evicted


def unseen_candidates(existing: Iterable[Article], raw: Sequence[RawCandidate]) -> list[RawCandidate]:
    """Provider results whose URL is not stored yet, in-batch repeats removed.

    Used before enrichment so known articles are not summarized again; the
    merge still performs the authoritative check.
    """
    seen = {a.url for a in existing}
    out = []
    for c in raw:
        if c.url in seen:
            continue
        seen.add(c.url)
        out.append(c)
    return out


def merge_articles(
    existing: Sequence[Article],
    incoming: Sequence[Candidate],
    category: str,
    retention: dt.timedelta = DEFAULT_RETENTION,
    now: Optional[dt.datetime] = None,
) -> MergeResult:
    """Merge freshly enriched candidates into an existing partition.

    Stale articles (collected_at outside the retention window) are dropped
    from the output even when passed in. Candidates whose URL is already
    stored are counted as duplicates and never modify the stored article.
    Repeats inside ``incoming`` keep their first occurrence.

    The merged list is ordered by collected_at, newest first.
    """
    now = now or _utc_now()
    category = normalize_category(category)

    valid, evicted = split_by_retention(existing, retention, now)
    known_urls = {a.url for a in valid}

    new: list[Article] = []
    duplicates = 0
    for c in incoming:
        if c.url in known_urls:
            duplicates += 1
            continue
        known_urls.add(c.url)
        new.append(
            Article(
                id=assign_id(category, c.url),
                title=c.title,
                summary=c.summary,
                url=c.url,
                published_at=c.published_at,
                image_url=c.image_url,
                category=category,
                collected_at=now,
            )
        )

    # sorted() is stable: new articles keep provider order ahead of older ones
    merged = sorted(new + valid, key=lambda a: a.collected_at, reverse=True)

    if evicted:
        logger.debug("evicted %d stale articles from %s", len(evicted), category)

    return MergeResult(
        merged=merged,
        new_count=len(new),
        duplicate_count=duplicates,
        evicted_count=len(evicted),
    )
