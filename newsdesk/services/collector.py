from __future__ import annotations

import asyncio
import datetime as dt
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from newsdesk.core.errors import NewsdeskError, StorageError
from newsdesk.models.news import Article, Candidate, RawCandidate
from newsdesk.services.fetcher import Fetcher
from newsdesk.services.index import ArticleIndex
from newsdesk.services.merge import merge_articles, unseen_candidates
from newsdesk.services.parser import ExtractedContent, extract_article_content
from newsdesk.services.summarizer import Summarizer
from newsdesk.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    ENRICHING = "enriching"
    MERGING = "merging"
    PERSISTING = "persisting"
    FAILED = "failed"


@dataclass
class CategoryOutcome:
    category: str
    state: RunState = RunState.IDLE
    fetched: int = 0
    new: int = 0
    duplicates: int = 0
    evicted: int = 0
    enrich_failures: int = 0
    total: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "fetched": self.fetched,
            "new": self.new,
            "duplicates": self.duplicates,
            "evicted": self.evicted,
            "enrich_failures": self.enrich_failures,
            "total": self.total,
            "error": self.error,
        }


@dataclass
class RunSummary:
    run_id: int
    trigger: str
    started_at: dt.datetime
    finished_at: Optional[dt.datetime] = None
    status: str = "running"
    categories: dict[str, CategoryOutcome] = field(default_factory=dict)

    @property
    def new(self) -> int:
        return sum(o.new for o in self.categories.values())

    @property
    def duplicates(self) -> int:
        return sum(o.duplicates for o in self.categories.values())

    @property
    def evicted(self) -> int:
        return sum(o.evicted for o in self.categories.values())

    @property
    def errors(self) -> list[str]:
        return [f"{c}: {o.error}" for c, o in self.categories.items() if o.error]

    @property
    def duration_s(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "trigger": self.trigger,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_s": round(self.duration_s, 3),
            "new": self.new,
            "duplicates": self.duplicates,
            "evicted": self.evicted,
            "categories": {c: o.to_dict() for c, o in self.categories.items()},
            "errors": self.errors,
        }


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Collector:
    """Fetches, enriches and merges articles for every configured category.

    Only one run executes at a time; a trigger that arrives while a run is
    in flight (scheduled or manual) is skipped and reported as such.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        summarizer: Summarizer,
        storage: StorageBackend,
        index: ArticleIndex,
        categories: Sequence[str],
        retention: dt.timedelta = dt.timedelta(hours=24),
        page_size: int = 10,
        enrich_concurrency: int = 3,
        timeout_s: float = 30,
    ):
        self.fetcher = fetcher
        self.summarizer = summarizer
        self.storage = storage
        self.index = index
        self.categories = list(categories)
        self.retention = retention
        self.page_size = page_size
        self.timeout_s = timeout_s
        self._enrich_slots = asyncio.Semaphore(enrich_concurrency)
        self._run_lock = asyncio.Lock()
        self._background: Optional[asyncio.Task] = None

        self.total_runs = 0
        self.failed_runs = 0
        self.skipped_runs = 0
        self.articles_new = 0
        self.articles_duplicate = 0
        self.articles_evicted = 0
        self.last_run: Optional[RunSummary] = None
        self.current_run: Optional[RunSummary] = None

    @property
    def busy(self) -> bool:
        return self._run_lock.locked()

    async def run(self, trigger: str = "scheduled") -> RunSummary:
        if self._run_lock.locked():
            self.skipped_runs += 1
            logger.warning("collection already running, skipping %s trigger", trigger)
            now = _utc_now()
            return RunSummary(run_id=self.total_runs, trigger=trigger, started_at=now, finished_at=now, status="skipped")

        async with self._run_lock:
            self.total_runs += 1
            summary = RunSummary(
                run_id=self.total_runs,
                trigger=trigger,
                started_at=_utc_now(),
                categories={c: CategoryOutcome(c) for c in self.categories},
            )
            self.current_run = summary
            started = time.monotonic()
            logger.info("collection run %d started (%s) for %d categories", summary.run_id, trigger, len(self.categories))

            # Categories are independent partitions; one failing does not stop the others
            await asyncio.gather(*(self._collect_category(o) for o in summary.categories.values()))

            summary.finished_at = _utc_now()
            ok = [o for o in summary.categories.values() if o.ok]
            if len(ok) == len(summary.categories):
                summary.status = "completed"
            elif ok:
                summary.status = "partial"
            else:
                summary.status = "failed"
                self.failed_runs += 1

            self.articles_new += summary.new
            self.articles_duplicate += summary.duplicates
            self.articles_evicted += summary.evicted
            self.last_run = summary
            self.current_run = None

            logger.info(
                "collection run %d %s in %.2fs: new=%d duplicates=%d evicted=%d",
                summary.run_id,
                summary.status,
                time.monotonic() - started,
                summary.new,
                summary.duplicates,
                summary.evicted,
            )
            return summary

    def start_background_run(self, trigger: str = "startup") -> asyncio.Task:
        self._background = asyncio.ensure_future(self.run(trigger))
        return self._background

    async def _collect_category(self, outcome: CategoryOutcome) -> None:
        category = outcome.category
        try:
            self._transition(outcome, RunState.FETCHING)
            raw = await asyncio.wait_for(self.fetcher.search(category, self.page_size), self.timeout_s)
            outcome.fetched = len(raw)

            known = await self._current(category)
            fresh = unseen_candidates(known, raw)
            outcome.duplicates += len(raw) - len(fresh)

            self._transition(outcome, RunState.ENRICHING)
            enriched = await asyncio.gather(*(self._enrich(c) for c in fresh))
            candidates = [c for c in enriched if c is not None]
            outcome.enrich_failures = len(fresh) - len(candidates)

            self._transition(outcome, RunState.MERGING)
            async with self.index.partition_lock(category):
                # Re-read under the lock: artifact links may have landed during enrichment
                existing = await self._current(category)
                result = merge_articles(existing, candidates, category, self.retention)
                outcome.new = result.new_count
                outcome.duplicates += result.duplicate_count
                outcome.evicted = result.evicted_count
                outcome.total = len(result.merged)

                if result.new_count or result.evicted_count:
                    self._transition(outcome, RunState.PERSISTING)
                    await self.storage.save_partition(category, result.merged)
                # Only swapped once storage accepted the set; readers keep the old one otherwise
                self.index.swap(category, result.merged)

            self._transition(outcome, RunState.IDLE)
            logger.info(
                "%s: fetched=%d new=%d duplicates=%d evicted=%d enrich_failures=%d total=%d",
                category,
                outcome.fetched,
                outcome.new,
                outcome.duplicates,
                outcome.evicted,
                outcome.enrich_failures,
                outcome.total,
            )
        except asyncio.TimeoutError:
            outcome.error = f"timed out while {outcome.state.value}"
            self._transition(outcome, RunState.FAILED)
            logger.warning("%s: %s", category, outcome.error)
        except NewsdeskError as e:
            outcome.error = f"{type(e).__name__}: {e}"
            self._transition(outcome, RunState.FAILED)
            logger.warning("%s failed while collecting: %s", category, outcome.error)
        except Exception as e:
            outcome.error = f"{type(e).__name__}: {e}"
            self._transition(outcome, RunState.FAILED)
            logger.exception("%s failed while collecting", category)
        if outcome.error is not None:
            await self._evict_expired(outcome)

    async def _evict_expired(self, outcome: CategoryOutcome) -> None:
        """Apply retention to a category whose collection failed, so expired articles still leave."""
        category = outcome.category
        try:
            async with self.index.partition_lock(category):
                existing = await self._current(category)
                result = merge_articles(existing, [], category, self.retention)
                if not result.evicted_count:
                    return
                await self.storage.save_partition(category, result.merged)
                self.index.swap(category, result.merged)
            outcome.evicted = result.evicted_count
            outcome.total = len(result.merged)
            logger.info("%s: evicted %d expired articles after a failed collection", category, result.evicted_count)
        except Exception as e:
            logger.warning("%s: could not evict expired articles: %s: %s", category, type(e).__name__, e)

    def _transition(self, outcome: CategoryOutcome, state: RunState) -> None:
        logger.debug("%s: %s -> %s", outcome.category, outcome.state.value, state.value)
        outcome.state = state

    async def _current(self, category: str) -> tuple[Article, ...]:
        articles = self.index.snapshot(category)
        if articles is None:
            articles = tuple(await self.storage.load_partition(category))
        return articles

    async def _extract(self, raw: RawCandidate) -> Optional[ExtractedContent]:
        html, _, status = await self.fetcher.fetch_page_html(raw.url)
        if not html:
            logger.debug("no page html for %s (status %s)", raw.url, status)
            return None
        return await asyncio.to_thread(extract_article_content, html, raw.url)

    async def _enrich(self, raw: RawCandidate) -> Optional[Candidate]:
        async with self._enrich_slots:
            extracted = None
            try:
                extracted = await asyncio.wait_for(self._extract(raw), self.timeout_s)
            except Exception as e:
                # Extraction is best effort; the provider description is the fallback
                logger.warning("content extraction failed for %s: %s: %s", raw.url, type(e).__name__, e)

            has_content = extracted is not None and extracted.success
            text = extracted.content if has_content else raw.description
            if not text:
                logger.warning("no content available for %s", raw.url)
                return None

            try:
                summary = await asyncio.wait_for(
                    self.summarizer.summarize(raw.title, text, from_description=not has_content),
                    self.timeout_s,
                )
            except Exception as e:
                logger.warning("summary failed for %s: %s: %s", raw.url, type(e).__name__, e)
                return None

        image_url = (extracted.image_url if extracted else None) or raw.image_url
        return Candidate(
            title=raw.title,
            summary=summary,
            url=raw.url,
            published_at=raw.published_at,
            image_url=image_url,
        )

    async def bootstrap(self) -> int:
        """Load persisted partitions into the index; returns the number of articles loaded."""
        total = 0
        for category in self.categories:
            try:
                loaded = await self.storage.load_partition(category)
            except StorageError as e:
                logger.error("could not load %s on startup: %s", category, e)
                continue
            fresh = merge_articles(loaded, [], category, self.retention).merged
            if len(fresh) != len(loaded):
                try:
                    await self.storage.save_partition(category, fresh)
                except StorageError as e:
                    logger.warning("could not drop stale articles for %s: %s", category, e)
            self.index.swap(category, fresh)
            total += len(fresh)
            logger.info("loaded %d/%d articles for %s", len(fresh), len(loaded), category)
        return total

    def stats(self) -> dict[str, Any]:
        return {
            "running": self.busy,
            "categories": self.categories,
            "total_runs": self.total_runs,
            "failed_runs": self.failed_runs,
            "skipped_runs": self.skipped_runs,
            "articles_new": self.articles_new,
            "articles_duplicate": self.articles_duplicate,
            "articles_evicted": self.articles_evicted,
            "summaries": {
                "calls": self.summarizer.calls,
                "failures": self.summarizer.failures,
                "tokens_used": self.summarizer.tokens_used,
            },
            "current_run": self.current_run.to_dict() if self.current_run else None,
            "last_run": self.last_run.to_dict() if self.last_run else None,
            "index": self.index.counts(),
        }
