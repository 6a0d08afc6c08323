"""At-most-once generation of derived artifacts (narrated audio).

Concurrent requests for the same ``(article_id, kind)`` share one task.
The task first checks durable state, so a restart never regenerates an
artifact that was already stored. A failed task is dropped from the
in-flight map and the next request starts over.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from newsdesk.core.errors import ArticleNotFound, GenerationError
from newsdesk.models.news import Article
from newsdesk.services.index import ArticleIndex
from newsdesk.storage.base import AUDIO_KIND, StorageBackend

logger = logging.getLogger(__name__)

Generator = Callable[[Article], Awaitable[str]]

# Article field holding the durable reference for each artifact kind
REF_FIELDS = {AUDIO_KIND: "audio_path"}


class ArtifactCache:
    def __init__(
        self,
        storage: StorageBackend,
        index: Optional[ArticleIndex] = None,
        timeout_s: Optional[float] = 60,
    ):
        self.storage = storage
        self.index = index
        self.timeout_s = timeout_s
        self._inflight: dict[tuple[str, str], asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self.generated = 0
        self.failures = 0

    def in_flight(self) -> int:
        return len(self._inflight)

    async def get_or_generate(self, article_id: str, kind: str, generator: Generator) -> str:
        if kind not in REF_FIELDS:
            raise ValueError(f"unknown artifact kind {kind!r}")
        key = (article_id, kind)
        async with self._lock:
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.ensure_future(self._produce(article_id, kind, generator))
                self._inflight[key] = task
                task.add_done_callback(lambda t, k=key: self._forget(k, t))
            else:
                logger.debug("joining in-flight %s generation for %s", kind, article_id)
        # A caller that gets cancelled must not cancel the work other callers wait on
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, str], task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            # Retrieved here so asyncio does not warn when every waiter was cancelled
            logger.debug("%s generation for %s failed: %r", key[1], key[0], task.exception())

    async def _produce(self, article_id: str, kind: str, generator: Generator) -> str:
        article = await self.storage.load_entity(article_id)
        if article is None:
            raise ArticleNotFound(article_id)
        stored = getattr(article, REF_FIELDS[kind])
        if stored:
            logger.info("reusing stored %s for %s", kind, article_id)
            return stored

        logger.info("generating %s for %s", kind, article_id)
        try:
            ref = await asyncio.wait_for(generator(article), timeout=self.timeout_s)
        except asyncio.TimeoutError as e:
            self.failures += 1
            raise GenerationError(f"{kind} generation for {article_id} timed out after {self.timeout_s}s") from e
        except GenerationError:
            self.failures += 1
            raise
        except Exception as e:
            self.failures += 1
            raise GenerationError(f"{kind} generation for {article_id} failed: {e}") from e

        if self.index is not None:
            async with self.index.partition_lock(article.category):
                await self.storage.update_artifact_ref(article_id, ref)
                self.index.apply_artifact(article_id, ref)
        else:
            await self.storage.update_artifact_ref(article_id, ref)

        self.generated += 1
        logger.info("%s ready for %s: %s", kind, article_id, ref)
        return ref
