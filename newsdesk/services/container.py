from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

from openai import AsyncOpenAI

from newsdesk.core.config import Settings
from newsdesk.services.artifacts import ArtifactCache
from newsdesk.services.audio import AudioService
from newsdesk.services.collector import Collector
from newsdesk.services.fetcher import Fetcher
from newsdesk.services.index import ArticleIndex
from newsdesk.services.news import NewsService
from newsdesk.services.request_cache import RequestCache
from newsdesk.services.speech import SpeechSynthesizer
from newsdesk.services.summarizer import Summarizer
from newsdesk.storage import StorageBackend, build_storage


@dataclass
class Services:
    settings: Settings
    storage: StorageBackend
    index: ArticleIndex
    request_cache: RequestCache
    artifacts: ArtifactCache
    collector: Collector
    news: NewsService
    audio: AudioService

    async def close(self) -> None:
        await self.storage.close()


def build_services(settings: Settings, storage: StorageBackend | None = None) -> Services:
    storage = storage or build_storage(settings)
    retention = dt.timedelta(hours=settings.retention_hours)
    index = ArticleIndex()
    # Without OPENAI_API_KEY calls fail per item (401) instead of at startup
    openai_client = AsyncOpenAI(api_key=settings.openai_api_key or "unset", max_retries=0)

    fetcher = Fetcher(
        settings.news_api_key,
        settings.news_api_base_url,
        settings.user_agent,
        settings.request_timeout_seconds,
    )
    summarizer = Summarizer(openai_client, settings.summary_model, timeout_s=settings.request_timeout_seconds * 3)
    collector = Collector(
        fetcher,
        summarizer,
        storage,
        index,
        settings.category_list,
        retention=retention,
        page_size=settings.search_page_size,
        enrich_concurrency=settings.enrich_concurrency,
        timeout_s=settings.request_timeout_seconds * 3,
    )
    artifacts = ArtifactCache(storage, index, timeout_s=settings.generation_timeout_seconds)
    synthesizer = SpeechSynthesizer(
        openai_client,
        settings.tts_model,
        settings.tts_voice,
        timeout_s=settings.generation_timeout_seconds,
    )
    return Services(
        settings=settings,
        storage=storage,
        index=index,
        request_cache=RequestCache(settings.request_cache_ttl_seconds, maxsize=settings.request_cache_max_entries),
        artifacts=artifacts,
        collector=collector,
        news=NewsService(index, storage, retention),
        audio=AudioService(storage, artifacts, synthesizer),
    )
