from __future__ import annotations

import logging

from newsdesk.models.news import Article
from newsdesk.services.artifacts import ArtifactCache
from newsdesk.services.speech import SpeechSynthesizer
from newsdesk.storage.base import AUDIO_KIND, StorageBackend

logger = logging.getLogger(__name__)


class AudioService:
    """Narrated audio for an article, synthesized on first request only."""

    def __init__(self, storage: StorageBackend, artifacts: ArtifactCache, synthesizer: SpeechSynthesizer):
        self.storage = storage
        self.artifacts = artifacts
        self.synthesizer = synthesizer

    async def _generate(self, article: Article) -> str:
        audio = await self.synthesizer.synthesize(f"{article.title}. {article.summary}")
        return await self.storage.store_artifact(article.id, AUDIO_KIND, audio)

    async def get_or_generate(self, article_id: str) -> str:
        return await self.artifacts.get_or_generate(article_id, AUDIO_KIND, self._generate)
