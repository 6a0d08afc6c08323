from __future__ import annotations


class NewsdeskError(Exception):
    """Base class for errors raised by the ingestion core."""


class ProviderError(NewsdeskError):
    """An external provider (search, extraction, summarizer) failed or timed out."""


class StorageError(NewsdeskError):
    """Reading from or writing to the storage backend failed."""


class GenerationError(NewsdeskError):
    """Artifact generation (speech synthesis, upload) failed."""


class ArticleNotFound(NewsdeskError):
    def __init__(self, article_id: str):
        super().__init__(f"article {article_id} not found")
        self.article_id = article_id
