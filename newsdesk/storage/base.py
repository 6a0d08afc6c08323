from __future__ import annotations

import abc
import datetime as dt
from typing import Any, Optional, Sequence

from newsdesk.models.news import Article

AUDIO_KIND = "audio"


class StorageBackend(abc.ABC):
    """Durable home of the merged article partitions and their artifacts.

    ``save_partition`` is last-writer-wins for the whole category; callers
    merge against the latest state before saving. Implementations raise
    ``StorageError`` on failure.
    """

    name: str = "storage"

    @abc.abstractmethod
    async def load_partition(self, category: str) -> list[Article]: ...

    @abc.abstractmethod
    async def save_partition(self, category: str, articles: Sequence[Article]) -> None: ...

    @abc.abstractmethod
    async def load_entity(self, article_id: str) -> Optional[Article]: ...

    @abc.abstractmethod
    async def update_artifact_ref(self, article_id: str, ref: str) -> None: ...

    @abc.abstractmethod
    async def store_artifact(self, article_id: str, kind: str, data: bytes) -> str:
        """Persist artifact bytes and return the reference clients resolve."""

    async def cleanup_artifacts(self, max_age: dt.timedelta) -> int:
        return 0

    async def stats(self) -> dict[str, Any]:
        return {"backend": self.name}

    async def close(self) -> None:
        return None
