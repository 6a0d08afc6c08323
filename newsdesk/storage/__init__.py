from __future__ import annotations

from newsdesk.core.config import Settings
from newsdesk.storage.base import AUDIO_KIND, StorageBackend


def build_storage(settings: Settings) -> StorageBackend:
    backend = settings.storage_backend.strip().lower()
    if backend == "local":
        from newsdesk.storage.local import LocalFileStorage

        return LocalFileStorage(settings.data_dir)
    if backend == "hosted":
        from newsdesk.storage.hosted import HostedStorage

        return HostedStorage.from_settings(settings)
    raise ValueError(f"STORAGE_BACKEND must be 'local' or 'hosted', got {settings.storage_backend!r}")


__all__ = ["AUDIO_KIND", "StorageBackend", "build_storage"]
