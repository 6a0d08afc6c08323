"""Tests for newsdesk.storage.hosted against a throwaway SQLite database."""

from unittest.mock import AsyncMock

import httpx
import pytest

from newsdesk.core.db import create_engine
from newsdesk.core.errors import ArticleNotFound, StorageError
from newsdesk.storage.base import AUDIO_KIND
from newsdesk.storage.hosted import HostedStorage, ObjectStore
from tests.helpers import make_article


@pytest.fixture
async def hosted(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    object_store = ObjectStore("https://proj.supabase.co/", "service-key", "article-audio")
    store = HostedStorage(engine, object_store)
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_save_and_load_partition(hosted):
    older = make_article("https://a/1", hours_ago=5)
    newer = make_article("https://a/2", hours_ago=1)
    await hosted.save_partition("ai", [older, newer])

    loaded = await hosted.load_partition("ai")

    assert [a.url for a in loaded] == ["https://a/2", "https://a/1"]
    assert loaded[1] == older
    assert loaded[1].collected_at.tzinfo is not None


@pytest.mark.asyncio
async def test_save_replaces_partition_only(hosted):
    robotics = make_article("https://r/1", category="robotics")
    await hosted.save_partition("robotics", [robotics])
    await hosted.save_partition("ai", [make_article("https://a/1"), make_article("https://a/2")])

    await hosted.save_partition("ai", [make_article("https://a/2")])

    assert [a.url for a in await hosted.load_partition("ai")] == ["https://a/2"]
    assert await hosted.load_partition("robotics") == [robotics]


@pytest.mark.asyncio
async def test_same_url_in_two_categories(hosted):
    await hosted.save_partition("ai", [make_article("https://x/1", category="ai")])
    await hosted.save_partition("robotics", [make_article("https://x/1", category="robotics")])
    assert len(await hosted.load_partition("ai")) == 1
    assert len(await hosted.load_partition("robotics")) == 1


@pytest.mark.asyncio
async def test_load_and_update_entity(hosted):
    article = make_article("https://a/1")
    await hosted.save_partition("ai", [article])

    assert await hosted.load_entity(article.id) == article
    assert await hosted.load_entity("news_ai_missing") is None

    await hosted.update_artifact_ref(article.id, "https://cdn/x.mp3")
    assert (await hosted.load_entity(article.id)).audio_path == "https://cdn/x.mp3"

    with pytest.raises(ArticleNotFound):
        await hosted.update_artifact_ref("news_ai_missing", "x")


@pytest.mark.asyncio
async def test_store_artifact_uploads_and_returns_public_url(hosted):
    hosted.object_store.upload = AsyncMock(side_effect=lambda path, data, ctype: hosted.object_store.public_url(path))

    ref = await hosted.store_artifact("news_ai_abc", AUDIO_KIND, b"mp3")

    assert ref == "https://proj.supabase.co/storage/v1/object/public/article-audio/articles/news_ai_abc.mp3"
    hosted.object_store.upload.assert_awaited_once_with("articles/news_ai_abc.mp3", b"mp3", "audio/mpeg")


@pytest.mark.asyncio
async def test_upload_failure_is_storage_error(hosted):
    hosted.object_store.upload = AsyncMock(side_effect=httpx.ConnectError("refused"))
    with pytest.raises(StorageError):
        await hosted.store_artifact("news_ai_abc", AUDIO_KIND, b"mp3")


@pytest.mark.asyncio
async def test_store_artifact_without_object_store(tmp_path):
    store = HostedStorage(create_engine(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}"), None)
    try:
        with pytest.raises(StorageError):
            await store.store_artifact("news_ai_abc", AUDIO_KIND, b"mp3")
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_stats(hosted):
    article = make_article("https://a/1", audio_path="https://cdn/a.mp3")
    await hosted.save_partition("ai", [article, make_article("https://a/2")])

    stats = await hosted.stats()

    assert stats["backend"] == "hosted"
    assert stats["totalArticles"] == 2
    assert stats["articlesWithAudio"] == 1
    assert stats["categories"] == [{"category": "ai", "articleCount": 2}]


@pytest.mark.asyncio
async def test_stats_database_error_is_storage_error(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
    store = HostedStorage(engine, None)
    try:
        with pytest.raises(StorageError):
            await store.stats()
    finally:
        await store.close()
