"""Tests for newsdesk.services.identity."""

from newsdesk.services.identity import assign_id, category_slug, normalize_category


class TestAssignId:
    def test_deterministic_output(self) -> None:
        assert assign_id("ai", "https://a/1") == assign_id("ai", "https://a/1")

    def test_prefixed_with_category_slug(self) -> None:
        article_id = assign_id("Artificial Intelligence", "https://a/1")
        assert article_id.startswith("news_artificial_intelligence_")

    def test_hash_part_is_16_hex_chars(self) -> None:
        digest = assign_id("ai", "https://a/1").rsplit("_", 1)[1]
        assert len(digest) == 16
        assert all(c in "0123456789abcdef" for c in digest)

    def test_category_casing_and_padding_do_not_matter(self) -> None:
        assert assign_id(" AI ", "https://a/1") == assign_id("ai", "https://a/1")

    def test_different_category_produces_different_id(self) -> None:
        assert assign_id("ai", "https://a/1") != assign_id("robotics", "https://a/1")

    def test_different_url_produces_different_id(self) -> None:
        assert assign_id("ai", "https://a/1") != assign_id("ai", "https://a/2")

    def test_url_is_hashed_verbatim(self) -> None:
        assert assign_id("ai", "https://a/1") != assign_id("ai", "https://a/1?utm_source=x")


class TestCategoryHelpers:
    def test_normalize_category(self) -> None:
        assert normalize_category("  Artificial Intelligence ") == "artificial intelligence"

    def test_category_slug_collapses_whitespace(self) -> None:
        assert category_slug("machine   learning") == "machine_learning"
