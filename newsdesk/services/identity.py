from __future__ import annotations

import hashlib
import re

ID_HASH_LENGTH = 16

_WS_RE = re.compile(r"\s+")


def normalize_category(category: str) -> str:
    return category.strip().lower()


def category_slug(category: str) -> str:
    return _WS_RE.sub("_", normalize_category(category))


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def assign_id(category: str, source_url: str) -> str:
    # The URL is hashed byte for byte; two URLs differing only in tracking params are distinct.
    slug = category_slug(category)
    digest = sha256_text(f"{slug}:{source_url}")[:ID_HASH_LENGTH]
    return f"news_{slug}_{digest}"
