from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

import trafilatura
from bs4 import BeautifulSoup
from readability import Document

MIN_CONTENT_CHARS = 100
MAX_CONTENT_CHARS = 12000

WS_RE = re.compile(r"\s+")
IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg)(\?.*)?$", re.IGNORECASE)
IMAGE_HINT_RE = re.compile(r"/(image|img|photo|picture|media)", re.IGNORECASE)
ICON_RE = re.compile(r"\b(icon|logo|avatar|social|share|button|arrow|star|rating)\b", re.IGNORECASE)

FEATURED_SELECTORS = (
    ".featured-image img",
    ".article-image img",
    ".post-image img",
    ".hero-image img",
    "article img",
    ".content img",
)


@dataclass
class ExtractedContent:
    title: str
    content: str
    image_url: Optional[str]

    @property
    def success(self) -> bool:
        return len(self.content) >= MIN_CONTENT_CHARS


def _clean(text: str) -> str:
    return WS_RE.sub(" ", text).strip()


def _is_image_url(url: Optional[str]) -> bool:
    if not url or len(url) < 10:
        return False
    return bool(IMAGE_EXT_RE.search(url) or IMAGE_HINT_RE.search(url))


def _meta(soup: BeautifulSoup, **attrs) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip()
    return None


def _extract_image(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for candidate in (_meta(soup, property="og:image"), _meta(soup, name="twitter:image")):
        if _is_image_url(candidate):
            return urljoin(base_url, candidate)

    for selector in FEATURED_SELECTORS:
        img = soup.select_one(selector)
        if img is not None:
            src = img.get("src") or img.get("data-src")
            if _is_image_url(src):
                return urljoin(base_url, src)

    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src")
        alt = img.get("alt") or ""
        if _is_image_url(src) and not (ICON_RE.search(src) or ICON_RE.search(alt)):
            return urljoin(base_url, src)
    return None


def _extract_title(soup: BeautifulSoup) -> str:
    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return _clean(h1.get_text())
    if soup.title and soup.title.string:
        return _clean(soup.title.string)
    return _meta(soup, property="og:title") or ""


def extract_text_from_html(html: str) -> Optional[str]:
    # Prefer trafilatura plain text output
    text = trafilatura.extract(html, include_links=False, include_images=False, favor_precision=True)
    if text and text.strip():
        return _clean(text)

    # Fallback: readability -> plain text
    try:
        main_html = Document(html).summary(html_partial=True)
    except Exception:
        return None
    if main_html and main_html.strip():
        return _clean(BeautifulSoup(main_html, "lxml").get_text(" "))
    return None


def extract_article_content(html: str, url: str) -> ExtractedContent:
    soup = BeautifulSoup(html, "lxml")
    title = _extract_title(soup)
    image_url = _extract_image(soup, url)

    content = extract_text_from_html(html) or ""
    if len(content) < MIN_CONTENT_CHARS:
        # Last resort: every paragraph on the page
        content = _clean(" ".join(p.get_text(" ") for p in soup.find_all("p")))
    if len(content) < MIN_CONTENT_CHARS:
        content = ""
    elif len(content) > MAX_CONTENT_CHARS:
        content = content[:MAX_CONTENT_CHARS] + "..."

    return ExtractedContent(title=title, content=content, image_url=image_url)
