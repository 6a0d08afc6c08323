from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

import httpx

from newsdesk.core.errors import ProviderError
from newsdesk.models.news import RawCandidate

logger = logging.getLogger(__name__)


def _published_date(value: Optional[str]) -> str:
    # NewsAPI returns full timestamps; articles only keep the date
    if not value:
        return dt.datetime.now(dt.timezone.utc).date().isoformat()
    try:
        return dt.datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value[:10]


class Fetcher:
    def __init__(self, api_key: str, base_url: str, user_agent: str, timeout_s: int):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._headers = {"User-Agent": user_agent}
        self._timeout = httpx.Timeout(timeout_s)

    async def search(self, query: str, page_size: int = 10) -> list[RawCandidate]:
        params = {
            "q": query,
            "sortBy": "publishedAt",
            "pageSize": page_size,
            "language": "en",
            "apiKey": self._api_key,
        }
        try:
            async with httpx.AsyncClient(headers=self._headers, timeout=self._timeout) as client:
                resp = await client.get(f"{self._base_url}/everything", params=params)
                resp.raise_for_status()
                payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"search for {query!r} failed: {type(e).__name__}: {e}") from e

        if payload.get("status") != "ok":
            raise ProviderError(f"search for {query!r} returned {payload.get('status')}: {payload.get('message')}")

        candidates = []
        for item in payload.get("articles") or []:
            url = (item.get("url") or "").strip()
            title = (item.get("title") or "").strip()
            # Removed/placeholder entries carry no usable URL or title
            if not url or not title or title == "[Removed]":
                continue
            candidates.append(
                RawCandidate(
                    title=title,
                    description=(item.get("description") or "").strip(),
                    url=url,
                    published_at=_published_date(item.get("publishedAt")),
                    image_url=item.get("urlToImage") or None,
                )
            )
        return candidates

    async def fetch_page_html(self, url: str) -> tuple[Optional[str], Optional[str], int]:
        async with httpx.AsyncClient(headers=self._headers, timeout=self._timeout, follow_redirects=True) as client:
            resp = await client.get(url)
            status = resp.status_code
            ctype = resp.headers.get("Content-Type", "")
            if status >= 400:
                return None, ctype, status
            return resp.text, ctype, status
