from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI

from newsdesk.core.errors import ProviderError

logger = logging.getLogger(__name__)

CONTENT_PROMPT = (
    "Please create a comprehensive summary of this news article. The summary should be 2-3 sentences "
    "that capture the main points, key facts, and significance of the story.\n\n"
    "Article Title: {title}\n"
    "Full Article Content: {text}\n\n"
    "Return only the summary text, without any prefixes or formatting."
)
DESCRIPTION_PROMPT = (
    "Please create a comprehensive summary based on this article description. The summary should be "
    "2-3 sentences that capture the main points and significance.\n\n"
    "Article Title: {title}\n"
    "Article Description: {text}\n\n"
    "Return only the summary text, without any prefixes or formatting."
)


class Summarizer:
    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini", timeout_s: float = 30):
        self.client = client
        self.model = model
        self.timeout_s = timeout_s
        self.calls = 0
        self.failures = 0
        self.tokens_used = 0

    async def summarize(self, title: str, text: str, from_description: bool = False) -> str:
        template = DESCRIPTION_PROMPT if from_description else CONTENT_PROMPT
        self.calls += 1
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": template.format(title=title, text=text)}],
                temperature=0.3,
                max_tokens=300,
                timeout=self.timeout_s,
            )
        except Exception as e:
            self.failures += 1
            raise ProviderError(f"summary for {title!r} failed: {type(e).__name__}: {e}") from e

        if completion.usage is not None:
            self.tokens_used += completion.usage.total_tokens or 0
        summary: Optional[str] = completion.choices[0].message.content if completion.choices else None
        if not summary or not summary.strip():
            self.failures += 1
            raise ProviderError(f"summary for {title!r} came back empty")
        return summary.strip()
