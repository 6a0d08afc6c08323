from __future__ import annotations

import re

from openai import AsyncOpenAI

from newsdesk.core.errors import GenerationError

SPEECH_INTRO = "Here's your AI-generated news summary: "

# Spelled out so the voice does not read them as words
ACRONYMS = {
    "AI": "Artificial Intelligence",
    "API": "A-P-I",
    "URL": "U-R-L",
    "CEO": "C-E-O",
    "IPO": "I-P-O",
}


def prepare_speech_text(text: str) -> str:
    speech = re.sub(r"\s+", " ", text).strip()
    speech = speech.replace(". ", ". ... ")
    speech = re.sub(r"([?!]) ", r"\1 ... ", speech)
    for short, spoken in ACRONYMS.items():
        speech = re.sub(rf"\b{short}\b", spoken, speech)
    return SPEECH_INTRO + speech


class SpeechSynthesizer:
    def __init__(self, client: AsyncOpenAI, model: str = "tts-1", voice: str = "nova", timeout_s: float = 60):
        self.client = client
        self.model = model
        self.voice = voice
        self.timeout_s = timeout_s

    async def synthesize(self, text: str) -> bytes:
        try:
            resp = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=prepare_speech_text(text),
                response_format="mp3",
                speed=1.0,
                timeout=self.timeout_s,
            )
        except Exception as e:
            raise GenerationError(f"speech synthesis failed: {type(e).__name__}: {e}") from e
        return resp.content
