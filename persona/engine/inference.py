"""Boundary to the speech/keyword inference collaborator.

The collaborator is slow and may fail. ``SafeInference`` wraps any backend
so that a timeout or exception degrades to an empty transcript or an empty
keyword event instead of propagating.

Speech recognition is optional: a backend that only implements
``extract_keywords`` is a ``KeywordBackend`` and cannot take audio.
"""

import asyncio
import logging
from datetime import datetime
from typing import Protocol

from persona.engine.keywords import KeywordExtractor
from persona.engine.lexicon import Lexicon
from persona.shared.models import KeywordEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0


class KeywordBackend(Protocol):
    async def extract_keywords(self, transcript: str) -> KeywordEvent: ...


class InferenceBackend(KeywordBackend, Protocol):
    async def transcribe_audio(self, audio_chunk: bytes) -> str: ...


class RuleBasedKeywordBackend:
    """Keyword extraction without a model; has no speech recognizer."""

    def __init__(self, lexicon: Lexicon):
        self.extractor = KeywordExtractor(lexicon)

    async def extract_keywords(self, transcript: str) -> KeywordEvent:
        return self.extractor.extract(transcript)


class SafeInference:
    """Failure-tolerant facade over an inference backend."""

    def __init__(self, backend: KeywordBackend, timeout_s: float = DEFAULT_TIMEOUT_S):
        self.backend = backend
        self.timeout_s = timeout_s
        self.failures = 0

    @property
    def can_transcribe(self) -> bool:
        return callable(getattr(self.backend, "transcribe_audio", None))

    async def transcribe_audio(self, audio_chunk: bytes) -> str:
        if not self.can_transcribe:
            return ""
        try:
            return await asyncio.wait_for(self.backend.transcribe_audio(audio_chunk), self.timeout_s)
        except Exception as e:
            self.failures += 1
            logger.warning(f"Transcription failed ({type(e).__name__}): {e}")
            return ""

    async def extract_keywords(self, transcript: str) -> KeywordEvent:
        if not transcript.strip():
            return KeywordEvent.empty(datetime.now())
        try:
            return await asyncio.wait_for(self.backend.extract_keywords(transcript), self.timeout_s)
        except Exception as e:
            self.failures += 1
            logger.warning(f"Keyword extraction failed ({type(e).__name__}): {e}")
            return KeywordEvent.empty(datetime.now())
