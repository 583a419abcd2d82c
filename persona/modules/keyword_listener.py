"""Keyword Listener Module - transcripts to keyword events.

Audio chunks go through the inference collaborator for transcription, and
transcripts through keyword extraction. Each non-empty result is appended to
the keyword history, persisted, and published. The listener also keeps the
profile's language ratio in line with the Bengali share of what it hears.
"""

import dataclasses
import logging
from collections import deque
from datetime import datetime
from typing import Any

from persona.engine.inference import KeywordBackend, RuleBasedKeywordBackend, SafeInference
from persona.engine.keywords import bengali_percentage
from persona.hub.constants import EVENT_KEYWORD_EVENT, EVENT_LISTENING_STATE, MODULE_KEYWORD_LISTENER
from persona.hub.core import Module, PersonaHub
from persona.shared.models import KeywordEvent

logger = logging.getLogger(__name__)


class KeywordListener(Module):
    """Turns speech into keyword events."""

    def __init__(self, hub: PersonaHub, backend: KeywordBackend | None = None):
        super().__init__(MODULE_KEYWORD_LISTENER, hub)
        self.inference = SafeInference(backend or RuleBasedKeywordBackend(hub.lexicon))
        self.history = hub.keyword_history
        self.listening = False
        # Bengali share (0-100) of each transcript that produced an event
        self._language_shares: deque[float] = deque(maxlen=hub.config.keyword_capacity)

    async def shutdown(self):
        if self.listening:
            await self.stop_listening()

    async def start_listening(self):
        if self.listening:
            return
        self.listening = True
        self.logger.info("Keyword listening started")
        await self.hub.publish(EVENT_LISTENING_STATE, {"listening": True})

    async def stop_listening(self):
        if not self.listening:
            return
        self.listening = False
        self.logger.info("Keyword listening stopped")
        await self.hub.publish(EVENT_LISTENING_STATE, {"listening": False})

    async def process_audio(self, audio_chunk: bytes, now: datetime | None = None) -> KeywordEvent | None:
        """Transcribe an audio chunk and process the transcript.

        Chunks arriving while not listening, or without a backend that can
        transcribe, are dropped.
        """
        if not self.listening:
            self.logger.debug("Dropping audio chunk, not listening")
            return None
        if not self.inference.can_transcribe:
            self.logger.debug("Dropping audio chunk, no speech recognizer configured")
            return None
        transcript = await self.inference.transcribe_audio(audio_chunk)
        if not transcript:
            return None
        return await self.process_transcript(transcript, now)

    async def process_transcript(self, transcript: str, now: datetime | None = None) -> KeywordEvent | None:
        """Extract keywords from a transcript. Returns None when nothing significant was said."""
        event = await self.inference.extract_keywords(transcript)
        if event.is_empty:
            self.logger.debug("Transcript produced no keywords")
            return None
        if now is not None:
            event = dataclasses.replace(event, timestamp=now)

        self.history.append(event)
        try:
            await self.hub.store.save_keyword_event(event)
        except Exception as e:
            self.logger.warning(f"Failed to persist keyword event, kept in memory: {e}")

        self._update_language_ratio(transcript)
        self.logger.debug(f"Keyword event: {len(event.keywords)} keywords ({event.language_tag})")
        await self.hub.publish(EVENT_KEYWORD_EVENT, {"event": event.to_dict()})
        return event

    def _update_language_ratio(self, transcript: str):
        self._language_shares.append(bengali_percentage(transcript))
        ratio = int(sum(self._language_shares) / len(self._language_shares) + 0.5)
        if ratio != self.hub.profile.language_ratio:
            self.hub.profile.update_language_ratio(min(max(ratio, 0), 100))

    def get_stats(self) -> dict[str, Any]:
        return {
            "listening": self.listening,
            "history_size": len(self.history),
            "inference_failures": self.inference.failures,
            "can_transcribe": self.inference.can_transcribe,
            "language_ratio": self.hub.profile.language_ratio,
        }
