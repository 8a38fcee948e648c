"""Practice-session bookkeeping around the scorer.

The live recognizer, its restarts, pause/resume and the final transcription
call all happen here. The scorer itself stays pure; everything stateful about
an attempt lives on the objects below.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING

from mimic_trainer.audio import is_usable_recording
from mimic_trainer.models import AttemptResult
from mimic_trainer.normalizer import SENTENCE_PUNCTUATION, normalize, tokenize_sentence
from mimic_trainer.scorer import average_score, match_tokens, score_attempt

if TYPE_CHECKING:
    from mimic_trainer.providers.base import STTProvider

log = logging.getLogger("mimic_trainer.session")

# Recognizer error codes that need no reaction at all.
IGNORED_ERRORS = frozenset({"no-speech", "aborted"})

# Restarting after these only repeats the failure.
FATAL_ERRORS = frozenset({"not-allowed", "audio-capture", "service-not-allowed"})


class TranscriptBuffer:
    """Joins the text of successive recognizer sessions into one transcript.

    A recognizer session reports the full text it heard so far; a new session
    (after a pause or an unexpected end) starts again from nothing.
    """

    def __init__(self):
        self.accumulated = ""
        self.current = ""
        self.paused = False

    @property
    def text(self) -> str:
        return f"{self.accumulated} {self.current}".strip()

    def update(self, session_text: str) -> str:
        if not self.paused:
            self.current = session_text.strip()
        return self.text

    def _commit(self) -> None:
        self.accumulated = self.text
        self.current = ""

    def pause(self) -> None:
        self._commit()
        self.paused = True

    def resume(self) -> None:
        self.current = ""
        self.paused = False

    def restart(self) -> None:
        self._commit()

    def reset(self) -> None:
        self.accumulated = ""
        self.current = ""
        self.paused = False


class RecognizerRetryPolicy:
    def __init__(self, max_restarts: int = 5):
        self.max_restarts = max_restarts
        self.restarts = 0
        self.fatal = False
        self.stopped = False

    @staticmethod
    def classify(error: str) -> str:
        """Map a recognizer error code to ignore | fatal | recoverable."""
        if error in IGNORED_ERRORS:
            return "ignore"
        if error in FATAL_ERRORS:
            return "fatal"
        return "recoverable"

    def on_error(self, error: str) -> str:
        kind = self.classify(error)
        if kind == "fatal":
            self.fatal = True
            log.warning("Recognizer error %r is fatal, no more restarts", error)
        elif kind == "recoverable":
            log.info("Recognizer error %r", error)
        return kind

    def stop(self) -> None:
        self.stopped = True

    def request_restart(self) -> bool:
        """Grant a restart after the recognizer ended on its own."""
        if self.fatal or self.stopped:
            return False
        if self.restarts >= self.max_restarts:
            log.info("Recognizer restart limit (%d) reached", self.max_restarts)
            return False
        self.restarts += 1
        return True


class PracticeAttempt:
    """One try at saying one sentence: live highlighting, then a final score."""

    def __init__(
        self,
        sentence: str,
        punctuation: str = SENTENCE_PUNCTUATION,
        max_restarts: int = 5,
        run: PracticeRun | None = None,
        run_index: int | None = None,
    ):
        self.id = uuid.uuid4().hex[:12]
        self.sentence = sentence
        self.punctuation = punctuation
        self.words, self.tokens = tokenize_sentence(sentence, punctuation)
        self.buffer = TranscriptBuffer()
        self.retry = RecognizerRetryPolicy(max_restarts)
        self.highlighted: set[int] = set()
        self.result: AttemptResult | None = None
        self.run = run
        self.run_index = run_index
        self._finish_lock = asyncio.Lock()

    @property
    def finished(self) -> bool:
        return self.result is not None

    def on_transcript(self, session_text: str) -> set[int]:
        """Feed an interim snapshot; returns word indices to highlight."""
        if self.finished or self.buffer.paused:
            return set(self.highlighted)
        full = self.buffer.update(session_text)
        self.highlighted = match_tokens(self.tokens, normalize(full, self.punctuation))
        return set(self.highlighted)

    def on_recognizer_error(self, error: str) -> str:
        return self.retry.on_error(error)

    def on_recognizer_end(self) -> bool:
        """The recognizer stopped by itself. Returns True if it should be restarted."""
        if self.finished or self.buffer.paused:
            return False
        if self.retry.request_restart():
            self.buffer.restart()
            return True
        return False

    def pause(self) -> None:
        self.buffer.pause()

    def resume(self) -> None:
        self.buffer.resume()

    async def finish(
        self,
        stt: STTProvider | None = None,
        audio: bytes | None = None,
        content_type: str = "audio/webm",
        timeout: float | None = None,
    ) -> AttemptResult:
        """Score the attempt once; later calls return the same result."""
        async with self._finish_lock:
            if self.result is not None:
                return self.result
            self.retry.stop()
            live = self.buffer.text

            transcript = None
            if stt is not None and is_usable_recording(audio):
                try:
                    transcript = await asyncio.wait_for(
                        stt.transcribe(audio, content_type), timeout=timeout
                    )
                except Exception as e:
                    log.warning("Transcription via %s failed, using live transcript: %r",
                                stt.name(), e)

            result = score_attempt(self.sentence, transcript, live, self.punctuation)
            log.info("Attempt %s scored %d (%s)", self.id, result.score, result.source)
            self.result = result
            if self.run is not None and self.run_index is not None:
                self.run.record(self.run_index, result)
            return result

    def to_dict(self) -> dict:
        return {
            "attempt_id": self.id,
            "sentence": self.sentence,
            "words": self.words,
            "highlighted": sorted(self.highlighted),
            "paused": self.buffer.paused,
            "transcript": self.buffer.text,
            "finished": self.finished,
            "run_id": self.run.id if self.run is not None else None,
        }


class PracticeRun:
    """A sequence of sentences practiced in order, e.g. one scene of a lesson."""

    def __init__(
        self,
        sentences: list[str],
        punctuation: str = SENTENCE_PUNCTUATION,
        max_restarts: int = 5,
    ):
        sentences = [s for s in sentences if s.strip()]
        if not sentences:
            raise ValueError("A practice run needs at least one sentence")
        self.id = uuid.uuid4().hex[:12]
        self.sentences = sentences
        self.punctuation = punctuation
        self.max_restarts = max_restarts
        self.index = 0
        self.scores: dict[int, int] = {}

    @property
    def complete(self) -> bool:
        return self.index >= len(self.sentences)

    @property
    def current(self) -> str | None:
        return None if self.complete else self.sentences[self.index]

    @property
    def average_score(self) -> int:
        return average_score(self.scores.values())

    def start_attempt(self) -> PracticeAttempt:
        if self.complete:
            raise ValueError("Practice run is already complete")
        return PracticeAttempt(
            self.sentences[self.index],
            punctuation=self.punctuation,
            max_restarts=self.max_restarts,
            run=self,
            run_index=self.index,
        )

    def record(self, index: int, result: AttemptResult) -> None:
        # A retried sentence keeps only its latest score.
        self.scores[index] = result.score

    def advance(self) -> None:
        self.index = min(self.index + 1, len(self.sentences))

    def back(self) -> None:
        self.index = max(self.index - 1, 0)

    def to_dict(self) -> dict:
        return {
            "run_id": self.id,
            "index": self.index,
            "total": len(self.sentences),
            "sentence": self.current,
            "complete": self.complete,
            "scores": {str(k): v for k, v in sorted(self.scores.items())},
            "average_score": self.average_score,
        }
