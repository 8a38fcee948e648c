"""Per-word verdicts and scores for a practice attempt."""
from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from mimic_trainer.alignment import align
from mimic_trainer.models import CORRECT, SKIP, WRONG, AttemptResult, WordCheck, WordResult
from mimic_trainer.normalizer import (
    SENTENCE_PUNCTUATION,
    WORD_PUNCTUATION,
    normalize,
    tokenize_sentence,
)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def match_tokens(tokens: Sequence[str], spoken: Sequence[str]) -> set[int]:
    """Align per-word tokens against spoken tokens.

    Empty tokens (punctuation-only words) are left out of the alignment.
    The returned indices refer to positions in `tokens`.
    """
    slots = [i for i, t in enumerate(tokens) if t]
    matched = align([tokens[i] for i in slots], spoken)
    return {slots[k] for k in matched}


def word_verdicts(n: int, matched: Iterable[int], skipped: Iterable[int] = ()) -> list[str]:
    matched = set(matched)
    skipped = set(skipped)
    return [
        SKIP if i in skipped else CORRECT if i in matched else WRONG
        for i in range(n)
    ]


def score(verdicts: Sequence[str]) -> int:
    """round(100 * correct / total), halves rounded up.

    Skipped words do not count. An empty sentence scores 100: there was
    nothing to get wrong.
    """
    scored = [v for v in verdicts if v != SKIP]
    if not scored:
        return 100
    correct = sum(1 for v in scored if v == CORRECT)
    return _round_half_up(100 * correct / len(scored))


def average_score(scores: Iterable[int]) -> int:
    """Rounded mean of sentence scores; 0 when nothing was scored."""
    scores = list(scores)
    if not scores:
        return 0
    return _round_half_up(sum(scores) / len(scores))


def live_matches(
    sentence: str, transcript: str, punctuation: str = SENTENCE_PUNCTUATION
) -> set[int]:
    """Word indices to highlight for an interim transcript."""
    _, tokens = tokenize_sentence(sentence, punctuation)
    return match_tokens(tokens, normalize(transcript, punctuation))


def score_transcript(
    sentence: str, transcript: str, punctuation: str = SENTENCE_PUNCTUATION
) -> list[WordResult]:
    words, tokens = tokenize_sentence(sentence, punctuation)
    matched = match_tokens(tokens, normalize(transcript, punctuation))
    skipped = [i for i, t in enumerate(tokens) if not t]
    verdicts = word_verdicts(len(tokens), matched, skipped)
    return [WordResult(w, t, v) for w, t, v in zip(words, tokens, verdicts)]


def score_attempt(
    sentence: str,
    transcript: str | None,
    live_transcript: str | None = None,
    punctuation: str = SENTENCE_PUNCTUATION,
) -> AttemptResult:
    """Final verdict for one attempt.

    Prefers the transcription service's text, then the live recognizer's.
    With no text from either, every word is marked correct: a failed
    microphone or recognizer must not cost the learner points.
    """
    if transcript and transcript.strip():
        text, source = transcript.strip(), "transcription"
    elif live_transcript and live_transcript.strip():
        text, source = live_transcript.strip(), "live"
    else:
        words, tokens = tokenize_sentence(sentence, punctuation)
        results = [WordResult(w, t, CORRECT if t else SKIP) for w, t in zip(words, tokens)]
        return AttemptResult(sentence, results, 100, "", "none")

    results = score_transcript(sentence, text, punctuation)
    return AttemptResult(
        sentence=sentence,
        words=results,
        score=score([r.verdict for r in results]),
        transcript=text,
        source=source,
    )


def check_word(word: str, transcript: str, punctuation: str = WORD_PUNCTUATION) -> WordCheck:
    """Lenient single-word check: target and heard text contain one another."""
    target = " ".join(normalize(word, punctuation))
    spoken = " ".join(normalize(transcript, punctuation))

    if spoken and (spoken == target or target in spoken or spoken in target):
        return WordCheck(word=target, spoken=spoken, correct=True)
    if spoken:
        tip = f'Try saying "{target}" instead of "{spoken}".'
    else:
        tip = "No speech detected. Please try again."
    return WordCheck(word=target, spoken=spoken, correct=False, tip=tip)
