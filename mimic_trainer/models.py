from __future__ import annotations

from dataclasses import asdict, dataclass

CORRECT = "correct"
WRONG = "wrong"
SKIP = "skip"  # punctuation-only display word, not scored


@dataclass
class WordResult:
    word: str  # as displayed in the sentence
    token: str  # normalized form used for matching
    verdict: str  # correct | wrong | skip


@dataclass
class AttemptResult:
    sentence: str
    words: list[WordResult]
    score: int
    transcript: str
    source: str  # transcription | live | none

    @property
    def verdicts(self) -> list[str]:
        return [w.verdict for w in self.words]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class WordCheck:
    word: str
    spoken: str
    correct: bool
    tip: str = ""

    def to_dict(self) -> dict:
        return asdict(self)
