from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path

from mimic_trainer.normalizer import SENTENCE_PUNCTUATION, WORD_PUNCTUATION

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "stt_provider": "elevenlabs",
    "stt_model": "scribe_v2",
    "stt_language": "eng",
    "stt_proxy_url": "",
    "sentence_punctuation": SENTENCE_PUNCTUATION,
    "word_punctuation": WORD_PUNCTUATION,
    "silence_timeout_seconds": 2.5,
    "speech_end_timeout_seconds": 2.0,
    "max_capture_seconds": 30.0,
    "no_recognizer_timeout_seconds": 5.0,
    "max_recognizer_restarts": 5,
    "transcription_timeout_seconds": 20.0,
}


@dataclass
class Settings:
    stt_provider: str = DEFAULTS["stt_provider"]  # elevenlabs | proxy | none
    stt_model: str = DEFAULTS["stt_model"]
    stt_language: str = DEFAULTS["stt_language"]
    stt_proxy_url: str = DEFAULTS["stt_proxy_url"]
    sentence_punctuation: str = DEFAULTS["sentence_punctuation"]
    word_punctuation: str = DEFAULTS["word_punctuation"]
    silence_timeout_seconds: float = DEFAULTS["silence_timeout_seconds"]
    speech_end_timeout_seconds: float = DEFAULTS["speech_end_timeout_seconds"]
    max_capture_seconds: float = DEFAULTS["max_capture_seconds"]
    no_recognizer_timeout_seconds: float = DEFAULTS["no_recognizer_timeout_seconds"]
    max_recognizer_restarts: int = DEFAULTS["max_recognizer_restarts"]
    transcription_timeout_seconds: float = DEFAULTS["transcription_timeout_seconds"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    def timers(self) -> dict:
        """Timer values the capture UI schedules around the recognizer."""
        return {
            "silence_timeout_seconds": self.silence_timeout_seconds,
            "speech_end_timeout_seconds": self.speech_end_timeout_seconds,
            "max_capture_seconds": self.max_capture_seconds,
            "no_recognizer_timeout_seconds": self.no_recognizer_timeout_seconds,
        }

    def to_dict(self) -> dict:
        return asdict(self)


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4, ensure_ascii=False) + "\n")
