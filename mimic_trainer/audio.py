"""Helpers for recorded audio uploads."""
from __future__ import annotations

# Browsers occasionally hand over an empty or header-only blob.
MIN_RECORDING_BYTES = 100


def recording_extension(content_type: str) -> str:
    content_type = (content_type or "").lower()
    if "mp4" in content_type or "aac" in content_type:
        return "mp4"
    if "ogg" in content_type:
        return "ogg"
    if "wav" in content_type:
        return "wav"
    return "webm"


def recording_filename(content_type: str) -> str:
    return f"recording.{recording_extension(content_type)}"


def is_usable_recording(audio: bytes | None) -> bool:
    return audio is not None and len(audio) >= MIN_RECORDING_BYTES
