"""Shared test fixtures."""
from __future__ import annotations

import asyncio

import pytest


class FakeSTT:
    """Stand-in transcription provider that records how it was called."""

    def __init__(self, text: str = "", side_effect=None, delay: float = 0.0):
        self.text = text
        self._side_effect = side_effect
        self.delay = delay
        self.calls: list[tuple[int, str]] = []

    async def transcribe(self, audio: bytes, content_type: str = "audio/webm") -> str:
        self.calls.append((len(audio), content_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._side_effect:
            raise self._side_effect
        return self.text

    def name(self) -> str:
        return "fake-stt"


@pytest.fixture
def make_stt():
    """Factory for FakeSTT instances."""
    return FakeSTT


@pytest.fixture
def recording():
    """Audio bytes large enough to be sent for transcription."""
    return b"\x1aE\xdf\xa3" + b"\x00" * 400


@pytest.fixture
def sentence():
    return "That's a fair point, I hadn't considered it."
