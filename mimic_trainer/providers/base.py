from __future__ import annotations

from abc import ABC, abstractmethod


class STTProvider(ABC):
    @abstractmethod
    async def transcribe(self, audio: bytes, content_type: str = "audio/webm") -> str:
        """Return the best transcript for a finished recording."""
        ...

    @abstractmethod
    def name(self) -> str:
        ...
