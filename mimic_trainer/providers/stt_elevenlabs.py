from __future__ import annotations

import asyncio
import io
import logging
import os

from mimic_trainer.audio import recording_filename
from mimic_trainer.providers.base import STTProvider

log = logging.getLogger("mimic_trainer.stt")


class ElevenLabsSTTProvider(STTProvider):
    def __init__(self, model_id: str = "scribe_v2", language_code: str = "eng"):
        from elevenlabs import ElevenLabs
        self.client = ElevenLabs(
            api_key=os.environ.get("ELEVEN_LABS_API_KEY", ""),
        )
        self.model_id = model_id
        self.language_code = language_code

    async def transcribe(self, audio: bytes, content_type: str = "audio/webm") -> str:
        def _convert():
            buf = io.BytesIO(audio)
            buf.name = recording_filename(content_type)
            result = self.client.speech_to_text.convert(
                file=buf,
                model_id=self.model_id,
                language_code=self.language_code,
            )
            return result.text or ""

        try:
            text = await asyncio.get_running_loop().run_in_executor(None, _convert)
        except Exception as e:
            raise RuntimeError(f"ElevenLabs STT failed: {e}") from e
        log.info("Transcribed %d bytes (%s): %r", len(audio), self.model_id, text)
        return text

    def name(self) -> str:
        return f"elevenlabs/{self.model_id}"
