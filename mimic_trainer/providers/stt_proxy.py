from __future__ import annotations

import logging
import os
import time

import httpx

from mimic_trainer.audio import recording_filename
from mimic_trainer.providers.base import STTProvider

log = logging.getLogger("mimic_trainer.stt")


class ProxySTTProvider(STTProvider):
    """Posts the recording to a transcription endpoint that keeps the vendor key server-side.

    The endpoint takes multipart field `audio` and answers `{"text": "..."}`.
    """

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.api_key = api_key if api_key is not None else os.environ.get("STT_PROXY_KEY", "")
        self.timeout = timeout
        self.transport = transport

    async def transcribe(self, audio: bytes, content_type: str = "audio/webm") -> str:
        headers = {}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        files = {"audio": (recording_filename(content_type), audio, content_type)}

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.url, headers=headers, files=files)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RuntimeError(f"Transcription proxy failed: {e}") from e

        if "error" in data:
            raise RuntimeError(f"Transcription proxy failed: {data['error']}")
        text = data.get("text") or ""
        log.info("Transcribed %d bytes in %.1fs: %r", len(audio), time.monotonic() - t0, text)
        return text

    def name(self) -> str:
        return f"proxy/{self.url}"
