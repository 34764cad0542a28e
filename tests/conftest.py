"""Shared fakes for the transcription workflow tests."""

from __future__ import annotations

from typing import Awaitable, Callable, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pipeline.errors import PipelineError, TranscodeError
from transcription.groq_client import TranscriptionResult
from video.ffmpeg_transcoder import AudioBlob, MediaTranscoder

FAKE_MP3 = b"ID3\x04\x00\x00\x00\x00\x00\x00" + bytes(range(256)) * 4


class FakeTranscoder(MediaTranscoder):
    """Transcoder that never touches FFmpeg."""

    def __init__(self, audio: bytes = FAKE_MP3, error: Optional[PipelineError] = None):
        super().__init__()
        self.audio = audio
        self.error = error
        self.initialize_calls = 0
        self.converted: List[bytes] = []

    async def initialize(self):
        self.initialize_calls += 1
        self.loaded = True

    async def convert(self, video_data: bytes) -> AudioBlob:
        if not self.loaded:
            raise TranscodeError("FFmpeg not initialized")
        self.converted.append(video_data)
        self._emit_progress(0)
        self._emit_progress(50)
        if self.error is not None:
            raise self.error
        self._emit_progress(100)
        return AudioBlob(data=self.audio)


class FakeTranscriptionClient:
    """Returns a fixed text or raises a fixed error."""

    def __init__(self, text: str = "hello world", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.payloads: List[str] = []

    async def transcribe(self, payload: str) -> TranscriptionResult:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return TranscriptionResult(text=self.text)


async def serve_groq(
    handlers: dict[str, Callable[[web.Request], Awaitable[web.StreamResponse]]],
    scenario: Callable[[str], Awaitable],
):
    """Serve fake Groq routes under /openai/v1 and run scenario(base_url)."""
    app = web.Application()
    for path, handler in handlers.items():
        app.router.add_post(f"/openai/v1{path}", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        return await scenario(str(server.make_url("/openai/v1")))
    finally:
        await server.close()


@pytest.fixture
def fake_transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def fake_client() -> FakeTranscriptionClient:
    return FakeTranscriptionClient()
