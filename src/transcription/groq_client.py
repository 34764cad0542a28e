"""
Groq (OpenAI-compatible) clients for turning base64 audio into text.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import aiohttp

from pipeline.config import PipelineConfig
from pipeline.errors import TranscriptionError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
NO_TRANSCRIPTION = "No transcription produced"
SYSTEM_PROMPT = (
    "You are a highly accurate audio transcription system. "
    "Your task is to transcribe the provided audio accurately."
)
USER_PROMPT = (
    "Please transcribe the following audio content. The audio is a speech recording "
    "that needs to be transcribed accurately. Return only the transcription text "
    "without any explanations or additional text: "
)


@dataclass
class TranscriptionSegment:
    """A transcribed span with timing in seconds."""
    start: float
    end: float
    text: str


@dataclass
class TranscriptionResult:
    """Text returned by a transcription client."""
    text: str
    segments: List[TranscriptionSegment] = field(default_factory=list)


class _GroqClient:
    """Shared HTTP plumbing for the Groq endpoints."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, api_key: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> Dict[str, str]:
        # The secret is looked up per request so a rotated key is picked up without restart
        api_key = self.api_key if self.api_key is not None else os.getenv("GROQ_API_KEY", "")
        return {"Authorization": f"Bearer {api_key}"}

    async def _post(self, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        connector = aiohttp.TCPConnector(enable_cleanup_closed=True, use_dns_cache=False)
        timeout = aiohttp.ClientTimeout(total=None)

        try:
            async with aiohttp.ClientSession(connector=connector, timeout=timeout) as client:
                async with client.post(url, headers=self._headers(), **kwargs) as response:
                    if not 200 <= response.status < 300:
                        body = await response.text()
                        logger.error(f"Groq API error: {response.status} - {body}")
                        raise TranscriptionError.from_response(response.status, body)
                    logger.info(f"Received response from {url}")
                    return await response.json(content_type=None)
        except TranscriptionError:
            raise
        except ValueError as e:
            logger.error(f"Invalid JSON from Groq API: {e}")
            raise TranscriptionError(f"Transcription response was not valid JSON: {e}", cause=e) from e
        except aiohttp.ClientError as e:
            logger.error(f"Error calling Groq API: {e}")
            raise TranscriptionError(f"Transcription request failed: {e}", cause=e) from e


class ChatTranscriptionClient(_GroqClient):
    """Requests a transcription through the chat completion endpoint.

    Only the first ``prefix_chars`` characters of the payload are embedded in
    the prompt, so the model never receives the actual audio.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        model: str = "llama3-8b-8192",
        temperature: float = 0.1,
        max_tokens: int = 4000,
        prefix_chars: int = 50,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        super().__init__(base_url, api_key)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.prefix_chars = prefix_chars
        self.system_prompt = system_prompt

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "ChatTranscriptionClient":
        return cls(
            base_url=config.groq_base_url,
            api_key=config.groq_api_key,
            model=config.chat_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            prefix_chars=config.prompt_prefix_chars,
        )

    def build_request(self, payload: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": f"{USER_PROMPT}{payload[:self.prefix_chars]}..."},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    async def transcribe(self, payload: str) -> TranscriptionResult:
        """
        Send the payload to the chat completion endpoint.

        Args:
            payload: Base64 audio, already bounded by the caller

        Returns:
            TranscriptionResult with the trimmed message content, or the
            NO_TRANSCRIPTION sentinel when the response has no choices

        Raises:
            TranscriptionError: on network failure or non-success status
        """
        logger.info(f"Sending request to Groq chat API, payload length={len(payload)}")
        result = await self._post("/chat/completions", json=self.build_request(payload))
        return TranscriptionResult(text=_extract_chat_text(result))


class AudioTranscriptionClient(_GroqClient):
    """Uploads the decoded audio to the speech-to-text endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        model: str = "whisper-large-v3",
        temperature: float = 0.0,
        filename: str = "audio.mp3",
    ):
        super().__init__(base_url, api_key)
        self.model = model
        self.temperature = temperature
        self.filename = filename

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "AudioTranscriptionClient":
        return cls(
            base_url=config.groq_base_url,
            api_key=config.groq_api_key,
            model=config.audio_model,
            temperature=config.temperature,
        )

    async def transcribe(self, payload: str) -> TranscriptionResult:
        """Decode the payload and transcribe it, keeping segment timing when available."""
        audio = _decode_payload(payload)

        form = aiohttp.FormData()
        form.add_field("file", audio, filename=self.filename, content_type="audio/mpeg")
        form.add_field("model", self.model)
        form.add_field("response_format", "verbose_json")
        form.add_field("temperature", str(self.temperature))

        logger.info(f"Sending {len(audio)} bytes to Groq audio transcription API")
        result = await self._post("/audio/transcriptions", data=form)

        if not isinstance(result, dict) or not isinstance(result.get("text"), str):
            return TranscriptionResult(text=NO_TRANSCRIPTION)

        segments = []
        for segment in result.get("segments") or []:
            try:
                segments.append(TranscriptionSegment(
                    start=float(segment["start"]),
                    end=float(segment["end"]),
                    text=str(segment["text"]).strip(),
                ))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed segment: {segment}")
        logger.info(f"Transcribed audio into {len(segments)} segments")
        return TranscriptionResult(text=result["text"].strip(), segments=segments)


TranscriptionClient = Union[ChatTranscriptionClient, AudioTranscriptionClient]


def create_transcription_client(config: PipelineConfig) -> TranscriptionClient:
    """Build the client selected by config.transcription_mode."""
    if config.transcription_mode == "audio":
        return AudioTranscriptionClient.from_config(config)
    logger.warning(
        f"Chat transcription mode sends only the first {config.prompt_prefix_chars} "
        "characters of the audio payload; set TRANSCRIPTION_MODE=audio for real transcription"
    )
    return ChatTranscriptionClient.from_config(config)


def _extract_chat_text(result: Any) -> str:
    try:
        content = result["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return NO_TRANSCRIPTION
    if not isinstance(content, str):
        return NO_TRANSCRIPTION
    return content.strip()


def _decode_payload(payload: str) -> bytes:
    # A truncated payload may end mid-quantum; drop the incomplete tail
    usable = len(payload) - len(payload) % 4
    try:
        return base64.b64decode(payload[:usable], validate=True)
    except (binascii.Error, ValueError) as e:
        raise TranscriptionError(f"Invalid base64 audio payload: {e}", cause=e) from e
