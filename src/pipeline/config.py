"""
Configuration management for the video transcription workflow.
"""

import os
from dataclasses import dataclass
from typing import Optional

TRANSCRIPTION_MODES = ("chat", "audio")


@dataclass
class PipelineConfig:
    """Configuration for the video transcription workflow."""

    # Transcription API (Groq, OpenAI-compatible)
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_api_key: Optional[str] = None  # Read from GROQ_API_KEY per request if None
    transcription_mode: str = "chat"  # chat, audio
    chat_model: str = "llama3-8b-8192"
    audio_model: str = "whisper-large-v3"
    temperature: float = 0.1
    max_tokens: int = 4000
    prompt_prefix_chars: int = 50

    # Payload limits
    max_payload_length: int = 100000  # base64 characters

    # Codec engine
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    audio_sample_rate: int = 16000  # Hz, speech recognition friendly
    audio_channels: int = 1
    audio_quality: int = 2  # libmp3lame VBR quality
    work_dir: Optional[str] = None  # System temp dir if None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    def __post_init__(self):
        if self.transcription_mode not in TRANSCRIPTION_MODES:
            raise ValueError(
                f"Unknown transcription mode '{self.transcription_mode}', "
                f"expected one of {TRANSCRIPTION_MODES}"
            )
        if self.max_payload_length <= 0:
            raise ValueError("max_payload_length must be positive")

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create configuration from environment variables."""
        return cls(
            groq_base_url=os.getenv("GROQ_BASE_URL", cls.groq_base_url),
            groq_api_key=os.getenv("GROQ_API_KEY", cls.groq_api_key),
            transcription_mode=os.getenv("TRANSCRIPTION_MODE", cls.transcription_mode).lower(),
            chat_model=os.getenv("CHAT_MODEL", cls.chat_model),
            audio_model=os.getenv("AUDIO_MODEL", cls.audio_model),
            temperature=float(os.getenv("TRANSCRIPTION_TEMPERATURE", cls.temperature)),
            max_tokens=int(os.getenv("TRANSCRIPTION_MAX_TOKENS", cls.max_tokens)),
            prompt_prefix_chars=int(os.getenv("PROMPT_PREFIX_CHARS", cls.prompt_prefix_chars)),
            max_payload_length=int(os.getenv("MAX_PAYLOAD_LENGTH", cls.max_payload_length)),
            ffmpeg_path=os.getenv("FFMPEG_PATH", cls.ffmpeg_path),
            ffprobe_path=os.getenv("FFPROBE_PATH", cls.ffprobe_path),
            audio_sample_rate=int(os.getenv("AUDIO_SAMPLE_RATE", cls.audio_sample_rate)),
            audio_channels=int(os.getenv("AUDIO_CHANNELS", cls.audio_channels)),
            audio_quality=int(os.getenv("AUDIO_QUALITY", cls.audio_quality)),
            work_dir=os.getenv("WORK_DIR", cls.work_dir),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", cls.port)),
        )
