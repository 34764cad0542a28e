"""
Transcription module: base64 transport encoding and Groq API clients.
"""

__version__ = "1.0.0"

from .encoder import encode, strip_data_url_prefix, truncate_payload
from .groq_client import (
    NO_TRANSCRIPTION,
    AudioTranscriptionClient,
    ChatTranscriptionClient,
    TranscriptionResult,
    TranscriptionSegment,
    create_transcription_client,
)

__all__ = [
    "encode",
    "strip_data_url_prefix",
    "truncate_payload",
    "NO_TRANSCRIPTION",
    "AudioTranscriptionClient",
    "ChatTranscriptionClient",
    "TranscriptionResult",
    "TranscriptionSegment",
    "create_transcription_client",
]
