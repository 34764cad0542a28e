"""
Base64 transport encoding for audio payloads.
"""

import asyncio
import base64
import logging
from typing import Union

from pipeline.errors import EncodingError
from video.ffmpeg_transcoder import AudioBlob

logger = logging.getLogger(__name__)

DATA_URL_SEPARATOR = ";base64,"


def strip_data_url_prefix(value: str) -> str:
    """Return only the payload of a `data:<type>;base64,<payload>` string."""
    if value.startswith("data:") and DATA_URL_SEPARATOR in value:
        return value.split(",", 1)[1]
    return value


def truncate_payload(payload: str, max_length: int) -> str:
    """Cut an encoded payload to at most max_length characters."""
    if max_length < 0:
        raise ValueError("max_length must not be negative")
    if len(payload) <= max_length:
        return payload
    logger.warning(f"Encoded payload of {len(payload)} chars truncated to {max_length}")
    return payload[:max_length]


async def encode(blob: Union[AudioBlob, bytes]) -> str:
    """
    Read a blob fully and encode it as base64 text.

    Args:
        blob: AudioBlob (or any object with a read() method) or raw bytes

    Returns:
        Base64 string without a data URL prefix

    Raises:
        EncodingError: if the blob cannot be read
    """
    if isinstance(blob, (bytes, bytearray)):
        data = bytes(blob)
    else:
        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, blob.read)
        except Exception as e:
            logger.error(f"Failed to read blob for encoding: {e}")
            raise EncodingError(f"Failed to convert to base64: {e}", e) from e

    if not isinstance(data, (bytes, bytearray)):
        raise EncodingError("Failed to convert to base64: blob did not return bytes")

    encoded = base64.b64encode(data).decode("ascii")
    logger.debug(f"Base64 conversion complete, length: {len(encoded)}")
    return encoded
