"""
WebVTT and SRT subtitle rendering from transcription text.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from transcription.groq_client import TranscriptionResult, TranscriptionSegment

logger = logging.getLogger(__name__)

DEFAULT_CUE_SECONDS = 10.0


class SubtitleFormat(str, Enum):
    VTT = "vtt"
    SRT = "srt"

    @property
    def media_type(self) -> str:
        return "text/vtt" if self is SubtitleFormat.VTT else "application/x-subrip"

    @property
    def filename(self) -> str:
        return f"transcript.{self.value}"


@dataclass(frozen=True)
class SubtitleDocument:
    """A rendered subtitle file ready to be downloaded."""
    filename: str
    media_type: str
    content: str


class SubtitleFormatter:
    """Renders transcription text as subtitle files.

    Without timed segments the whole text becomes one cue spanning the
    first ten seconds.
    """

    def format(
        self,
        text: str,
        kind: Union[SubtitleFormat, str],
        segments: Optional[List[TranscriptionSegment]] = None,
    ) -> str:
        """
        Render subtitle content.

        Args:
            text: Full transcription text
            kind: "vtt" or "srt"
            segments: Optional timed segments; one cue per non-empty segment

        Returns:
            Subtitle file content
        """
        fmt = SubtitleFormat(kind)
        blocks = []
        for counter, (start, end, cue_text) in enumerate(self._cues(text, segments), start=1):
            blocks.append(
                f"{counter}\n"
                f"{self._format_time(start, fmt)} --> {self._format_time(end, fmt)}\n"
                f"{cue_text}"
            )
        body = "\n\n".join(blocks)

        if fmt is SubtitleFormat.VTT:
            return f"WEBVTT\n\n{body}"
        return body

    def document(self, result: TranscriptionResult, kind: Union[SubtitleFormat, str]) -> SubtitleDocument:
        fmt = SubtitleFormat(kind)
        content = self.format(result.text, fmt, result.segments)
        logger.debug(f"Rendered {fmt.filename}, {len(content)} chars")
        return SubtitleDocument(filename=fmt.filename, media_type=fmt.media_type, content=content)

    def _cues(self, text: str, segments: Optional[List[TranscriptionSegment]]):
        timed = [s for s in (segments or []) if s.text.strip()]
        if not timed:
            return [(0.0, DEFAULT_CUE_SECONDS, text)]
        return [(s.start, s.end, s.text.strip()) for s in timed]

    def _format_time(self, seconds: float, fmt: SubtitleFormat) -> str:
        """
        Convert seconds to HH:MM:SS.mmm (VTT) or HH:MM:SS,mmm (SRT).

        Args:
            seconds: Time in seconds

        Returns:
            Formatted timestamp
        """
        total_ms = int(round(max(0.0, seconds) * 1000))
        total_seconds, milliseconds = divmod(total_ms, 1000)

        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        secs = total_seconds % 60

        separator = "." if fmt is SubtitleFormat.VTT else ","
        return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{milliseconds:03d}"
