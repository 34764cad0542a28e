"""
FFmpeg-based transcoder that turns an uploaded video into speech-ready audio.
"""

import asyncio
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from typing import Callable, List, Optional

from pipeline.config import PipelineConfig
from pipeline.errors import InitializationError, TranscodeError

logger = logging.getLogger(__name__)

INPUT_NAME = "input.mp4"
OUTPUT_NAME = "output.mp3"
AUDIO_CONTENT_TYPE = "audio/mp3"

# key=value lines written by `-progress pipe:1`
_PROGRESS_LINE = re.compile(r"^[a-z_0-9]+=\S*$")

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class AudioBlob:
    """Audio produced by the transcoder, held in memory."""
    data: bytes
    content_type: str = AUDIO_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    def read(self) -> bytes:
        return self.data


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class MediaTranscoder:
    """Converts video files to mono MP3 audio using FFmpeg.

    Each instance owns a private working directory that acts as the engine's
    filesystem. Files are exchanged with FFmpeg under fixed names inside it.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        audio_sample_rate: int = 16000,
        audio_channels: int = 1,
        audio_quality: int = 2,
        work_dir: Optional[str] = None,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.audio_sample_rate = audio_sample_rate
        self.audio_channels = audio_channels
        self.audio_quality = audio_quality
        self.work_dir = work_dir
        self.loaded = False
        self.version: Optional[str] = None
        self._fs_root: Optional[str] = None
        self._progress_callbacks: List[ProgressCallback] = []
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "MediaTranscoder":
        return cls(
            ffmpeg_path=config.ffmpeg_path,
            ffprobe_path=config.ffprobe_path,
            audio_sample_rate=config.audio_sample_rate,
            audio_channels=config.audio_channels,
            audio_quality=config.audio_quality,
            work_dir=config.work_dir,
        )

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a listener receiving conversion progress in percent (0-100)."""
        self._progress_callbacks.append(callback)

    async def initialize(self):
        """Load the codec engine. Safe to call more than once."""
        async with self._lock:
            if self.loaded:
                return

            logger.info(f"Loading FFmpeg from {self.ffmpeg_path}")
            try:
                process = await asyncio.create_subprocess_exec(
                    self.ffmpeg_path, "-version",
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
                stdout, stderr = await process.communicate()
            except OSError as e:
                raise InitializationError(f"Failed to load FFmpeg: {e}", e) from e

            if process.returncode != 0:
                detail = stderr.decode(errors="replace").strip()
                raise InitializationError(f"Failed to load FFmpeg: {detail or process.returncode}")

            lines = stdout.decode(errors="replace").splitlines()
            self.version = lines[0] if lines else ""
            self._fs_root = tempfile.mkdtemp(prefix="transcoder_", dir=self.work_dir)
            self.loaded = True
            logger.info(f"FFmpeg loaded successfully: {self.version}")

    # ------------------------------------------------------------------
    # Engine-scoped filesystem
    # ------------------------------------------------------------------
    def _fs_path(self, name: str) -> str:
        if self._fs_root is None:
            raise TranscodeError("FFmpeg not initialized")
        if not name or name in (".", "..") or os.path.basename(name) != name:
            raise ValueError(f"Invalid engine file name: {name!r}")
        return os.path.join(self._fs_root, name)

    async def write_file(self, name: str, data: bytes) -> None:
        path = self._fs_path(name)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write_bytes, path, data)

    async def read_file(self, name: str) -> bytes:
        path = self._fs_path(name)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _read_bytes, path)

    def delete_file(self, name: str) -> None:
        path = self._fs_path(name)
        if os.path.exists(path):
            os.remove(path)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------
    def build_command(self) -> List[str]:
        """FFmpeg arguments for the fixed speech audio profile."""
        return [
            self.ffmpeg_path, '-y', '-nostdin',
            '-i', INPUT_NAME,
            '-vn',  # No video
            '-acodec', 'libmp3lame',
            '-ar', str(self.audio_sample_rate),
            '-ac', str(self.audio_channels),
            '-q:a', str(self.audio_quality),
            '-progress', 'pipe:1',
            '-nostats',
            OUTPUT_NAME,
        ]

    async def convert(self, video_data: bytes) -> AudioBlob:
        """
        Convert video data to an MP3 audio blob.

        Args:
            video_data: Raw bytes of the uploaded video

        Returns:
            AudioBlob tagged audio/mp3

        Raises:
            TranscodeError: if the engine is not initialized or FFmpeg fails
        """
        if not self.loaded:
            raise TranscodeError("FFmpeg not initialized")

        try:
            await self.write_file(INPUT_NAME, video_data)
            duration = await self._probe_duration()
            logger.debug(f"Input duration: {duration:.2f}s, size: {len(video_data)} bytes")

            self._emit_progress(0)
            await self._run_ffmpeg(duration)
            data = await self.read_file(OUTPUT_NAME)
        except OSError as e:
            logger.error(f"Error converting video to audio: {e}")
            raise TranscodeError(f"Error converting video to audio: {e}", e) from e
        finally:
            self._cleanup_files([INPUT_NAME, OUTPUT_NAME])

        if not data:
            raise TranscodeError("FFmpeg produced an empty audio file")

        self._emit_progress(100)
        logger.info(f"Converted video to audio, {len(data)} bytes")
        return AudioBlob(data=data)

    async def _run_ffmpeg(self, duration: float) -> None:
        process = await asyncio.create_subprocess_exec(
            *self.build_command(),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=self._fs_root,
        )

        last_line = ""
        last_percent = 0
        assert process.stdout is not None
        async for raw in process.stdout:
            line = raw.decode(errors="replace").strip()
            if not line:
                continue
            if not _PROGRESS_LINE.match(line):
                logger.debug(f"FFmpeg log: {line}")
                last_line = line
                continue
            if not line.startswith("out_time_ms=") or duration <= 0:
                continue
            try:
                out_us = int(line.split("=", 1)[1])
            except ValueError:
                continue
            percent = int(min(99.0, max(0.0, out_us / (duration * 1_000_000) * 100)))
            if percent > last_percent:
                last_percent = percent
                self._emit_progress(percent)

        returncode = await process.wait()
        if returncode != 0:
            raise TranscodeError(f"FFmpeg exited with code {returncode}: {last_line}")

    async def _probe_duration(self) -> float:
        """Input duration in seconds, 0.0 when it cannot be determined."""
        cmd = [
            self.ffprobe_path,
            '-v', 'error',
            '-show_entries', 'format=duration',
            '-of', 'default=noprint_wrappers=1:nokey=1',
            INPUT_NAME,
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._fs_root,
            )
            stdout, stderr = await process.communicate()
            if process.returncode != 0:
                logger.debug(f"Duration probe failed: {stderr.decode(errors='replace').strip()}")
                return 0.0
            return float(stdout.decode().strip())
        except (OSError, ValueError) as e:
            logger.debug(f"Duration probe failed: {e}")
            return 0.0

    def _emit_progress(self, percent: int) -> None:
        for callback in list(self._progress_callbacks):
            try:
                callback(percent)
            except Exception as e:
                logger.warning(f"Progress listener failed: {e}")

    def _cleanup_files(self, names: List[str]):
        """Remove files from the engine filesystem."""
        for name in names:
            try:
                self.delete_file(name)
            except (OSError, TranscodeError) as e:
                logger.warning(f"Failed to cleanup file {name}: {e}")

    def terminate(self) -> None:
        """Release the engine filesystem. The transcoder must be initialized again before use."""
        if self._fs_root is not None:
            shutil.rmtree(self._fs_root, ignore_errors=True)
            logger.info(f"FFmpeg terminated, removed {self._fs_root}")
        self._fs_root = None
        self.loaded = False
        self._progress_callbacks.clear()


class EngineHandle:
    """Owns the one MediaTranscoder of an application session."""

    def __init__(self, factory: Callable[[], MediaTranscoder]):
        self._factory = factory
        self._engine: Optional[MediaTranscoder] = None

    @property
    def engine(self) -> MediaTranscoder:
        if self._engine is None:
            raise RuntimeError("Media engine has not been acquired")
        return self._engine

    def acquire(self) -> MediaTranscoder:
        if self._engine is None:
            self._engine = self._factory()
            logger.debug("Media engine acquired")
        return self._engine

    def release(self) -> None:
        if self._engine is None:
            return
        try:
            self._engine.terminate()
        except OSError as e:
            logger.error(f"Error terminating FFmpeg: {e}")
        finally:
            self._engine = None
