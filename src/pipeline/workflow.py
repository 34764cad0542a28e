"""
Four-step workflow: select a video, confirm, process, download subtitles.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, List, Optional, Union

from pipeline.errors import PipelineError, UnknownError, WorkflowStateError
from subtitles.subtitle_formatter import SubtitleDocument, SubtitleFormat, SubtitleFormatter
from transcription.encoder import encode, truncate_payload
from transcription.groq_client import TranscriptionClient, TranscriptionResult
from video.ffmpeg_transcoder import MediaTranscoder

logger = logging.getLogger(__name__)


class WorkflowState(IntEnum):
    IDLE = 1
    FILE_SELECTED = 2
    PROCESSING = 3
    COMPLETE = 4


@dataclass(frozen=True)
class UploadedFile:
    """A user-selected file and its declared name."""
    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class WorkflowSnapshot:
    state: WorkflowState
    file_name: Optional[str]
    progress: int
    transcription: Optional[str]
    alert: Optional[str]
    engine_loaded: bool


StateListener = Callable[[WorkflowState, WorkflowState], None]
AlertListener = Callable[[str], None]


class WorkflowController:
    """Sequences transcoding, encoding, transcription and subtitle rendering.

    The state value is the only gate: a run can start only from FILE_SELECTED,
    so at most one run is in flight.
    """

    def __init__(
        self,
        transcoder: MediaTranscoder,
        transcription_client: TranscriptionClient,
        formatter: Optional[SubtitleFormatter] = None,
        max_payload_length: int = 100000,
    ):
        self._transcoder = transcoder
        self._client = transcription_client
        self._formatter = formatter or SubtitleFormatter()
        self.max_payload_length = max_payload_length

        self._state = WorkflowState.IDLE
        self._file: Optional[UploadedFile] = None
        self._result: Optional[TranscriptionResult] = None
        self.progress: int = 0
        self.alert: Optional[str] = None

        self._state_listeners: List[StateListener] = []
        self._alert_listeners: List[AlertListener] = []
        transcoder.on_progress(self._on_progress)

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def file(self) -> Optional[UploadedFile]:
        return self._file

    @property
    def result(self) -> Optional[TranscriptionResult]:
        return self._result

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def on_alert(self, listener: AlertListener) -> None:
        self._alert_listeners.append(listener)

    def snapshot(self) -> WorkflowSnapshot:
        return WorkflowSnapshot(
            state=self._state,
            file_name=self._file.name if self._file else None,
            progress=self.progress,
            transcription=self._result.text if self._result else None,
            alert=self.alert,
            engine_loaded=self._transcoder.loaded,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def select_file(self, name: str, data: bytes, content_type: Optional[str] = None) -> UploadedFile:
        """Store the selected file. Allowed from IDLE, and from COMPLETE to start over."""
        if self._state not in (WorkflowState.IDLE, WorkflowState.COMPLETE):
            raise WorkflowStateError("select a file", self._state)

        self._file = UploadedFile(name=name, data=data, content_type=content_type)
        self._result = None
        self.progress = 0
        self.alert = None
        logger.info(f"Selected file {name} ({self._file.size} bytes)")
        self._transition(WorkflowState.FILE_SELECTED)
        return self._file

    async def start(self) -> WorkflowState:
        """
        Run convert -> encode -> truncate -> transcribe for the selected file.

        Any failure is reported as an alert and sends the workflow back to
        IDLE, dropping the file and partial results.

        Returns:
            The state after the run, COMPLETE or IDLE
        """
        self.begin()
        return await self.run()

    def begin(self) -> None:
        """Claim the selected file and enter PROCESSING without awaiting."""
        if self._state is not WorkflowState.FILE_SELECTED or self._file is None:
            raise WorkflowStateError("start transcription", self._state)

        self.progress = 0
        self.alert = None
        self._transition(WorkflowState.PROCESSING)

    async def run(self) -> WorkflowState:
        """Process the file claimed by begin()."""
        if self._state is not WorkflowState.PROCESSING or self._file is None:
            raise WorkflowStateError("run transcription", self._state)

        uploaded = self._file
        try:
            result = await self._process(uploaded)
        except Exception as e:
            error = e if isinstance(e, PipelineError) else UnknownError(str(e) or type(e).__name__, e)
            logger.error(f"Error during transcription: {error}")
            self._file = None
            self._result = None
            self.progress = 0
            self._transition(WorkflowState.IDLE)
            self.alert_user(f"Error: {error}")
            return self._state

        self._result = result
        self.progress = 100
        self._transition(WorkflowState.COMPLETE)
        return self._state

    def reset(self) -> None:
        """Drop the selected file and any result, returning to IDLE."""
        if self._state is WorkflowState.PROCESSING:
            raise WorkflowStateError("reset", self._state)
        self._file = None
        self._result = None
        self.progress = 0
        self.alert = None
        if self._state is not WorkflowState.IDLE:
            self._transition(WorkflowState.IDLE)

    def download_subtitle(self, kind: Union[SubtitleFormat, str]) -> SubtitleDocument:
        """Render a fresh subtitle document for the stored transcription."""
        if self._state is not WorkflowState.COMPLETE or self._result is None:
            raise WorkflowStateError("download subtitles", self._state)
        return self._formatter.document(self._result, kind)

    def alert_user(self, message: str) -> None:
        self.alert = message
        logger.warning(f"Alert: {message}")
        for listener in list(self._alert_listeners):
            listener(message)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _process(self, uploaded: UploadedFile) -> TranscriptionResult:
        if not self._transcoder.loaded:
            await self._transcoder.initialize()

        logger.info("Converting video to audio...")
        audio = await self._transcoder.convert(uploaded.data)
        logger.info(f"Conversion complete, audio blob size: {audio.size}")

        encoded = await encode(audio)
        payload = truncate_payload(encoded, self.max_payload_length)

        logger.info("Requesting transcription...")
        result = await self._client.transcribe(payload)
        logger.info(f"Transcription complete, {len(result.text)} chars")
        return result

    def _on_progress(self, percent: int) -> None:
        if self._state is WorkflowState.PROCESSING:
            self.progress = percent

    def _transition(self, new_state: WorkflowState) -> None:
        old_state = self._state
        self._state = new_state
        logger.debug(f"Workflow {old_state.name} -> {new_state.name}")
        for listener in list(self._state_listeners):
            listener(old_state, new_state)
