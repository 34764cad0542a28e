"""FastAPI server exposing the video transcription workflow as a single page.

Run with:
uvicorn server.app:app --host 0.0.0.0 --port 8000

Endpoints:
GET  /                              the page
GET  /api/workflow                  state, progress, transcription and last alert
POST /api/workflow/file             multipart upload of the video ("file")
POST /api/workflow/start            start processing in the background (202)
POST /api/workflow/reset            drop the file/result and go back to idle
GET  /api/workflow/subtitle/{kind}  download transcript.vtt or transcript.srt
POST /api/transcribe                form field "base64Audio" -> {"text": "..."}

The transcoder is acquired when the application starts and released when it
shuts down. An FFmpeg load failure at startup is reported as an alert and
leaves the workflow idle; processing retries the load.
"""

from __future__ import annotations
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Callable, Dict, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel

from pipeline.config import PipelineConfig
from pipeline.errors import InitializationError, TranscriptionError, WorkflowStateError
from pipeline.workflow import WorkflowController
from server.page import INDEX_HTML
from subtitles.subtitle_formatter import SubtitleFormat
from transcription.encoder import strip_data_url_prefix
from transcription.groq_client import TranscriptionClient, create_transcription_client
from video.ffmpeg_transcoder import EngineHandle, MediaTranscoder

logger = logging.getLogger(__name__)

logging.basicConfig(level=logging.INFO)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------
class WorkflowResponse(BaseModel):
    state: str
    step: int
    file_name: Optional[str] = None
    progress: int = 0
    transcription: Optional[str] = None
    alert: Optional[str] = None
    engine_loaded: bool = False


class StartResponse(BaseModel):
    task_id: str
    status: str = "started"


class TranscribeResponse(BaseModel):
    text: str


def _snapshot_response(controller: WorkflowController) -> WorkflowResponse:
    snapshot = controller.snapshot()
    return WorkflowResponse(
        state=snapshot.state.name.lower(),
        step=int(snapshot.state),
        file_name=snapshot.file_name,
        progress=snapshot.progress,
        transcription=snapshot.transcription,
        alert=snapshot.alert,
        engine_loaded=snapshot.engine_loaded,
    )


def _controller(request: Request) -> WorkflowController:
    return request.app.state.controller


async def _run_workflow(controller: WorkflowController) -> None:
    """Run one workflow pass; failures inside the chain are handled by the controller."""
    try:
        await controller.run()
    finally:
        logger.info("Workflow task finished")


def create_app(
    config: Optional[PipelineConfig] = None,
    transcoder_factory: Optional[Callable[[], MediaTranscoder]] = None,
    transcription_client: Optional[TranscriptionClient] = None,
) -> FastAPI:
    """Build the application. Collaborators can be swapped for tests."""
    config = config or PipelineConfig.from_env()
    engine = EngineHandle(transcoder_factory or (lambda: MediaTranscoder.from_config(config)))
    client = transcription_client or create_transcription_client(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        transcoder = engine.acquire()
        controller = WorkflowController(
            transcoder,
            client,
            max_payload_length=config.max_payload_length,
        )
        app.state.controller = controller
        app.state.tasks = {}

        try:
            await transcoder.initialize()
        except InitializationError as exc:
            logger.error(f"Error loading FFmpeg: {exc}")
            controller.alert_user(str(exc))

        yield

        tasks: Dict[str, asyncio.Task] = app.state.tasks
        for task in list(tasks.values()):
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)
        engine.release()

    app = FastAPI(title="Video Transcriber", lifespan=lifespan)
    app.state.config = config
    app.state.transcription_client = client

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/", response_class=HTMLResponse)
    async def index():
        return INDEX_HTML

    @app.get("/api/workflow", response_model=WorkflowResponse)
    async def get_workflow(request: Request):
        return _snapshot_response(_controller(request))

    @app.post("/api/workflow/file", response_model=WorkflowResponse)
    async def select_file(request: Request, file: UploadFile = File(...)):
        controller = _controller(request)
        data = await file.read()
        if not data:
            raise HTTPException(status_code=422, detail="Uploaded file is empty")
        try:
            controller.select_file(file.filename or "upload", data, file.content_type)
        except WorkflowStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return _snapshot_response(controller)

    @app.post("/api/workflow/start", response_model=StartResponse, status_code=202)
    async def start_workflow(request: Request):
        controller = _controller(request)
        try:
            controller.begin()
        except WorkflowStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc))

        task_id = uuid.uuid4().hex
        tasks: Dict[str, asyncio.Task] = request.app.state.tasks
        task = asyncio.create_task(_run_workflow(controller))
        tasks[task_id] = task

        # Automatically remove task from registry when done
        def _cleanup(t: asyncio.Task):
            tasks.pop(task_id, None)

        task.add_done_callback(_cleanup)
        logger.info(f"Started workflow task {task_id}")
        return StartResponse(task_id=task_id)

    @app.post("/api/workflow/reset", response_model=WorkflowResponse)
    async def reset_workflow(request: Request):
        controller = _controller(request)
        try:
            controller.reset()
        except WorkflowStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return _snapshot_response(controller)

    @app.get("/api/workflow/subtitle/{kind}")
    async def download_subtitle(request: Request, kind: str):
        try:
            fmt = SubtitleFormat(kind)
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Unknown subtitle format: {kind}")
        try:
            document = _controller(request).download_subtitle(fmt)
        except WorkflowStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return Response(
            content=document.content,
            media_type=document.media_type,
            headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
        )

    @app.post("/api/transcribe", response_model=TranscribeResponse)
    async def transcribe(request: Request, base64Audio: Optional[str] = Form(None)):  # noqa: N803
        if not base64Audio:
            logger.error("No audio data provided")
            raise HTTPException(status_code=400, detail="No audio data provided")

        try:
            result = await request.app.state.transcription_client.transcribe(
                strip_data_url_prefix(base64Audio)
            )
        except TranscriptionError as exc:
            raise HTTPException(status_code=502, detail=str(exc))
        logger.info("Transcription completed successfully")
        return TranscribeResponse(text=result.text)

    return app


app = create_app()
