"""Tests for the FFmpeg transcoder and its engine handle."""

import asyncio
import json
import os
import shutil
import subprocess
from pathlib import Path

import pytest

from pipeline.config import PipelineConfig
from pipeline.errors import InitializationError, TranscodeError
from video.ffmpeg_transcoder import AUDIO_CONTENT_TYPE, EngineHandle, MediaTranscoder

requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


def make_sample_video(target: Path, duration: int = 2, with_audio: bool = True) -> bytes:
    """Render a short test pattern video with an optional stereo 44.1 kHz tone."""
    cmd = ["ffmpeg", "-y", "-v", "error",
           "-f", "lavfi", "-i", f"testsrc=duration={duration}:size=160x120:rate=10"]
    if with_audio:
        cmd += ["-f", "lavfi", "-i", f"sine=frequency=440:duration={duration}:sample_rate=44100",
                "-ac", "2", "-c:a", "aac", "-shortest"]
    cmd += ["-c:v", "mpeg4", str(target)]
    subprocess.run(cmd, check=True, capture_output=True)
    return target.read_bytes()


def probe_audio(path: Path) -> dict:
    result = subprocess.run(
        ["ffprobe", "-v", "error", "-select_streams", "a:0",
         "-show_entries", "stream=codec_name,sample_rate,channels", "-of", "json", str(path)],
        check=True, capture_output=True, text=True,
    )
    return json.loads(result.stdout)["streams"][0]


def test_convert_before_initialize_fails():
    transcoder = MediaTranscoder()

    with pytest.raises(TranscodeError, match="not initialized"):
        asyncio.run(transcoder.convert(b"video"))


def test_initialize_with_missing_binary(tmp_path):
    transcoder = MediaTranscoder(ffmpeg_path=str(tmp_path / "no-ffmpeg"))

    with pytest.raises(InitializationError):
        asyncio.run(transcoder.initialize())
    assert transcoder.loaded is False


def test_command_uses_fixed_speech_profile():
    command = MediaTranscoder(ffmpeg_path="/opt/ffmpeg").build_command()

    assert command[0] == "/opt/ffmpeg"
    assert command[command.index("-i") + 1] == "input.mp4"
    assert "-vn" in command
    assert command[command.index("-acodec") + 1] == "libmp3lame"
    assert command[command.index("-ar") + 1] == "16000"
    assert command[command.index("-ac") + 1] == "1"
    assert command[command.index("-q:a") + 1] == "2"
    assert command[-1] == "output.mp3"


def test_from_config():
    config = PipelineConfig(ffmpeg_path="/bin/ff", audio_sample_rate=8000, audio_quality=5)
    transcoder = MediaTranscoder.from_config(config)

    assert transcoder.ffmpeg_path == "/bin/ff"
    assert transcoder.audio_sample_rate == 8000
    assert transcoder.audio_quality == 5


def test_engine_handle_lifecycle(tmp_path):
    created = []

    def factory():
        engine = MediaTranscoder(work_dir=str(tmp_path))
        created.append(engine)
        return engine

    handle = EngineHandle(factory)
    with pytest.raises(RuntimeError):
        handle.engine

    first = handle.acquire()
    assert handle.acquire() is first
    assert handle.engine is first
    handle.release()
    with pytest.raises(RuntimeError):
        handle.engine
    handle.release()
    assert len(created) == 1


@requires_ffmpeg
def test_engine_filesystem_is_private(tmp_path):
    transcoder = MediaTranscoder(work_dir=str(tmp_path))

    async def scenario():
        await transcoder.initialize()
        await transcoder.write_file("note.bin", b"abc")
        data = await transcoder.read_file("note.bin")
        transcoder.delete_file("note.bin")
        return data

    assert asyncio.run(scenario()) == b"abc"
    with pytest.raises(ValueError):
        transcoder.delete_file("../escape")

    root = transcoder._fs_root
    assert os.path.isdir(root)
    transcoder.terminate()
    assert not os.path.exists(root)
    assert transcoder.loaded is False


@requires_ffmpeg
def test_initialize_is_idempotent(tmp_path):
    transcoder = MediaTranscoder(work_dir=str(tmp_path))

    async def scenario():
        await transcoder.initialize()
        root = transcoder._fs_root
        await transcoder.initialize()
        return root

    root = asyncio.run(scenario())
    assert transcoder._fs_root == root
    assert transcoder.version.startswith("ffmpeg version")
    transcoder.terminate()


@requires_ffmpeg
def test_convert_produces_mono_16k_mp3(tmp_path):
    video = make_sample_video(tmp_path / "sample.mp4")
    transcoder = MediaTranscoder(work_dir=str(tmp_path))
    progress = []
    transcoder.on_progress(progress.append)

    async def scenario():
        await transcoder.initialize()
        return await transcoder.convert(video)

    blob = asyncio.run(scenario())

    assert blob.content_type == AUDIO_CONTENT_TYPE
    assert blob.size > 0
    out = tmp_path / "out.mp3"
    out.write_bytes(blob.read())
    stream = probe_audio(out)
    assert stream["codec_name"] == "mp3"
    assert stream["sample_rate"] == "16000"
    assert stream["channels"] == 1

    assert progress[0] == 0
    assert progress[-1] == 100
    assert progress == sorted(progress)
    assert os.listdir(transcoder._fs_root) == []
    transcoder.terminate()


@requires_ffmpeg
def test_convert_video_without_audio_fails(tmp_path):
    video = make_sample_video(tmp_path / "silent.mp4", with_audio=False)
    transcoder = MediaTranscoder(work_dir=str(tmp_path))

    async def scenario():
        await transcoder.initialize()
        return await transcoder.convert(video)

    with pytest.raises(TranscodeError, match="FFmpeg exited with code"):
        asyncio.run(scenario())
    assert os.listdir(transcoder._fs_root) == []
    transcoder.terminate()


@requires_ffmpeg
def test_convert_garbage_input_fails(tmp_path):
    transcoder = MediaTranscoder(work_dir=str(tmp_path))

    async def scenario():
        await transcoder.initialize()
        return await transcoder.convert(b"this is not a video")

    with pytest.raises(TranscodeError):
        asyncio.run(scenario())
    transcoder.terminate()
