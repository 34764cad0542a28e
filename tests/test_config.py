"""Tests for environment-driven configuration."""

import pytest

from pipeline.config import PipelineConfig


def test_defaults():
    config = PipelineConfig()

    assert config.groq_base_url == "https://api.groq.com/openai/v1"
    assert config.transcription_mode == "chat"
    assert config.temperature == 0.1
    assert config.max_tokens == 4000
    assert config.prompt_prefix_chars == 50
    assert config.max_payload_length == 100000
    assert config.audio_sample_rate == 16000
    assert config.audio_channels == 1


def test_from_env(monkeypatch):
    monkeypatch.setenv("TRANSCRIPTION_MODE", "AUDIO")
    monkeypatch.setenv("MAX_PAYLOAD_LENGTH", "2048")
    monkeypatch.setenv("FFMPEG_PATH", "/usr/local/bin/ffmpeg")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("GROQ_API_KEY", "k")

    config = PipelineConfig.from_env()

    assert config.transcription_mode == "audio"
    assert config.max_payload_length == 2048
    assert config.ffmpeg_path == "/usr/local/bin/ffmpeg"
    assert config.port == 9000
    assert config.groq_api_key == "k"


def test_from_env_without_key(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)

    assert PipelineConfig.from_env().groq_api_key is None


def test_invalid_mode_rejected():
    with pytest.raises(ValueError):
        PipelineConfig(transcription_mode="batch")


def test_invalid_payload_limit_rejected():
    with pytest.raises(ValueError):
        PipelineConfig(max_payload_length=0)
