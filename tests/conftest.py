"""Shared pytest fixtures for the Doctor Voice Scribe tests.

The environment is prepared before the application package is imported,
since settings are read once at import time.
"""

import os
import subprocess
import tempfile
import wave
from pathlib import Path
from unittest import mock

os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "1000")
os.environ.setdefault("AUDIT_LOG_ENABLED", "false")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="doctor-voice-uploads-"))

import pytest
from fastapi.testclient import TestClient

from doctor_voice.core.exceptions import SummarizationError, TranscriptionError
from doctor_voice.main import app, get_pipeline
from doctor_voice.services.audio_processor import AudioProcessor
from doctor_voice.services.pipeline import ScribePipeline


SAMPLE_SUMMARY = (
    "### Assessment & Plan\n\n"
    "**Chief Complaint:**\n- Fever for two days.\n\n"
    "**Medication:**\n- Dolo 650, twice a day.\n"
)


def write_silent_wav(path, seconds: float = 0.5, sample_rate: int = 16000) -> Path:
    """Write a mono 16-bit WAV file of silence."""
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(b"\x00\x00" * int(seconds * sample_rate))
    return Path(path)


class FakeSTTService:
    """Records transcription calls and returns a canned transcript."""

    def __init__(self, text: str = "patient has fever, Dolo 650 twice a day", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    async def transcribe(self, request_id, file_path, language=None):
        self.calls.append({
            "request_id": request_id,
            "file_path": Path(file_path),
            "language": language,
            "file_existed": Path(file_path).exists(),
        })
        if self.error:
            raise self.error
        return self.text


class FakeLLMService:
    """Records summary calls and returns a canned summary."""

    def __init__(self, summary: str = SAMPLE_SUMMARY, error: Exception = None):
        self.summary = summary
        self.error = error
        self.transcripts = []

    async def summarize(self, request_id, transcript):
        self.transcripts.append(transcript)
        if self.error:
            raise self.error
        return self.summary


class FakeFFmpeg:
    """Stands in for subprocess.run, writing a WAV to the output path."""

    def __init__(self, returncode: int = 0, stderr: bytes = b"", write_output: bool = True):
        self.returncode = returncode
        self.stderr = stderr
        self.write_output = write_output
        self.commands = []

    def __call__(self, cmd, capture_output=True, check=False, timeout=None):
        self.commands.append(cmd)
        if self.write_output:
            write_silent_wav(cmd[-1])
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=b"", stderr=self.stderr)


@pytest.fixture
def upload_dir(tmp_path):
    """Directory receiving the uploads of a single test."""
    return tmp_path / "uploads"


@pytest.fixture
def audio_processor(upload_dir):
    return AudioProcessor(upload_dir=str(upload_dir))


@pytest.fixture
def ffmpeg_factory():
    """Builds ffmpeg stand-ins with custom behaviour."""
    return FakeFFmpeg


@pytest.fixture
def fake_ffmpeg():
    """Patch subprocess.run with a successful ffmpeg stand-in."""
    ffmpeg = FakeFFmpeg()
    with mock.patch("subprocess.run", side_effect=ffmpeg):
        yield ffmpeg


@pytest.fixture
def failing_ffmpeg():
    """Patch subprocess.run with an ffmpeg that leaves a partial file and exits 1."""
    ffmpeg = FakeFFmpeg(returncode=1, stderr=b"Invalid data found when processing input")
    with mock.patch("subprocess.run", side_effect=ffmpeg):
        yield ffmpeg


@pytest.fixture
def stt_service():
    return FakeSTTService()


@pytest.fixture
def llm_service():
    return FakeLLMService()


@pytest.fixture
def pipeline(audio_processor, stt_service, llm_service):
    return ScribePipeline(audio_processor, stt_service, llm_service)


@pytest.fixture
def client(pipeline):
    """FastAPI test client whose endpoint uses the fake-backed pipeline.

    Yields:
        tuple: (test_client, pipeline)
    """
    app.dependency_overrides[get_pipeline] = lambda: pipeline

    with TestClient(app) as test_client:
        yield test_client, pipeline

    app.dependency_overrides.clear()


@pytest.fixture
def transcription_error():
    return TranscriptionError("quota exceeded")


@pytest.fixture
def summarization_error():
    return SummarizationError("model unavailable")
