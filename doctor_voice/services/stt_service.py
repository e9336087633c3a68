"""
Speech-to-Text Service
Uses the OpenAI audio transcription API.
"""

import time
from pathlib import Path
from typing import Optional
from openai import AsyncOpenAI, OpenAIError

from doctor_voice.config import settings
from doctor_voice.core.exceptions import TranscriptionError
from doctor_voice.core.logging import get_logger, audit_logger

logger = get_logger(__name__)


class STTService:
    """Service for Speech-to-Text transcription using OpenAI."""

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.stt_timeout,
            max_retries=settings.max_retries,
        )
        self.model = settings.default_stt_model

    async def transcribe(
        self,
        request_id: str,
        file_path: Path,
        language: Optional[str] = None,
    ) -> str:
        """
        Transcribes the converted WAV file and returns the recognised text,
        which may be empty. Without a language code the model auto-detects it.
        """
        params = {"model": self.model}
        if language:
            params["language"] = language

        logger.info(f"[{request_id}] Starting transcription with {self.model}, language: {language or 'auto'}")
        start_time = time.time()

        try:
            with open(file_path, "rb") as audio_stream:
                transcription = await self.client.audio.transcriptions.create(
                    file=audio_stream,
                    **params
                )
        except (OpenAIError, OSError) as e:
            raise TranscriptionError(f"Transcription request failed: {e}", cause=e) from e

        text = getattr(transcription, "text", None) or ""

        audit_logger.log_external_api_call(
            request_id=request_id,
            service="openai.audio.transcriptions",
            model=self.model,
            response_time_ms=int((time.time() - start_time) * 1000),
            language=language or "auto",
            characters=len(text),
        )
        logger.info(f"[{request_id}] Transcription successful: {len(text)} characters")
        return text
