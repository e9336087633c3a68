"""
Request orchestration: upload -> transcode -> transcribe -> summarize -> cleanup
"""

import time
from typing import Optional

from fastapi import UploadFile
from prometheus_client import Counter, Histogram

from doctor_voice.core.exceptions import AudioValidationError, PipelineError
from doctor_voice.core.logging import get_logger, audit_logger
from doctor_voice.models.responses import ScribeResponse
from doctor_voice.services.audio_processor import AudioProcessor
from doctor_voice.services.language import map_language, resolve_ui_language
from doctor_voice.services.llm_service import LLMService
from doctor_voice.services.stt_service import STTService

logger = get_logger(__name__)

pipeline_outcomes = Counter(
    'scribe_pipeline_outcomes_total', 'Voice note pipeline outcomes', ['outcome', 'stage']
)
pipeline_duration = Histogram('scribe_pipeline_duration_seconds', 'Voice note pipeline duration')


class ScribePipeline:
    """Runs one voice note through transcoding, transcription and summarization."""

    def __init__(
        self,
        audio_processor: AudioProcessor,
        stt_service: STTService,
        llm_service: LLMService,
    ):
        self.audio_processor = audio_processor
        self.stt_service = stt_service
        self.llm_service = llm_service

    async def process(
        self,
        request_id: str,
        audio_file: Optional[UploadFile],
        language: Optional[str],
    ) -> ScribeResponse:
        """
        Returns the transcript and summary, or the generic failure response.
        A failure never exposes a transcript without its summary, and the
        temp files of the request are gone before this returns.
        """
        if audio_file is None:
            logger.info(f"[{request_id}] No audio received.")
            pipeline_outcomes.labels(outcome="no_audio", stage="received").inc()
            return ScribeResponse.no_audio()

        ui_language = resolve_ui_language(language)
        language_code = map_language(ui_language)
        start_time = time.time()
        stage = "upload"

        try:
            with self.audio_processor.temp_audio_files() as files:
                max_bytes = self.audio_processor.max_bytes
                declared_size = getattr(audio_file, "size", None)
                if declared_size is not None and declared_size > max_bytes:
                    raise AudioValidationError(
                        f"Upload of {declared_size} bytes exceeds the {max_bytes} byte limit"
                    )
                # One byte past the limit is enough for save_upload to reject it
                audio_data = await audio_file.read(max_bytes + 1)
                size = await self.audio_processor.save_upload(audio_data, files.original)

                stage = "transcoding"
                metadata = await self.audio_processor.convert_to_wav(files.original, files.converted)
                audit_logger.log_audio_processing(
                    request_id=request_id,
                    audio_size_bytes=size,
                    audio_duration=metadata.get("duration_seconds", 0.0),
                    language=ui_language,
                    processing_time_ms=int((time.time() - start_time) * 1000),
                    converted_size_bytes=metadata.get("size_bytes"),
                )

                stage = "transcription"
                transcript = await self.stt_service.transcribe(
                    request_id=request_id,
                    file_path=files.converted,
                    language=language_code,
                )

                stage = "summarization"
                summary = await self.llm_service.summarize(request_id=request_id, transcript=transcript)
        except Exception as e:
            failed_stage = e.stage if isinstance(e, PipelineError) else stage
            logger.error(
                f"[{request_id}] Processing failed at stage '{failed_stage}': {e}",
                stderr=getattr(e, "stderr", None),
                exc_info=True,
            )
            audit_logger.log_error(
                request_id=request_id,
                error_type=type(e).__name__,
                error_message=str(e),
                stage=failed_stage,
            )
            pipeline_outcomes.labels(outcome="failed", stage=failed_stage).inc()
            return ScribeResponse.failed()

        duration = time.time() - start_time
        pipeline_duration.observe(duration)
        pipeline_outcomes.labels(outcome="success", stage="responded").inc()
        logger.info(
            f"[{request_id}] Voice note processed in {duration:.2f}s",
            transcript_chars=len(transcript),
            summary_chars=len(summary),
        )
        return ScribeResponse(raw=transcript, doctor_summary=summary)
