"""
Errors raised by the processing pipeline stages
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for failures of a single pipeline stage."""

    stage = "pipeline"

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message)


class AudioValidationError(PipelineError):
    """Raised when the uploaded audio is rejected before transcoding."""

    stage = "upload"


class TranscodingError(PipelineError):
    """Raised when ffmpeg cannot convert the upload to the target WAV format."""

    stage = "transcoding"

    def __init__(self, message: str, cause: Optional[Exception] = None, stderr: str = ""):
        self.stderr = stderr
        super().__init__(message, cause)


class TranscriptionError(PipelineError):
    """Raised when the speech-to-text call fails."""

    stage = "transcription"


class SummarizationError(PipelineError):
    """Raised when the summary generation call fails."""

    stage = "summarization"
