"""
Pydantic models for API responses
"""

from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


NO_AUDIO_MESSAGE = "No audio received."
PROCESSING_FAILED_MESSAGE = "Processing failed."


class ScribeResponse(BaseModel):
    """Result of one voice note: raw transcript plus the doctor summary"""
    model_config = ConfigDict(populate_by_name=True)

    raw: str = Field(default="", description="Raw transcript as returned by the speech-to-text service")
    doctor_summary: str = Field(
        default="",
        alias="doctorSummary",
        description="Structured English clinical summary for review"
    )

    @classmethod
    def no_audio(cls) -> "ScribeResponse":
        return cls(raw="", doctor_summary=NO_AUDIO_MESSAGE)

    @classmethod
    def failed(cls) -> "ScribeResponse":
        return cls(raw="", doctor_summary=PROCESSING_FAILED_MESSAGE)


class HealthCheckResponse(BaseModel):
    """Health Check Response"""
    status: str = Field(description="Service status (healthy, ready or unavailable)")
    timestamp: datetime = Field(description="Time of the check")
    version: str = Field(description="Service version")
    uptime_seconds: int = Field(description="Uptime in seconds")

    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Detailed health information"
    )


class ErrorResponse(BaseModel):
    """Standardised error response"""
    error: str = Field(description="Error type")
    message: str = Field(description="Error description")
    request_id: Optional[str] = Field(default=None, description="Request ID for debugging")
    timestamp: datetime = Field(description="Time of the error")


class RateLimitResponse(BaseModel):
    """Rate Limit Exceeded Response"""
    error: str = Field(default="rate_limit_exceeded")
    message: str = Field(description="Rate limit message")
    retry_after: int = Field(description="Seconds until the next attempt")
    limit: int = Field(description="Request limit")
    window: int = Field(description="Window in seconds")
    timestamp: datetime = Field(description="Time of the error")
