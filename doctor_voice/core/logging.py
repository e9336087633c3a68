"""
Structured logging setup for Doctor Voice Scribe
"""

import logging
import structlog
from datetime import datetime, timezone
from doctor_voice.config import settings


def setup_logging():
    """Configures structured logging"""

    timestamper = structlog.processors.TimeStamper(fmt="ISO")

    processors = [
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.environment == "development":
        # Development: Colored console output
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True)
        ])
    else:
        # Production: JSON output
        processors.extend([
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer()
        ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None):
    """Returns a configured logger"""
    return structlog.get_logger(name or __name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLogger:
    """Logger for audit events. Never receives transcript or summary text."""

    def __init__(self):
        self.logger = get_logger("audit")

    @property
    def enabled(self) -> bool:
        return settings.audit_log_enabled

    def log_api_request(
        self,
        request_id: str,
        endpoint: str,
        method: str,
        user_agent: str = None,
        ip_address: str = None,
        **kwargs
    ):
        """Logs an incoming API request"""
        if not self.enabled:
            return
        self.logger.info(
            "api_request",
            request_id=request_id,
            endpoint=endpoint,
            method=method,
            user_agent=user_agent,
            ip_address=ip_address,
            timestamp=_now(),
            **kwargs
        )

    def log_audio_processing(
        self,
        request_id: str,
        audio_size_bytes: int,
        audio_duration: float,
        language: str,
        processing_time_ms: int,
        **kwargs
    ):
        """Logs a completed transcoding step"""
        if not self.enabled:
            return
        self.logger.info(
            "audio_processing",
            request_id=request_id,
            audio_size_bytes=audio_size_bytes,
            audio_duration=audio_duration,
            language=language,
            processing_time_ms=processing_time_ms,
            timestamp=_now(),
            **kwargs
        )

    def log_external_api_call(
        self,
        request_id: str,
        service: str,
        model: str,
        response_time_ms: int,
        **kwargs
    ):
        """Logs calls to external APIs"""
        if not self.enabled:
            return
        self.logger.info(
            "external_api_call",
            request_id=request_id,
            service=service,
            model=model,
            response_time_ms=response_time_ms,
            timestamp=_now(),
            **kwargs
        )

    def log_error(
        self,
        request_id: str,
        error_type: str,
        error_message: str,
        stage: str = None,
        **kwargs
    ):
        """Logs error events"""
        if not self.enabled:
            return
        self.logger.error(
            "error_event",
            request_id=request_id,
            error_type=error_type,
            error_message=error_message,
            stage=stage,
            timestamp=_now(),
            **kwargs
        )


# Global audit logger instance
audit_logger = AuditLogger()
