"""
Doctor Voice Scribe - FastAPI Main Application
"""

import asyncio
import secrets
import shutil
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

import httpx
from fastapi import FastAPI, HTTPException, Request, Depends, status, UploadFile, File, Form
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.responses import Response, FileResponse

from doctor_voice.config import settings
from doctor_voice.core.logging import setup_logging, get_logger, audit_logger
from doctor_voice.models.responses import (
    ScribeResponse, HealthCheckResponse, ErrorResponse, RateLimitResponse
)
from doctor_voice.services.audio_processor import AudioProcessor
from doctor_voice.services.stt_service import STTService
from doctor_voice.services.llm_service import LLMService
from doctor_voice.services.pipeline import ScribePipeline

# Initialize logging
setup_logging()
logger = get_logger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
STARTED_AT = time.time()

# Prometheus metrics
request_count = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
request_duration = Histogram('http_request_duration_seconds', 'HTTP request duration')

# Rate limiter
limiter = Limiter(key_func=get_remote_address)


def processing_rate_limit() -> str:
    """Limit for the voice note endpoints, read from settings on every request."""
    return f"{settings.rate_limit_requests} per {settings.rate_limit_window} seconds"


# Service instances
audio_processor = AudioProcessor()
stt_service = STTService()
llm_service = LLMService()
pipeline = ScribePipeline(audio_processor, stt_service, llm_service)


def get_pipeline() -> ScribePipeline:
    """Dependency returning the process-wide pipeline."""
    return pipeline


# --- Dependency Status Checks ---
async def check_openai_status() -> Tuple[str, str]:
    """Checks that the OpenAI API is reachable with the configured key."""
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            headers = {"Authorization": f"Bearer {settings.openai_api_key}"}
            response = await client.get(f"{settings.openai_base_url}/models", headers=headers)
        if 200 <= response.status_code < 300:
            return "ok", "OpenAI API is reachable."
        return "error", f"OpenAI API returned status {response.status_code}."
    except httpx.HTTPError as e:
        return "error", f"Failed to connect to OpenAI API: {e}"


async def check_ffmpeg_status() -> Tuple[str, str]:
    """Checks that the ffmpeg binary can be found."""
    path = shutil.which(settings.ffmpeg_binary)
    if path:
        return "ok", f"ffmpeg found at {path}."
    return "error", f"ffmpeg binary '{settings.ffmpeg_binary}' not found in PATH."

# --------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("🚀 Doctor Voice Scribe starting...")
    logger.info(f"Environment: {settings.environment.value}")
    logger.info(f"API Version: {settings.api_version}")

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    if not shutil.which(settings.ffmpeg_binary):
        logger.warning(f"ffmpeg binary '{settings.ffmpeg_binary}' not found; every upload will fail to transcode.")

    yield

    # Shutdown
    logger.info("🛑 Doctor Voice Scribe shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
    debug=settings.debug,
)

if settings.serve_frontend:
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


# Middleware for security headers
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    if "X-Content-Type-Options" not in response.headers:
        response.headers["X-Content-Type-Options"] = "nosniff"
    if "X-Frame-Options" not in response.headers:
        response.headers["X-Frame-Options"] = "DENY"
    if "Permissions-Policy" not in response.headers:
        response.headers["Permissions-Policy"] = "microphone=(self)"
    if "Content-Security-Policy" not in response.headers:
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "script-src 'self'; "
            "object-src 'none'"
        )
    return response


# Middleware for request tracking and metrics
@app.middleware("http")
async def track_requests(request: Request, call_next):
    """Request tracking and Prometheus metrics"""

    start_time = time.time()
    request_id = secrets.token_urlsafe(16)

    request.state.request_id = request_id
    request.state.start_time = start_time

    audit_logger.log_api_request(
        request_id=request_id,
        endpoint=request.url.path,
        method=request.method,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )

    try:
        response = await call_next(request)

        duration = time.time() - start_time
        request_count.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()
        request_duration.observe(duration)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time"] = f"{duration:.3f}s"

        return response

    except Exception as e:
        request_count.labels(
            method=request.method,
            endpoint=request.url.path,
            status=500
        ).inc()

        logger.error(f"Request {request_id} failed: {e}", exc_info=True)

        return JSONResponse(
            status_code=500,
            content=_error_content("internal_server_error", "An internal error occurred", request_id),
            headers={"X-Request-ID": request_id}
        )


# Health check endpoint
@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Service health check"""

    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.api_version,
        uptime_seconds=int(time.time() - STARTED_AT)
    )


@app.get("/ready")
async def readiness_check():
    """
    Checks if the service and its dependencies are ready to accept traffic.
    Returns 200 OK if all checks pass, otherwise 503 Service Unavailable.
    """
    checks = {
        "ffmpeg": check_ffmpeg_status(),
        "openai": check_openai_status(),
    }

    results = await asyncio.gather(*checks.values())

    details = {}
    all_ok = True
    for name, (check_status, message) in zip(checks.keys(), results):
        details[name] = {"status": check_status, "message": message}
        if check_status != "ok":
            all_ok = False

    response_data = HealthCheckResponse(
        status="ready" if all_ok else "unavailable",
        timestamp=datetime.now(timezone.utc),
        version=settings.api_version,
        uptime_seconds=int(time.time() - STARTED_AT),
        details=details,
    ).model_dump(mode="json")

    if all_ok:
        return JSONResponse(status_code=status.HTTP_200_OK, content=response_data)
    logger.warning(f"Readiness check failed: {details}")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=response_data)


if settings.serve_frontend:
    @app.get("/", include_in_schema=False)
    async def read_index():
        """Serves the browser recording client."""
        return FileResponse(STATIC_DIR / "index.html")


# Prometheus metrics endpoint
@app.get("/metrics")
async def metrics():
    """Prometheus metrics"""
    if not settings.enable_metrics:
        raise HTTPException(status_code=404, detail="Metrics disabled")

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Main endpoint for voice notes; the browser client posts to /process-audio
@app.post("/transcribe", response_model=ScribeResponse)
@app.post("/process-audio", response_model=ScribeResponse)
@limiter.limit(processing_rate_limit)
async def transcribe_audio(
    request: Request,
    audio: Union[UploadFile, str, None] = File(None),
    language: str = Form(settings.default_language.value),
    pipeline: ScribePipeline = Depends(get_pipeline),
):
    """
    Receives a recorded voice note and returns its raw transcript and the
    structured doctor summary. Pipeline failures are reported in the body
    with status 200.
    """
    # A plain text "audio" field carries no recording
    audio_file = audio if isinstance(audio, StarletteUploadFile) else None
    return await pipeline.process(
        request_id=request.state.request_id,
        audio_file=audio_file,
        language=language,
    )


def _error_content(error: str, message: str, request_id: str) -> dict:
    return ErrorResponse(
        error=error,
        message=message,
        request_id=request_id,
        timestamp=datetime.now(timezone.utc),
    ).model_dump(mode="json")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Custom rate limit error handler"""

    response = RateLimitResponse(
        message="Too many requests. Please try again later.",
        retry_after=settings.rate_limit_window,
        limit=settings.rate_limit_requests,
        window=settings.rate_limit_window,
        timestamp=datetime.now(timezone.utc)
    )

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=response.model_dump(mode="json"),
        headers={"Retry-After": str(settings.rate_limit_window)}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""

    request_id = getattr(request.state, 'request_id', 'unknown')

    logger.error(f"Unhandled error in request {request_id}: {exc}")
    logger.error(f"Stacktrace: {traceback.format_exc()}")

    return JSONResponse(
        status_code=500,
        content=_error_content("internal_server_error", "An unexpected error occurred", request_id),
        headers={"X-Request-ID": request_id}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "doctor_voice.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development"
    )
