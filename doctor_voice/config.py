"""
Central configuration for the Doctor Voice Scribe service
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field
from enum import Enum


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class ModelName(str, Enum):
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"


class STTModel(str, Enum):
    GPT_4O_TRANSCRIBE = "gpt-4o-transcribe"
    GPT_4O_MINI_TRANSCRIBE = "gpt-4o-mini-transcribe"
    WHISPER_1 = "whisper-1"


class UILanguage(str, Enum):
    """Language choices offered by the browser client."""
    KANNADA_ENGLISH = "kn-en"
    HINDI_ENGLISH = "hi-en"
    TAMIL_ENGLISH = "ta-en"
    TELUGU_ENGLISH = "te-en"
    ENGLISH = "en"
    AUTO = "auto"


class Settings(BaseSettings):
    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # API Configuration
    api_title: str = Field(default="Doctor Voice Scribe API")
    api_description: str = Field(default="Doctor voice note transcription and clinical summary service")
    api_version: str = Field(default="1.0.0")
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000)

    # External Service APIs
    openai_api_key: str = Field(...)
    openai_base_url: str = Field(default="https://api.openai.com/v1")

    # Rate Limiting
    rate_limit_requests: int = Field(default=10)
    rate_limit_window: int = Field(default=60)  # seconds

    # Audio Processing
    upload_dir: str = Field(default="uploads")
    max_file_size_mb: int = Field(default=25)
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffmpeg_timeout: int = Field(default=120)  # seconds
    target_sample_rate: int = Field(default=16000)
    target_channels: int = Field(default=1)

    # Timeouts and Retries
    stt_timeout: int = Field(default=60)
    llm_timeout: int = Field(default=60)
    max_retries: int = Field(default=0)

    # Language Support
    default_language: UILanguage = Field(default=UILanguage.KANNADA_ENGLISH)

    # LLM Configuration
    llm_temperature: float = Field(default=0.0)
    llm_max_tokens: int = Field(default=1500)
    default_llm_model: str = Field(default=ModelName.GPT_4O.value)

    # STT Configuration
    default_stt_model: str = Field(default=STTModel.GPT_4O_TRANSCRIBE.value)

    # Frontend
    serve_frontend: bool = Field(default=True)

    # CORS Configuration
    cors_origins: List[str] = Field(default=["*"])
    cors_allow_credentials: bool = Field(default=False)
    cors_allow_methods: List[str] = Field(default=["GET", "POST"])
    cors_allow_headers: List[str] = Field(default=["*"])

    # Monitoring
    enable_metrics: bool = Field(default=True)

    # Audit Logging
    audit_log_enabled: bool = Field(default=True)

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
