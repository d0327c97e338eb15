from __future__ import annotations

import os
from functools import lru_cache

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = structlog.get_logger()


class Settings(BaseModel):
    """Configuration settings for the code generation relay."""

    model_config = ConfigDict(
        frozen=True,
        validate_default=True,  # Environment-derived defaults go through validators too
        protected_namespaces=(),  # Allow "model_" prefix fields
    )

    # Upstream inference API
    api_key: str = Field(
        default_factory=lambda: os.getenv("HUGGINGFACE_API_KEY", ""),
        repr=False,
        description="Bearer token for the hosted inference API",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("MODEL_NAME", "bigcode/starcoder2-15b"),
        description="Hosted model identifier",
    )
    inference_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "INFERENCE_BASE_URL", "https://api-inference.huggingface.co/models"
        ),
        description="Base URL the model identifier is appended to",
    )
    request_timeout_s: float = Field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_S", "60.0")),
        gt=0.0,
        le=600.0,
        description="Timeout for the outbound inference call",
    )

    # Server
    host: str = Field(
        default_factory=lambda: os.getenv("HOST", "0.0.0.0"),
        description="Interface to bind",
    )
    port: int = Field(
        default_factory=lambda: int(os.getenv("PORT", "5000")),
        ge=1,
        le=65535,
        description="Port to listen on",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: os.getenv("CORS_ORIGINS", "*"),
        description="Allowed CORS origins (comma-separated in env)",
    )

    # Logging and monitoring
    log_level: str = Field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"),
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    metrics_enabled: bool = Field(
        default_factory=lambda: os.getenv("METRICS_ENABLED", "true").lower() == "true",
        description="Enable Prometheus metrics",
    )
    max_log_text_chars: int = Field(
        default_factory=lambda: int(os.getenv("MAX_LOG_TEXT_CHARS", "512")),
        ge=16,
        le=10000,
        description="Maximum characters to log for text fields",
    )

    # Development and debugging
    debug: bool = Field(
        default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true",
        description="Enable debug mode",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            # Parse comma-separated string from environment
            origins = [origin.strip() for origin in v.split(",") if origin.strip()]
            return origins or ["*"]
        return v

    @field_validator("model_name")
    @classmethod
    def validate_model_name(cls, v):
        if not v or not v.strip():
            raise ValueError("model_name cannot be empty")
        return v.strip()

    @field_validator("inference_base_url")
    @classmethod
    def validate_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("inference_base_url must be an http(s) URL")
        return v.rstrip("/")

    @property
    def model_url(self) -> str:
        return f"{self.inference_base_url}/{self.model_name}"

    def get_env_info(self) -> dict:
        """Get environment information for debugging. Never includes the API key."""
        return {
            "model_name": self.model_name,
            "model_url": self.model_url,
            "api_key_configured": bool(self.api_key),
            "request_timeout_s": self.request_timeout_s,
            "port": self.port,
            "log_level": self.log_level,
            "debug": self.debug,
            "metrics_enabled": self.metrics_enabled,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance with validation."""
    try:
        settings = Settings()
        logger.info("Configuration loaded successfully", **settings.get_env_info())
        if not settings.api_key:
            logger.warning("HUGGINGFACE_API_KEY is not set, upstream calls will be rejected")
        return settings
    except Exception as e:
        logger.error("Failed to load configuration", error=str(e))
        raise
