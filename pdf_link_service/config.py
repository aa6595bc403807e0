"""
PDF Link Service Configuration Module

Centralized configuration management with Pydantic validation.
Environment variables (and an optional .env file) are read once at startup
and the resulting settings object is passed explicitly to every component.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings


logger = logging.getLogger(__name__)

RENDERER_VARIANTS = ("local", "packaged")


class ConverterSettings(BaseSettings):
    """
    PDF link service configuration with validation.

    All settings can be overridden via environment variables.
    Validation happens at startup to fail fast on misconfiguration.
    """

    # === Server ===
    host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP port")
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production"
    )
    log_level: str = Field(default="INFO", description="Root log level")
    public_base_url: Optional[str] = Field(
        default=None,
        description="Base URL used in pdfUrl instead of the request host"
    )

    # === Security ===
    bearer_token: str = Field(
        ...,
        min_length=16,
        description="Shared bearer secret for /convert (min 16 chars)"
    )

    # === Artifact store ===
    pdf_dir: Path = Field(default=Path("pdfs"), description="Directory for generated PDFs")
    pdf_ttl_seconds: float = Field(
        default=43200,
        gt=0,
        description="Seconds a generated PDF is kept (default 12h)"
    )
    sweep_interval_seconds: float = Field(
        default=3600,
        gt=0,
        description="Seconds between directory sweeps (default 1h)"
    )

    # === Rendering ===
    renderer: str = Field(default="local", description="Renderer variant: local or packaged")
    chromium_executable_path: Optional[str] = Field(
        default=None,
        description="Chromium binary for the packaged renderer"
    )
    chromium_extra_args: str = Field(
        default="",
        description="Comma-separated extra launch args for the packaged renderer"
    )
    playwright_headless: bool = Field(default=True, description="Run Chromium headless")
    render_timeout_seconds: float = Field(
        default=60,
        gt=0,
        le=600,
        description="Upper bound for a single render (seconds)"
    )
    max_concurrent_pdfs: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum simultaneous renders (1-50)"
    )
    validate_renderer_on_startup: bool = Field(
        default=True,
        description="Render a test page at startup to verify Chromium"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of: {', '.join(sorted(allowed))}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v_upper

    @field_validator("bearer_token")
    @classmethod
    def validate_secret_strength(cls, v: str) -> str:
        """Reject placeholder and low-entropy secrets."""
        weak_secrets = {"your-secret-token", "changeme", "password", "secret"}
        if v.lower() in weak_secrets or len(set(v)) < 4:
            raise ValueError("Bearer token is too weak - use a secure random string")
        return v

    @field_validator("renderer")
    @classmethod
    def validate_renderer(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in RENDERER_VARIANTS:
            raise ValueError(f"renderer must be one of: {', '.join(RENDERER_VARIANTS)}")
        return v_lower

    @field_validator("pdf_dir")
    @classmethod
    def resolve_pdf_dir(cls, v: Path) -> Path:
        return v.expanduser().resolve()

    @field_validator("public_base_url")
    @classmethod
    def validate_url_format(cls, v: Optional[str]) -> Optional[str]:
        """Basic URL format validation."""
        if v is None:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid URL format: {v}")
        return v.rstrip("/")

    @model_validator(mode="after")
    def check_packaged_renderer(self) -> "ConverterSettings":
        if self.renderer == "packaged" and not self.chromium_executable_path:
            raise ValueError(
                "CHROMIUM_EXECUTABLE_PATH is required when RENDERER=packaged"
            )
        return self

    @property
    def chromium_extra_args_list(self) -> List[str]:
        """Parse extra Chromium args into a list."""
        if not self.chromium_extra_args:
            return []
        return [arg.strip() for arg in self.chromium_extra_args.split(",") if arg.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration is suitable for production.

        Returns list of warning messages.
        """
        issues = []

        if self.is_production:
            if not self.public_base_url:
                issues.append("WARNING: PUBLIC_BASE_URL not configured, pdfUrl uses request host")
            if not self.playwright_headless:
                issues.append("WARNING: PLAYWRIGHT_HEADLESS disabled in production")

        return issues

    class Config:
        env_prefix = ""  # No prefix, use exact env var names
        case_sensitive = False  # BEARER_TOKEN = bearer_token
        extra = "ignore"


@lru_cache()
def get_settings() -> ConverterSettings:
    """
    Get cached settings instance.

    Settings are loaded once and cached; the instance is then handed to
    create_app() rather than re-read by individual components.
    """
    load_dotenv()
    return ConverterSettings()


def validate_config_on_startup() -> ConverterSettings:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid (including a missing
    BEARER_TOKEN). Logs warnings for non-critical issues.
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        raise ValueError(f"Configuration validation failed: {e}") from e

    for issue in settings.validate_production_config():
        logger.warning(issue)

    # Log loaded configuration (redact secrets)
    logger.info(f"Configuration loaded: environment={settings.environment}")
    logger.info(f"  port={settings.port}")
    logger.info(f"  bearer_token={'*' * 8}")
    logger.info(f"  pdf_dir={settings.pdf_dir}")
    logger.info(f"  pdf_ttl={settings.pdf_ttl_seconds}s sweep_interval={settings.sweep_interval_seconds}s")
    logger.info(f"  renderer={settings.renderer} timeout={settings.render_timeout_seconds}s")
    logger.info(f"  max_concurrent_pdfs={settings.max_concurrent_pdfs}")

    return settings
