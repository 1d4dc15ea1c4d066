"""Configuration management for Pocket Appraisal."""
import os
from functools import lru_cache

# Load environment variables first
from dotenv import load_dotenv
load_dotenv()


class Config:
    """Application configuration with environment variable support."""

    def __init__(self):
        # Core API Configuration
        # Clean API key to remove any whitespace or hidden characters
        self.google_api_key = os.getenv("GOOGLE_API_KEY", "").strip()

        # Server Configuration
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = int(os.getenv("PORT", "8000"))
        self.environment = os.getenv("ENVIRONMENT", "production")
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        # Gemini AI Configuration (model configurable, sampling hardcoded)
        self.gemini_model = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.gemini_temperature = 0.1
        self.gemini_timeout_seconds = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "60"))

        # Whole identification + pricing run
        self.pipeline_timeout_seconds = float(os.getenv("PIPELINE_TIMEOUT_SECONDS", "150"))

        # One pipeline per caller session, least recently used evicted first
        self.max_sessions = int(os.getenv("MAX_SESSIONS", "1000"))

        # Camera capture
        self.camera_open_timeout_seconds = float(os.getenv("CAMERA_OPEN_TIMEOUT_SECONDS", "10"))
        self.camera_index_environment = int(os.getenv("CAMERA_INDEX_ENVIRONMENT", "0"))
        self.camera_index_user = int(os.getenv("CAMERA_INDEX_USER", "1"))
        self.camera_jpeg_quality = int(os.getenv("CAMERA_JPEG_QUALITY", "92"))

        # Security Configuration
        self.cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
        self.enable_api_docs = os.getenv("ENABLE_API_DOCS", "true").lower() == "true"

        # Monitoring and Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

    def validate(self, require_api_key: bool = True):
        """Validate required configuration values."""
        errors = []

        if require_api_key and not self.google_api_key:
            errors.append("GOOGLE_API_KEY is required")

        if self.max_sessions < 1:
            errors.append("MAX_SESSIONS must be at least 1")

        if not 1 <= self.camera_jpeg_quality <= 100:
            errors.append("CAMERA_JPEG_QUALITY must be between 1 and 100")

        for name in ("gemini_timeout_seconds", "pipeline_timeout_seconds", "camera_open_timeout_seconds"):
            if getattr(self, name) <= 0:
                errors.append(f"{name.upper()} must be positive")

        if errors:
            raise ValueError(f"Configuration errors: {'; '.join(errors)}")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    def camera_index_for(self, facing: str) -> int:
        """Map a facing mode onto a local device index."""
        if facing == "user":
            return self.camera_index_user
        return self.camera_index_environment

    def get_log_config(self) -> dict:
        """Get logging configuration."""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                },
                "json": {
                    "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                    "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": self.log_level,
                    "formatter": "json" if self.is_production else "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {
                "level": self.log_level,
                "handlers": ["console"],
            },
        }


@lru_cache()
def get_config() -> Config:
    """Get cached configuration instance."""
    config = Config()
    config.validate(require_api_key=False)
    return config
