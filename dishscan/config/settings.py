"""
Configuration management system using Pydantic Settings.
Supports environment-based configuration for the dish scanning service.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode
from typing import Annotated, Optional, Dict, Any, List
from enum import Enum


class Environment(str, Enum):
    """Supported deployment environments"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Supported log levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ScanSettings(BaseSettings):
    """Tuning knobs for the scan analysis & localization pipeline"""

    # Text localization
    match_threshold: float = Field(default=0.4, ge=0.0, le=2.0)
    whole_line_bonus: float = Field(default=0.2, ge=0.0, le=1.0)
    whole_line_length_slack: int = Field(default=3, ge=0, le=50)

    # Image preloading
    preload_timeout_ms: int = Field(default=3000, ge=0, le=60000)

    # Progress reporting
    progress_tick_ms: int = Field(default=100, ge=10, le=5000)
    progress_tick_cap: float = Field(default=80.0, ge=0.0, lt=100.0)
    completion_delay_ms: int = Field(default=300, ge=0, le=10000)
    failure_abort_delay_ms: int = Field(default=3000, ge=0, le=60000)
    quota_abort_delay_ms: int = Field(default=5000, ge=0, le=60000)

    # OCR
    ocr_enabled: bool = Field(default=True)
    ocr_languages: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["chi_sim", "eng"])
    ocr_contrast_factor: float = Field(default=1.5, ge=0.1, le=5.0)

    @field_validator('ocr_languages', mode='before')
    @classmethod
    def parse_ocr_languages(cls, v):
        """Parse OCR language hints from "chi_sim+eng" or "chi_sim,eng" strings"""
        if isinstance(v, str):
            parts = v.replace("+", ",").split(",")
            return [part.strip() for part in parts if part.strip()]
        return v or ["eng"]

    model_config = {"env_prefix": "SCAN_"}


class InferenceSettings(BaseSettings):
    """Gemini inference service configuration"""

    api_key: Optional[str] = Field(
        default=None,
        description="Google Gemini API key"
    )
    model: str = Field(default="gemini-2.5-flash")
    timeout_seconds: int = Field(default=60, ge=5, le=600)

    model_config = {
        "env_prefix": "GEMINI_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


class ThumbnailSettings(BaseSettings):
    """Remote thumbnail lookup configuration"""

    base_url: str = Field(default="https://tse2.mm.bing.net/th")
    width: int = Field(default=400, ge=16, le=2048)
    height: int = Field(default=400, ge=16, le=2048)
    crop: int = Field(default=7)
    resize_mode: int = Field(default=1)
    padding: int = Field(default=0)

    model_config = {"env_prefix": "THUMBNAIL_"}


class Settings(BaseSettings):
    """Main application settings"""

    # Application Configuration
    app_name: str = Field(default="Dish Scan Backend")
    app_version: str = Field(default="1.0.0")
    environment: Environment = Field(default=Environment.DEVELOPMENT)
    debug: bool = Field(default=False)

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    reload: bool = Field(default=False)

    # Logging Configuration
    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Upload limits
    max_upload_mb: int = Field(default=10, ge=1, le=50)

    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Nested Settings
    scan: ScanSettings = Field(default_factory=ScanSettings)
    inference: InferenceSettings = Field(default_factory=InferenceSettings)
    thumbnails: ThumbnailSettings = Field(default_factory=ThumbnailSettings)

    @field_validator('environment', mode='before')
    @classmethod
    def validate_environment(cls, v):
        """Validate and normalize environment setting"""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from environment variable or list"""
        if isinstance(v, str):
            origin_list = v.split(",")
            return [origin.strip() for origin in origin_list if origin.strip()]
        return v or ["*"]

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment == Environment.PRODUCTION

    def get_cors_config(self) -> Dict[str, Any]:
        """Get CORS configuration for FastAPI"""
        return {
            "allow_origins": self.cors_origins,
            "allow_credentials": True,
            "allow_methods": ["GET", "POST"],
            "allow_headers": ["*"],
        }

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance"""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment and files"""
    global settings
    settings = Settings()
    return settings
