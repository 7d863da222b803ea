import json
import logging
import os
import tempfile
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")


class RedisConfig(BaseModel):
    url: str = Field(default="redis://redis:6379", description="Redis connection URL")
    socket_timeout: int = Field(default=5, description="Redis socket timeout in seconds")


class RateLimitConfig(BaseModel):
    enabled: bool = Field(default=True, description="Enable rate limiting")
    backend: str = Field(default="memory", description="Bucket storage: memory or redis")
    max_requests: int = Field(default=120, ge=1, description="Max requests per window")
    window_seconds: float = Field(default=60, gt=0, description="Rate limit window in seconds")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v):
        if v.lower() not in ("memory", "redis"):
            raise ValueError("Rate limit backend must be 'memory' or 'redis'")
        return v.lower()


class DownloadConfig(BaseModel):
    timeout_seconds: float = Field(default=120, gt=0, description="yt-dlp invocation timeout in seconds")
    socket_timeout: int = Field(default=10, ge=1, description="Socket timeout for yt-dlp")
    retries: int = Field(default=3, ge=0, description="Number of retries for failed downloads")
    concurrent_fragments: int = Field(default=4, ge=1, description="Fragments fetched in parallel by yt-dlp")
    temp_dir: str = Field(
        default=os.path.join(tempfile.gettempdir(), "medba_downloads"),
        description="Directory for temporary media files"
    )
    chunk_size: int = Field(default=1024 * 1024, ge=1, description="Streaming chunk size in bytes")
    stale_file_seconds: int = Field(default=3600, ge=60, description="Age after which orphaned temp files are purged")


class ThumbnailConfig(BaseModel):
    fetch_timeout_seconds: float = Field(default=15, gt=0, description="Thumbnail relay timeout in seconds")


class SecurityConfig(BaseModel):
    allowed_hosts: List[str] = Field(
        default=["youtube.com", "m.youtube.com", "youtu.be", "music.youtube.com"],
        description="Media hostnames accepted as download sources"
    )
    max_url_length: int = Field(default=2048, ge=1)
    max_format_id_length: int = Field(default=64, ge=1)
    max_title_length: int = Field(default=180, ge=1)


class YtDlpConfig(BaseModel):
    binary: str = Field(default="yt-dlp", description="yt-dlp executable")
    js_runtime: Optional[str] = Field(default=None, description="JS runtime path (e.g., deno:/usr/local/bin/deno)")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: List[str] = Field(default=["en", "ja"], description="Supported locales")


class ApiConfig(BaseModel):
    title: str = Field(default="Medba Downloader API", description="API title")
    version: str = Field(default="1.0.0", description="API version")
    cors_origins: List[str] = Field(default=["http://localhost:5173"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")


class Config(BaseSettings):
    """Main configuration model"""
    model_config = SettingsConfigDict(env_prefix="MEDBA_", env_nested_delimiter="__")

    api: ApiConfig = Field(default_factory=ApiConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    thumbnail: ThumbnailConfig = Field(default_factory=ThumbnailConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    ytdlp: YtDlpConfig = Field(default_factory=YtDlpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)

    @classmethod
    def load_from_file(cls, config_path: str) -> "Config":
        """Load configuration from JSON file, environment fills the gaps"""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
            logger.info(f"Configuration loaded from {config_path}")
            return cls(**config_data)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load config from {config_path}: {str(e)}")
            logger.info("Using environment/default configuration")
            return cls()


def load_config() -> Config:
    """Load configuration with priority: config.json > env vars > defaults"""
    if os.path.exists(CONFIG_PATH):
        return Config.load_from_file(CONFIG_PATH)

    logger.info(f"Config file not found at {CONFIG_PATH}, using environment variables")
    return Config()


config = load_config()
