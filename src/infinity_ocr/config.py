"""
Infinity OCR Configuration
==========================

This module handles configuration loading for the scanner.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    INFINITY_OCR_API_KEY             -> scanner.api_key (falls back to GEMINI_API_KEY)
    INFINITY_OCR_MODEL               -> scanner.model
    INFINITY_OCR_MAX_FRAMES          -> scanner.max_frames
    INFINITY_OCR_CAPTURE_INTERVAL_MS -> scanner.capture_interval_ms
    INFINITY_OCR_SHARPNESS_THRESHOLD -> scanner.sharpness_threshold
    INFINITY_OCR_SYSTEM_PROMPT       -> scanner.system_prompt
    INFINITY_OCR_VIDEO_DEVICE        -> video.device
    INFINITY_OCR_PORT                -> server.port
    INFINITY_OCR_LOG_LEVEL           -> logging.level
    PORT                             -> server.port (Cloud Run)

Example:
    from infinity_ocr.config import settings

    print(settings.scanner.model)
    print(settings.scanner.max_frames)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from infinity_ocr.presets import (
    DEFAULT_ANALYSIS_WIDTH,
    DEFAULT_CAPTURE_INTERVAL_MS,
    DEFAULT_MAX_FRAMES,
    DEFAULT_MODEL,
    DEFAULT_SHARPNESS_THRESHOLD,
    DEFAULT_SYSTEM_PROMPT,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ScannerConfig(BaseModel):
    """
    Per-session scanner configuration.

    Frozen: a running session never sees its configuration change.
    """

    api_key: str = Field(
        default="",
        repr=False,
        description="Gemini API key (secret, required to start scanning)",
    )
    model: str = Field(default=DEFAULT_MODEL, description="Gemini model identifier")
    max_frames: int = Field(
        default=DEFAULT_MAX_FRAMES,
        ge=1,
        le=20,
        description="Frames retained per batch",
    )
    capture_interval_ms: int = Field(
        default=DEFAULT_CAPTURE_INTERVAL_MS,
        ge=100,
        le=2000,
        description="Minimum spacing between captures in milliseconds",
    )
    sharpness_threshold: float = Field(
        default=DEFAULT_SHARPNESS_THRESHOLD,
        ge=0,
        description="Minimum score for capture; calibrated to analysis.width",
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="System instruction sent with every batch",
    )

    class Config:
        """Pydantic model configuration."""

        frozen = True


class AnalysisConfig(BaseModel):
    """Sharpness analysis resolution."""

    width: int = Field(
        default=DEFAULT_ANALYSIS_WIDTH,
        ge=16,
        description="Analysis width in pixels (height is proportional)",
    )
    margin: float = Field(
        default=0.2,
        ge=0,
        lt=0.5,
        description="Fraction skipped on each edge before scoring",
    )


class EncodingConfig(BaseModel):
    """Captured frame encoding."""

    max_dimension: int = Field(default=1024, ge=64, description="Longest side after resize")
    jpeg_quality: int = Field(default=80, ge=1, le=100, description="JPEG quality")


class AutofocusConfig(BaseModel):
    """Autofocus recovery timing."""

    blur_window_sec: float = Field(
        default=2.0,
        gt=0,
        description="Sustained blur required before a refocus",
    )
    cooldown_sec: float = Field(
        default=5.0,
        gt=0,
        description="Minimum time between refocus attempts",
    )
    restore_delay_sec: float = Field(
        default=0.5,
        ge=0,
        description="Delay before continuous focus is re-engaged",
    )


class VideoConfig(BaseModel):
    """Capture device configuration."""

    device: str = Field(default="0", description="OpenCV device index or URL")
    width: int = Field(default=1280, ge=1, description="Requested capture width")
    height: int = Field(default=720, ge=1, description="Requested capture height")
    tick_interval_sec: float = Field(
        default=1.0 / 30.0,
        gt=0,
        le=1.0,
        description="Capture loop scheduling period",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")
    telemetry_push_sec: float = Field(
        default=0.5,
        gt=0,
        description="Telemetry WebSocket push interval",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for Infinity OCR.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    autofocus: AutofocusConfig = Field(default_factory=AutofocusConfig)
    video: VideoConfig = Field(default_factory=VideoConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Scanner settings
    if env_key := os.environ.get("INFINITY_OCR_API_KEY") or os.environ.get("GEMINI_API_KEY"):
        config_data.setdefault("scanner", {})["api_key"] = env_key
    if env_model := os.environ.get("INFINITY_OCR_MODEL"):
        config_data.setdefault("scanner", {})["model"] = env_model
    if env_frames := os.environ.get("INFINITY_OCR_MAX_FRAMES"):
        config_data.setdefault("scanner", {})["max_frames"] = int(env_frames)
    if env_interval := os.environ.get("INFINITY_OCR_CAPTURE_INTERVAL_MS"):
        config_data.setdefault("scanner", {})["capture_interval_ms"] = int(env_interval)
    if env_threshold := os.environ.get("INFINITY_OCR_SHARPNESS_THRESHOLD"):
        config_data.setdefault("scanner", {})["sharpness_threshold"] = float(env_threshold)
    if env_prompt := os.environ.get("INFINITY_OCR_SYSTEM_PROMPT"):
        config_data.setdefault("scanner", {})["system_prompt"] = env_prompt

    # Video settings
    if env_device := os.environ.get("INFINITY_OCR_VIDEO_DEVICE"):
        config_data.setdefault("video", {})["device"] = env_device

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("INFINITY_OCR_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("INFINITY_OCR_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
