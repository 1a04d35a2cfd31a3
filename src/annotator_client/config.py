"""
Annotator Client Configuration
==============================

This module handles configuration loading for the annotator client.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    ANNOTATOR_SERVICE_URL            -> service.url
    ANNOTATOR_RECONNECT_DELAY        -> service.reconnect_delay_seconds
    ANNOTATOR_MAX_RECONNECT_ATTEMPTS -> service.max_reconnect_attempts
    ANNOTATOR_CAMERA_INDEX           -> capture.camera_index
    ANNOTATOR_TARGET_WIDTH           -> capture.target_width
    ANNOTATOR_JPEG_QUALITY           -> capture.jpeg_quality
    ANNOTATOR_SHOW_WINDOW            -> overlay.show_window
    ANNOTATOR_PORT                   -> server.port
    ANNOTATOR_LOG_LEVEL              -> logging.level
    PORT                             -> server.port (container platforms)

Example:
    from annotator_client.config import settings

    print(settings.service.url)
    print(settings.rate.high_latency_ms)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ClientConfig(BaseModel):
    """Client identification configuration."""

    name: str = Field(default="annotator-client", description="Client name")
    version: str = Field(default="v0.1.0", description="Client version")


class ServiceConfig(BaseModel):
    """Annotation service connection configuration."""

    url: str = Field(
        default="ws://localhost:5000",
        pattern=r"^wss?://",
        description="WebSocket URL of the annotation service",
    )
    reconnect_delay_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Fixed delay between transport reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=10,
        ge=0,
        description="Transport reconnect attempts per failure episode",
    )
    ping_interval_seconds: Optional[float] = Field(
        default=20.0,
        gt=0,
        description="WebSocket keepalive ping interval (null disables)",
    )
    ping_timeout_seconds: Optional[float] = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for a keepalive pong",
    )
    close_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for the closing handshake",
    )
    subscriber_queue_size: int = Field(
        default=32,
        ge=1,
        description="Queued annotations per subscriber before dropping oldest",
    )


class SessionConfig(BaseModel):
    """Session-level resubscribe policy (independent of transport retries)."""

    resubscribe_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay before reconnecting after the message stream ends",
    )
    max_resubscribe_attempts: int = Field(
        default=5,
        ge=0,
        description="Resubscribe attempts per session lifetime",
    )


class CaptureConfig(BaseModel):
    """Frame capture configuration."""

    camera_index: int = Field(default=0, ge=0, description="cv2 camera index")
    capture_width: Optional[int] = Field(
        default=None,
        ge=1,
        description="Requested camera width (driver may ignore)",
    )
    capture_height: Optional[int] = Field(
        default=None,
        ge=1,
        description="Requested camera height (driver may ignore)",
    )
    target_width: int = Field(
        default=320,
        ge=16,
        description="Downsampled frame width in pixels",
    )
    jpeg_quality: int = Field(
        default=40,
        ge=1,
        le=100,
        description="JPEG quality factor",
    )


class RateConfig(BaseModel):
    """Latency thresholds for capture rate control."""

    high_latency_ms: float = Field(
        default=100.0,
        gt=0,
        description="Average latency above which capture drops to 15 fps",
    )
    moderate_latency_ms: float = Field(
        default=50.0,
        gt=0,
        description="Average latency above which capture drops to 20 fps",
    )
    max_latency_samples: Optional[int] = Field(
        default=None,
        ge=1,
        description="Bound on latency history (null = unbounded)",
    )


class OverlayConfig(BaseModel):
    """Overlay and display configuration."""

    line_width: int = Field(default=2, ge=1, description="Outline thickness")
    display_width: int = Field(default=640, ge=1, description="Displayed width")
    display_height: int = Field(default=480, ge=1, description="Displayed height")
    show_window: bool = Field(
        default=False,
        description="Open an OpenCV window with the annotated video",
    )
    window_name: str = Field(default="Annotator", description="Window title")


class ServerConfig(BaseModel):
    """Status server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8001, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the annotator client.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    client: ClientConfig = Field(default_factory=ClientConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    rate: RateConfig = Field(default_factory=RateConfig)
    overlay: OverlayConfig = Field(default_factory=OverlayConfig)
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
    # Find config file
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

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    # Build settings object
    settings = Settings.model_validate(config_data)

    return settings


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Service settings
    if env_url := os.environ.get("ANNOTATOR_SERVICE_URL"):
        config_data.setdefault("service", {})["url"] = env_url
    if env_delay := os.environ.get("ANNOTATOR_RECONNECT_DELAY"):
        config_data.setdefault("service", {})["reconnect_delay_seconds"] = float(env_delay)
    if env_attempts := os.environ.get("ANNOTATOR_MAX_RECONNECT_ATTEMPTS"):
        config_data.setdefault("service", {})["max_reconnect_attempts"] = int(env_attempts)

    # Capture settings
    if env_camera := os.environ.get("ANNOTATOR_CAMERA_INDEX"):
        config_data.setdefault("capture", {})["camera_index"] = int(env_camera)
    if env_width := os.environ.get("ANNOTATOR_TARGET_WIDTH"):
        config_data.setdefault("capture", {})["target_width"] = int(env_width)
    if env_quality := os.environ.get("ANNOTATOR_JPEG_QUALITY"):
        config_data.setdefault("capture", {})["jpeg_quality"] = int(env_quality)

    # Overlay settings
    if env_window := os.environ.get("ANNOTATOR_SHOW_WINDOW"):
        config_data.setdefault("overlay", {})["show_window"] = _parse_bool(env_window)

    # Server settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("ANNOTATOR_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("ANNOTATOR_LOG_LEVEL"):
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
