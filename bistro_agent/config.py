"""
Centralized configuration with environment variable overrides.

Restaurant identity, model settings, collaborator endpoints and dialogue
thresholds are all configurable here. Nothing is hardcoded in the policy,
tool adapters, or booking API.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class RestaurantConfig:
    """Restaurant-specific settings."""

    name: str = os.getenv("RESTAURANT_NAME", "Vaiu Bistro")


@dataclass(frozen=True)
class ModelConfig:
    """LLM and voice pipeline model settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    stt_model: str = os.getenv("STT_MODEL", "nova-3")
    stt_language: str = os.getenv("STT_LANGUAGE", "en")
    tts_model: str = os.getenv("TTS_MODEL", "sonic-2")
    tts_voice_id: str = os.getenv("TTS_VOICE_ID", "9626c31c-bec5-4cca-baa8-f8ba9e84c8bc")


@dataclass(frozen=True)
class WeatherConfig:
    """Forecast provider settings."""

    api_key: str = os.getenv("WEATHER_API_KEY", "")
    api_url: str = os.getenv(
        "WEATHER_API_URL", "https://api.openweathermap.org/data/2.5/weather"
    )
    timeout_sec: float = _safe_float("WEATHER_TIMEOUT_SEC", "5.0")
    outdoor_min_temp_c: float = _safe_float("OUTDOOR_MIN_TEMP_C", "18.0")


@dataclass(frozen=True)
class BackendConfig:
    """Booking API and storage settings."""

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./bookings.db")
    booking_api_url: str = os.getenv("BOOKING_API_URL", "http://localhost:5000")
    booking_timeout_sec: float = _safe_float("BOOKING_TIMEOUT_SEC", "10.0")
    api_prefix: str = os.getenv("API_PREFIX", "")
    host: str = os.getenv("BACKEND_HOST", "0.0.0.0")
    port: int = _safe_int("BACKEND_PORT", "5000")


@dataclass(frozen=True)
class DialogueConfig:
    """Thresholds for the dialogue policy and confirmation gate."""

    max_commit_attempts: int = _safe_int("MAX_COMMIT_ATTEMPTS", "2")
    min_classifier_confidence: float = _safe_float("MIN_CLASSIFIER_CONFIDENCE", "0.6")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    restaurant: RestaurantConfig = field(default_factory=RestaurantConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    dialogue: DialogueConfig = field(default_factory=DialogueConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "bistro-host")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.weather.timeout_sec <= 0:
        raise ValueError(
            f"WEATHER_TIMEOUT_SEC must be > 0, got {config.weather.timeout_sec}"
        )
    if config.backend.booking_timeout_sec <= 0:
        raise ValueError(
            f"BOOKING_TIMEOUT_SEC must be > 0, got {config.backend.booking_timeout_sec}"
        )
    if not 1 <= config.backend.port <= 65535:
        raise ValueError(
            f"BACKEND_PORT must be between 1 and 65535, got {config.backend.port}"
        )
    if config.backend.api_prefix and not config.backend.api_prefix.startswith("/"):
        raise ValueError(
            f"API_PREFIX must start with '/', got {config.backend.api_prefix!r}"
        )
    if config.dialogue.max_commit_attempts < 1:
        raise ValueError(
            f"MAX_COMMIT_ATTEMPTS must be >= 1, got {config.dialogue.max_commit_attempts}"
        )
    if not 0.0 <= config.dialogue.min_classifier_confidence <= 1.0:
        raise ValueError(
            "MIN_CLASSIFIER_CONFIDENCE must be between 0.0 and 1.0, "
            f"got {config.dialogue.min_classifier_confidence}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.restaurant.name)
    return config


# Singleton instance
settings = load_config()
