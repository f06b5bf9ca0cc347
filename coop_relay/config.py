"""Runtime configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import tempfile


@dataclass(frozen=True)
class AppSettings:
    """Environment-backed settings for the relay agent."""

    backend_url: str
    database_url: str
    store_namespace: str
    pairing_poll_seconds: float
    config_poll_seconds: float
    health_interval_seconds: float
    http_timeout_seconds: float
    ffmpeg_bin: str
    capture_timeout_seconds: float
    capture_output_path: str
    uploader_command: str
    upload_timeout_seconds: float
    uploader_required_env: tuple[str, ...]
    control_host: str
    control_port: int
    log_level: str


DEFAULT_BACKEND_URL = "http://localhost:8080"
DEFAULT_DATABASE_URL = "sqlite:///coop_relay.db"
DEFAULT_UPLOADER_REQUIRED_ENV = "SUPABASE_URL,SUPABASE_SERVICE_KEY"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for {name}: {value}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid float for {name}: {value}") from exc


def _env_list(name: str, default: str) -> tuple[str, ...]:
    value = os.getenv(name, default)
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_settings() -> AppSettings:
    """Load all relay settings from the environment."""
    return AppSettings(
        backend_url=os.getenv("BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/"),
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        store_namespace=os.getenv("STORE_NAMESPACE", "coop-relay"),
        pairing_poll_seconds=_env_float("PAIRING_POLL_SECONDS", 5.0),
        config_poll_seconds=_env_float("CONFIG_POLL_SECONDS", 30.0),
        health_interval_seconds=_env_float("HEALTH_INTERVAL_SECONDS", 120.0),
        http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 15.0),
        ffmpeg_bin=os.getenv("FFMPEG_BIN", "ffmpeg"),
        capture_timeout_seconds=_env_float("CAPTURE_TIMEOUT_SECONDS", 30.0),
        capture_output_path=os.getenv(
            "CAPTURE_OUTPUT_PATH",
            str(Path(tempfile.gettempdir()) / "coop-relay-snapshot.jpg"),
        ),
        uploader_command=os.getenv("UPLOADER_COMMAND", "coop-relay-upload"),
        upload_timeout_seconds=_env_float("UPLOAD_TIMEOUT_SECONDS", 60.0),
        uploader_required_env=_env_list("UPLOADER_REQUIRED_ENV", DEFAULT_UPLOADER_REQUIRED_ENV),
        control_host=os.getenv("CONTROL_HOST", "127.0.0.1"),
        control_port=_env_int("CONTROL_PORT", 8765),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
