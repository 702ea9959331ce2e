"""Configuration loading from environment variables."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .constants import DEFAULT_AUDIO_EXTENSIONS, HIDDEN_NAME_PREFIX
from .utils import env_flag, parse_extensions, parse_float_env, parse_int_env, resolve_path


@dataclass(frozen=True)
class AppConfig:
    log_level: str
    file_log_level: str
    log_dir: str
    log_file: str
    session_state_path: str
    tick_interval_ms: int = 500
    worker_threads: int = 4
    connect_timeout_seconds: float = 10.0
    connect_retries: int = 3
    connect_retry_delay_seconds: float = 2.0
    audio_extensions: tuple[str, ...] = DEFAULT_AUDIO_EXTENSIONS
    hidden_name_prefix: str = HIDDEN_NAME_PREFIX
    vlc_enabled: bool = True


def load_config() -> AppConfig:
    base_dir = str(Path(__file__).resolve().parents[1])
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    file_log_level = os.getenv("FILE_LOG_LEVEL", "DEBUG").upper()
    log_dir = resolve_path(os.getenv("LOG_DIR", "logs"), base_dir)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(
        log_dir, f"session_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}.log"
    )
    session_state_path = resolve_path(
        os.getenv("SESSION_STATE_PATH", "data/session_state.sqlite3").strip(),
        base_dir,
    )
    tick_interval_ms = parse_int_env("TICK_INTERVAL_MS", 500, min_value=50, max_value=10000)
    worker_threads = parse_int_env("WORKER_THREADS", 4, min_value=1, max_value=32)
    connect_timeout_seconds = parse_float_env(
        "CONNECT_TIMEOUT_SECONDS",
        10.0,
        min_value=0.5,
        max_value=300.0,
    )
    connect_retries = parse_int_env("CONNECT_RETRIES", 3, min_value=0, max_value=50)
    connect_retry_delay_seconds = parse_float_env(
        "CONNECT_RETRY_DELAY_SECONDS",
        2.0,
        min_value=0.0,
        max_value=600.0,
    )
    audio_extensions = parse_extensions(os.getenv("AUDIO_EXTENSIONS", ""))
    if not audio_extensions:
        audio_extensions = DEFAULT_AUDIO_EXTENSIONS
    hidden_name_prefix = os.getenv("HIDDEN_NAME_PREFIX", HIDDEN_NAME_PREFIX) or HIDDEN_NAME_PREFIX
    vlc_enabled = env_flag("VLC_ENABLED", "1")
    return AppConfig(
        log_level=log_level,
        file_log_level=file_log_level,
        log_dir=log_dir,
        log_file=log_file,
        session_state_path=session_state_path,
        tick_interval_ms=tick_interval_ms,
        worker_threads=worker_threads,
        connect_timeout_seconds=connect_timeout_seconds,
        connect_retries=connect_retries,
        connect_retry_delay_seconds=connect_retry_delay_seconds,
        audio_extensions=audio_extensions,
        hidden_name_prefix=hidden_name_prefix,
        vlc_enabled=vlc_enabled,
    )
