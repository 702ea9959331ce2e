"""Headless entrypoint for the folder player session engine."""

from __future__ import annotations

import atexit
import os
import platform
import signal
import sys
import threading

from folder_player.application.bootstrap import initialize_session_services
from folder_player.application.context import SessionContext
from folder_player.application.session_hooks import SessionHooks
from folder_player.config import load_config
from folder_player.logging_config import setup_logging
from folder_player.utils import format_duration

CONFIG = load_config()
logger = setup_logging(CONFIG)

logger.info("Starting folder player")
logger.info("Log file: %s", CONFIG.log_file)
logger.debug(
    "Log config: LOG_LEVEL=%s FILE_LOG_LEVEL=%s LOG_DIR=%s SESSION_STATE_PATH=%s "
    "TICK_INTERVAL_MS=%s WORKER_THREADS=%s CONNECT_TIMEOUT_SECONDS=%s "
    "CONNECT_RETRIES=%s CONNECT_RETRY_DELAY_SECONDS=%s AUDIO_EXTENSIONS=%s "
    "HIDDEN_NAME_PREFIX=%s VLC_ENABLED=%s",
    CONFIG.log_level,
    CONFIG.file_log_level,
    CONFIG.log_dir,
    CONFIG.session_state_path,
    CONFIG.tick_interval_ms,
    CONFIG.worker_threads,
    CONFIG.connect_timeout_seconds,
    CONFIG.connect_retries,
    CONFIG.connect_retry_delay_seconds,
    ",".join(CONFIG.audio_extensions),
    CONFIG.hidden_name_prefix,
    CONFIG.vlc_enabled,
)
logger.debug("Python version: %s", sys.version.replace("\n", " "))
logger.debug("Platform: %s", platform.platform())

APP_CONTEXT = SessionContext(config=CONFIG, logger=logger)
_STOP = threading.Event()
_last_line = ""


def _notify(message: str) -> None:
    logger.warning("Notice: %s", message)


def _print_status(status) -> None:
    global _last_line
    state = "playing" if status.is_playing else "paused"
    if status.loading:
        state = "loading"
    line = (
        f"[{state}] {status.track_title}"
        f"{' - ' + status.track_artist if status.track_artist else ''} "
        f"{format_duration(status.position_ms)}/{format_duration(status.duration_ms)} "
        f"({status.current_index + 1}/{len(status.queue)})"
    )
    if line != _last_line:
        _last_line = line
        print(line, flush=True)


def _shutdown_runtime() -> None:
    _STOP.set()
    try:
        APP_CONTEXT.close()
    except Exception:
        logger.exception("Runtime shutdown failed")


atexit.register(_shutdown_runtime)


def _queue_folders(folders: list[str]) -> None:
    controller = APP_CONTEXT.controller
    for index, folder in enumerate(folders):
        token = os.path.abspath(os.path.expanduser(folder))
        place = controller.add_bookmark(token)
        if place is None:
            continue
        if index == 0:
            controller.play_folder_recursive(place.location_token)
        else:
            controller.add_folder_recursive(place.location_token)


def _queue_when_loaded(controller, folders: list[str]) -> None:
    # The restored queue must land first or it would replace ours.
    def _observer(status) -> None:
        if status.loading:
            return
        unsubscribe()
        _queue_folders(folders)

    unsubscribe = controller.subscribe(_observer)


def launch(argv: list[str] | None = None) -> None:
    folders = list(sys.argv[1:] if argv is None else argv)
    services = initialize_session_services(
        config=CONFIG,
        logger=logger,
        hooks=SessionHooks(notify=_notify),
    )
    APP_CONTEXT.bind_services(services)
    controller = services.controller
    controller.subscribe(_print_status)
    controller.start()
    if folders:
        _queue_when_loaded(controller, folders)

    signal.signal(signal.SIGINT, lambda *_args: services.dispatcher.close())
    logger.info("Session running; press Ctrl+C to stop")
    services.dispatcher.run_forever(_STOP)
    _shutdown_runtime()


if __name__ == "__main__":
    launch()
