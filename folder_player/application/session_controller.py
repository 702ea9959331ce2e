"""Session orchestration: transport events, navigation, queue and persistence."""
from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
import threading
from typing import Any, Callable, Iterable

from ..constants import DEFAULT_TRACK_TITLE, NO_AUDIO_FILES_FOUND, UNKNOWN_NAME
from ..domain.models import (
    FileItem,
    MediaPlace,
    PlayerStatus,
    QueueItem,
    RepeatMode,
    TransitionReason,
    queue_identity,
)
from ..domain.navigation import NavigationStack, validate_restored_stack
from ..storage.place_registry import MediaPlaceRegistry
from ..storage.session_store import SessionStore
from .dispatcher import MainThreadDispatcher, PositionTicker
from .folder_browser import BrowseResult, FolderBrowser
from .ports import (
    CurrentItemChanged,
    DurationChanged,
    PlaybackTransport,
    PlayingChanged,
    QueueChanged,
    RepeatChanged,
    ShuffleChanged,
    TransportEvent,
    TransportFactory,
)
from .queue_builder import QueueBuilder
from .session_hooks import SessionHooks

StatusObserver = Callable[[PlayerStatus], None]
BrowserObserver = Callable[["BrowserView"], None]

# Every reason must be listed; a seek into another item keeps its position.
POSITION_SURVIVES_TRANSITION: dict[TransitionReason, bool] = {
    TransitionReason.AUTO: False,
    TransitionReason.SEEK: True,
    TransitionReason.SKIP: False,
    TransitionReason.QUEUE_REPLACED: False,
    TransitionReason.UNKNOWN: False,
}


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class BrowserView:
    """What the folder screen shows."""

    places: tuple[MediaPlace, ...]
    path_stack: tuple[FileItem, ...]
    current_files: tuple[FileItem, ...]
    show_playlist: bool


class SessionController:
    """Owns ``PlayerStatus`` and every user-facing session operation.

    Public methods and every callback posted to the dispatcher run on the
    dispatcher's thread. Folder listing, tag reading and startup reads run on
    ``executor``; their results come back through the dispatcher.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        registry: MediaPlaceRegistry,
        browser: FolderBrowser,
        queue_builder: QueueBuilder,
        storage_provider,
        transport_factory: TransportFactory,
        dispatcher: MainThreadDispatcher,
        executor: Executor,
        logger,
        hooks: SessionHooks | None = None,
        tick_interval_ms: int = 500,
        connect_timeout_seconds: float = 10.0,
        connect_retries: int = 0,
        connect_retry_delay_seconds: float = 2.0,
    ) -> None:
        self.store = store
        self.registry = registry
        self.browser = browser
        self.queue_builder = queue_builder
        self.storage_provider = storage_provider
        self.transport_factory = transport_factory
        self.dispatcher = dispatcher
        self.executor = executor
        self.logger = logger
        self.hooks = hooks or SessionHooks()
        self.connect_timeout_seconds = float(connect_timeout_seconds)
        self.connect_retries = max(0, int(connect_retries))
        self.connect_retry_delay_seconds = max(0.0, float(connect_retry_delay_seconds))

        self.transport: PlaybackTransport | None = None
        self.connection_state = ConnectionState.DISCONNECTED
        self.navigation = NavigationStack()
        self.current_files: tuple[FileItem, ...] = ()
        self.show_playlist = False

        self._status = PlayerStatus(loading=True)
        self._status_observers: list[StatusObserver] = []
        self._browser_observers: list[BrowserObserver] = []
        self._connect_generation = 0
        self._connect_future: Future | None = None
        self._connect_attempts = 0
        self._browse_generation = 0
        self._restored_identity: tuple[str, ...] | None = None
        self._timers: list[threading.Timer] = []
        self._started = False
        self._disposed = False
        self._ticker = PositionTicker(dispatcher, self._on_tick, tick_interval_ms)

    # Observation

    @property
    def status(self) -> PlayerStatus:
        return self._status

    @property
    def view(self) -> BrowserView:
        return BrowserView(
            places=tuple(self.registry.list()),
            path_stack=self.navigation.items,
            current_files=self.current_files,
            show_playlist=self.show_playlist,
        )

    def subscribe(self, observer: StatusObserver) -> Callable[[], None]:
        self._status_observers.append(observer)
        return lambda: self._remove_observer(self._status_observers, observer)

    def subscribe_view(self, observer: BrowserObserver) -> Callable[[], None]:
        self._browser_observers.append(observer)
        return lambda: self._remove_observer(self._browser_observers, observer)

    @staticmethod
    def _remove_observer(observers: list, observer) -> None:
        if observer in observers:
            observers.remove(observer)

    def _set_status(self, status: PlayerStatus) -> None:
        previous = self._status
        if status is previous:
            return
        self._status = status
        if status == previous and status.position_ms == previous.position_ms:
            return
        for observer in list(self._status_observers):
            try:
                observer(status)
            except Exception:
                self.logger.exception("Status observer failed")

    def _update_status(self, **changes: Any) -> None:
        self._set_status(self._status.with_changes(**changes))

    def _publish_view(self) -> None:
        view = self.view
        for observer in list(self._browser_observers):
            try:
                observer(view)
            except Exception:
                self.logger.exception("Browser observer failed")

    # Lifecycle

    def start(self) -> None:
        """Restore persisted state on the worker pool, then start the ticker and connect."""
        if self._started:
            return
        self._ensure_alive()
        self._started = True
        generation = self._browse_generation

        def work():
            return self.store.load_settings(), self.registry.load()

        def on_success(payload) -> None:
            settings, _places = payload
            self._update_status(
                shuffle_mode=settings.shuffle_mode,
                repeat_mode=settings.repeat_mode,
                pause_at_end_of_queue=settings.pause_at_end_of_queue,
            )
            self._publish_view()
            resume()

        def resume(_exc: Exception | None = None) -> None:
            # Defaults stand in when the startup read failed.
            self._restore_navigation(generation)
            self._ticker.start()
            self.connect()

        self._threaded(work, on_success, resume)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._ticker.stop()
        for timer in self._timers:
            timer.cancel()
        self._timers = []
        self._connect_generation += 1
        if self.transport is not None:
            try:
                self.transport.remove_listener(self._on_transport_event)
            except Exception:
                self.logger.exception("Failed to detach from transport")
        self.transport = None
        self.connection_state = ConnectionState.DISCONNECTED
        self._status_observers.clear()
        self._browser_observers.clear()
        self.logger.info("Session disposed")

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise RuntimeError("Session controller is disposed.")

    # Background work

    def _threaded(
        self,
        work: Callable[[], Any],
        on_success: Callable[[Any], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> Future:
        def _done(future: Future) -> None:
            try:
                result = future.result()
            except Exception as exc:
                self.logger.exception("Background session task failed")
                if on_error is not None:
                    self.dispatcher.post(lambda exc=exc: self._if_alive(on_error, exc))
                return
            if on_success is not None:
                self.dispatcher.post(lambda: self._if_alive(on_success, result))

        future = self.executor.submit(work)
        future.add_done_callback(_done)
        return future

    def _if_alive(self, callback: Callable[[Any], None], value: Any) -> None:
        if self._disposed:
            return
        callback(value)

    def _schedule(self, delay_seconds: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay_seconds, lambda: self.dispatcher.post(callback))
        timer.daemon = True
        self._timers = [value for value in self._timers if value.is_alive()]
        self._timers.append(timer)
        timer.start()
        return timer

    # Transport connection

    def connect(self) -> Future:
        """Request a transport handle; at most one request is outstanding."""
        self._ensure_alive()
        if self.connection_state is ConnectionState.CONNECTING and self._connect_future is not None:
            return self._connect_future
        if self.connection_state is ConnectionState.CONNECTED:
            ready: Future = Future()
            ready.set_result(self.transport)
            return ready

        self._connect_generation += 1
        generation = self._connect_generation
        self._connect_attempts += 1
        self.connection_state = ConnectionState.CONNECTING
        result: Future = Future()
        self._connect_future = result
        self.logger.info("Connecting to playback transport (attempt %s)", self._connect_attempts)

        request = self._threaded(
            self.transport_factory,
            lambda transport: self._finish_connect(generation, transport, None),
            lambda exc: self._finish_connect(generation, None, exc),
        )
        if not request.done():
            self._schedule(
                self.connect_timeout_seconds,
                lambda: self._on_connect_timeout(generation),
            )
        return result

    def _on_connect_timeout(self, generation: int) -> None:
        if generation != self._connect_generation or self._disposed:
            return
        if self.connection_state is not ConnectionState.CONNECTING:
            return
        self.logger.warning(
            "Playback transport did not connect within %.1fs",
            self.connect_timeout_seconds,
        )
        # A late handle for this generation is discarded.
        self._connect_generation += 1
        self._fail_connect(TimeoutError("Playback transport connection timed out."))

    def _finish_connect(
        self,
        generation: int,
        transport: PlaybackTransport | None,
        error: Exception | None,
    ) -> None:
        if generation != self._connect_generation:
            self.logger.warning("Discarding stale transport connection result")
            if transport is not None:
                self._release_transport(transport)
            return
        if error is not None or transport is None:
            self._fail_connect(error or RuntimeError("Transport factory returned nothing."))
            return
        future = self._connect_future
        self._connect_future = None
        self._connect_attempts = 0
        self._attach(transport)
        if future is not None and not future.done():
            future.set_result(transport)

    def _fail_connect(self, error: Exception) -> None:
        future = self._connect_future
        self._connect_future = None
        self.connection_state = ConnectionState.DISCONNECTED
        self.logger.error("Playback transport connection failed: %s", error)
        if future is not None and not future.done():
            future.set_exception(error)
        if self._connect_attempts <= self.connect_retries:
            self.logger.info(
                "Retrying transport connection in %.1fs",
                self.connect_retry_delay_seconds,
            )
            self._schedule(self.connect_retry_delay_seconds, self._retry_connect)
            return
        self._connect_attempts = 0
        self.hooks.notify("Player connection failed")

    def _retry_connect(self) -> None:
        if self._disposed or self.connection_state is not ConnectionState.DISCONNECTED:
            return
        self.connect()

    def _release_transport(self, transport: PlaybackTransport) -> None:
        close = getattr(transport, "close", None)
        if callable(close):
            try:
                close()
            except Exception:
                self.logger.exception("Failed to release stale transport")

    def _attach(self, transport: PlaybackTransport) -> None:
        self.transport = transport
        transport.add_listener(self._on_transport_event)
        self.connection_state = ConnectionState.CONNECTED
        self.logger.info("Playback transport connected")

        status = self._status
        self._command("set_shuffle", status.shuffle_mode)
        self._command("set_repeat_mode", status.repeat_mode)
        self._command("set_pause_at_end_of_queue", status.pause_at_end_of_queue)
        self._update_status(
            is_playing=bool(transport.is_playing()),
            duration_ms=max(0, int(transport.duration_ms())),
        )

        if transport.queue_snapshot():
            # The transport survived our restart: its queue wins.
            self._refresh_current_item(TransitionReason.UNKNOWN)
            self._refresh_queue(persist=False)
            return
        self._restore_last_queue(transport)

    def _restore_last_queue(self, transport: PlaybackTransport) -> None:
        def work() -> tuple[list[QueueItem], int]:
            return self.store.load_last_queue(), self.store.load_last_queue_index()

        def on_success(payload: tuple[list[QueueItem], int]) -> None:
            items, index = payload
            if self.transport is not transport:
                return
            if not items:
                self._update_status(loading=False)
                return
            start_index = max(0, min(len(items) - 1, index))
            self.logger.info("Restoring last queue: %s items at index %s", len(items), start_index)
            # The transport's queue events carry the restored queue into the status.
            self._restored_identity = queue_identity(items)
            if self._command("load_queue", items, start_index, 0):
                return
            self._restored_identity = None
            self.hooks.notify("Could not restore the last queue")
            self._refresh_queue(persist=False)

        def on_error(_exc: Exception) -> None:
            self._update_status(loading=False)

        self._threaded(work, on_success, on_error)

    # Transport events

    def _on_transport_event(self, event: TransportEvent) -> None:
        # Called on the transport's thread.
        self.dispatcher.post(lambda: self._handle_event(event))

    def _handle_event(self, event: TransportEvent) -> None:
        if self._disposed or self.transport is None:
            return
        if isinstance(event, PlayingChanged):
            self._update_status(is_playing=bool(event.is_playing))
        elif isinstance(event, CurrentItemChanged):
            self._refresh_current_item(event.reason)
            self._refresh_queue()
        elif isinstance(event, QueueChanged):
            self._refresh_queue()
        elif isinstance(event, ShuffleChanged):
            self._update_status(shuffle_mode=bool(event.enabled))
            self.store.save_shuffle_mode(event.enabled)
        elif isinstance(event, RepeatChanged):
            mode = RepeatMode.coerce(event.mode)
            self._update_status(repeat_mode=mode)
            self.store.save_repeat_mode(mode)
        elif isinstance(event, DurationChanged):
            self._update_status(duration_ms=max(0, int(event.duration_ms)))
        else:
            self.logger.warning("Ignoring unknown transport event: %r", event)

    def _refresh_current_item(self, reason: TransitionReason) -> None:
        transport = self.transport
        if transport is None:
            return
        item = transport.current_item()
        position_ms = 0
        if POSITION_SURVIVES_TRANSITION[reason]:
            position_ms = int(transport.current_position_ms())
        self._update_status(
            track_title=item.title if item is not None else DEFAULT_TRACK_TITLE,
            track_artist=item.artist if item is not None else None,
            artwork_bytes=item.artwork_bytes if item is not None else None,
            duration_ms=max(0, int(transport.duration_ms())),
            position_ms=max(0, position_ms),
            current_index=int(transport.current_index()),
        )
        if item is not None:
            self.logger.debug("Now playing (%s): %s", reason.value, item.location_token)

    def _refresh_queue(self, *, persist: bool = True) -> None:
        """Mirror the transport's queue; any report from it ends ``loading``."""
        transport = self.transport
        if transport is None:
            return
        snapshot = tuple(transport.queue_snapshot())
        identity = queue_identity(snapshot)
        changes: dict[str, Any] = {"current_index": int(transport.current_index()), "loading": False}
        write_queue = False
        if identity != queue_identity(self._status.queue):
            changes["queue"] = snapshot
            write_queue = persist and identity != self._restored_identity
            self._restored_identity = None
        self._update_status(**changes)
        if not persist:
            return
        if write_queue:
            self.store.save_last_queue(snapshot)
        self.store.save_last_queue_index(self._status.current_index)

    def _on_tick(self) -> None:
        transport = self.transport
        if self._disposed or transport is None:
            return
        try:
            if not transport.is_playing():
                return
            position_ms = int(transport.current_position_ms())
            duration_ms = int(transport.duration_ms())
        except Exception:
            self.logger.exception("Failed to read transport position")
            return
        self._update_status(position_ms=max(0, position_ms), duration_ms=max(0, duration_ms))

    # Navigation

    def _restore_navigation(self, generation: int) -> None:
        def work():
            persisted = self.store.load_path_stack()
            restored = validate_restored_stack(persisted, self.storage_provider.can_read, self.logger)
            last_folder = None
            if not restored:
                last_folder = self.store.load_last_folder()
                if last_folder is not None and not self._readable(last_folder[0]):
                    self.logger.warning("Last opened folder is not readable: %s", last_folder[0])
                    self.store.clear_last_folder()
                    last_folder = None
            return persisted, restored, last_folder

        def on_success(payload) -> None:
            persisted, restored, last_folder = payload
            if generation != self._browse_generation:
                self.logger.info("User navigated before restore finished; keeping live stack")
                return
            self.navigation.replace(restored)
            if len(restored) != len(persisted):
                if restored:
                    self.store.save_path_stack(restored)
                else:
                    self.store.clear_path_stack()
            if restored:
                top = self.navigation.top
                assert top is not None
                self.open_folder(top.location_token, top.name, push_to_stack=False)
            elif last_folder is not None:
                self.logger.info("Reopening last folder: %s", last_folder[0])
                self.open_folder(*last_folder)
            else:
                self._publish_view()

        self._threaded(work, on_success)

    def _readable(self, location_token: str) -> bool:
        try:
            return bool(self.storage_provider.can_read(location_token))
        except Exception:
            self.logger.exception("Read check failed for: %s", location_token)
            return False

    def open_folder(self, location_token: str, name: str, push_to_stack: bool = True) -> Future:
        self._ensure_alive()
        self._browse_generation += 1
        generation = self._browse_generation
        self.current_files = ()
        self._publish_view()

        def on_success(result: BrowseResult) -> None:
            if generation != self._browse_generation:
                self.logger.debug("Dropping superseded listing of %s", location_token)
                return
            self.current_files = tuple(result.items)
            if not result.ok:
                self.hooks.notify(f"Could not read folder: {name}")
            if push_to_stack:
                top = self.navigation.top
                parent = top.location_token if top is not None else ""
                self.navigation.push(FileItem(name, location_token, True, parent))
                self.store.save_path_stack(self.navigation.items)
            self.store.save_last_folder(location_token, name)
            self._publish_view()

        return self._threaded(lambda: self.browser.list(location_token), on_success)

    def navigate_back(self) -> bool:
        """Close the playlist overlay or step one folder up."""
        self._ensure_alive()
        if self.show_playlist:
            self.show_playlist = False
            self._publish_view()
            return True
        if self.navigation.is_empty:
            return False
        new_top = self.navigation.pop()
        self.store.save_path_stack(self.navigation.items)
        if new_top is None:
            self._browse_generation += 1
            self.current_files = ()
            self.store.clear_last_folder()
            self._publish_view()
            return True
        self.open_folder(new_top.location_token, new_top.name, push_to_stack=False)
        return True

    def toggle_playlist_view(self) -> None:
        self.show_playlist = not self.show_playlist
        self._publish_view()

    # Queue building

    def play_file(self, selected: FileItem, all_files_in_view: Iterable[FileItem]) -> Future | None:
        self._ensure_alive()
        audio_files = [item for item in all_files_in_view if not item.is_directory]
        start_index = next(
            (
                index
                for index, item in enumerate(audio_files)
                if item.location_token == selected.location_token
            ),
            -1,
        )
        if start_index == -1:
            self.logger.warning("Selected file is not in the current view: %s", selected.location_token)
            return None

        def on_success(items: list[QueueItem]) -> None:
            if self._command("load_queue", items, start_index, 0):
                self._command("play")

        return self._threaded(lambda: self.queue_builder.build(audio_files), on_success)

    def play_folder_recursive(self, location_token: str, replace: bool = True) -> Future:
        self._ensure_alive()

        def work() -> list[QueueItem]:
            return self.queue_builder.build(self.browser.list_recursive(location_token))

        def on_success(items: list[QueueItem]) -> None:
            if not items:
                self.hooks.notify(NO_AUDIO_FILES_FOUND)
                return
            self.logger.info(
                "%s %s items from %s",
                "Playing" if replace else "Appending",
                len(items),
                location_token,
            )
            if replace:
                if self._command("load_queue", items, 0, 0):
                    self._command("play")
            else:
                self._command("add_items", items)

        return self._threaded(work, on_success)

    def add_folder_recursive(self, location_token: str) -> Future:
        return self.play_folder_recursive(location_token, replace=False)

    # Transport commands

    def _command(self, name: str, *args: Any) -> bool:
        transport = self.transport
        if transport is None:
            self.logger.info("Ignoring %s: player is not connected", name)
            return False
        try:
            getattr(transport, name)(*args)
        except Exception:
            self.logger.exception("Transport command failed: %s", name)
            return False
        return True

    def play_queue_item(self, index: int) -> None:
        if self._command("play_index", int(index)):
            self._command("play")

    def remove_queue_item(self, index: int) -> None:
        self._command("remove_item", int(index))

    def toggle_shuffle(self) -> None:
        if self.transport is None:
            return
        self._command("set_shuffle", not bool(self.transport.shuffle_mode()))

    def toggle_repeat(self) -> None:
        if self.transport is None:
            return
        current = RepeatMode.coerce(self.transport.repeat_mode())
        self._command("set_repeat_mode", current.next())

    def toggle_pause_at_end_of_queue(self) -> None:
        # The transport has no event for this flag.
        enabled = not self._status.pause_at_end_of_queue
        self._command("set_pause_at_end_of_queue", enabled)
        self._update_status(pause_at_end_of_queue=enabled)
        self.store.save_pause_at_end_of_queue(enabled)

    def seek_to(self, position_ms: int) -> None:
        self._command("seek", max(0, int(position_ms)))

    def skip_next(self) -> None:
        self._command("next")

    def skip_prev(self) -> None:
        self._command("previous")

    def toggle_play_pause(self) -> None:
        if self.transport is None:
            return
        self._command("pause" if self.transport.is_playing() else "play")

    # Bookmarks

    def add_bookmark(self, location_token: str, display_name: str | None = None) -> MediaPlace | None:
        self._ensure_alive()
        try:
            self.storage_provider.grant_access(location_token)
        except Exception:
            self.logger.exception("Failed to grant access for: %s", location_token)
        if not self._readable(location_token):
            self.hooks.notify(f"Cannot read location: {location_token}")
            return None
        name = display_name or _last_segment(location_token) or UNKNOWN_NAME
        place = self.registry.add(location_token, name)
        self._publish_view()
        return place

    def remove_bookmark(self, place: MediaPlace) -> bool:
        self._ensure_alive()
        removed = self.registry.remove(place)
        if removed:
            self._publish_view()
        return removed


def _last_segment(location_token: str) -> str:
    trimmed = str(location_token or "").rstrip("/\\")
    for separator in ("/", "\\", ":"):
        trimmed = trimmed.rsplit(separator, 1)[-1]
    return trimmed
