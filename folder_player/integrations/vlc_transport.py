"""libVLC backed playback transport."""

from __future__ import annotations

import logging
import os
import random
import sys
import threading
from typing import Callable, Sequence

from ..application.ports import (
    CurrentItemChanged,
    DurationChanged,
    PlayingChanged,
    QueueChanged,
    RepeatChanged,
    ShuffleChanged,
    TransportEvent,
    TransportListener,
)
from ..domain.models import QueueItem, RepeatMode, TransitionReason

try:
    import vlc as _vlc
except Exception:  # pragma: no cover - dependency optional at import time
    _vlc = None

logger = logging.getLogger(__name__)

# Within this many ms of the start, "previous" moves to the previous item.
_PREVIOUS_RESTARTS_AFTER_MS = 3000


class VlcPlaybackTransport:
    """Queue, shuffle and repeat handling around a single libVLC media player.

    With ``pause_at_end_of_queue`` enabled every finished item cues the next one
    without starting it, like a sleep timer that stops at the end of a chapter.
    """

    def __init__(
        self,
        *,
        vlc_module=None,
        platform_name: str | None = None,
        path_resolver: Callable[[str], str] | None = None,
        logger_instance=None,
        rng: random.Random | None = None,
    ) -> None:
        self._vlc = vlc_module if vlc_module is not None else _vlc
        if self._vlc is None:
            raise RuntimeError("python-vlc is not available")
        self.logger = logger_instance or logger
        self.path_resolver = path_resolver or (lambda token: token)
        self._rng = rng or random.Random()
        platform_value = platform_name if platform_name is not None else sys.platform
        args = ["--no-xlib", "--no-video"] if str(platform_value).startswith("linux") else ["--no-video"]
        self.instance = self._vlc.Instance(args)
        self.player = self.instance.media_player_new()
        self.media = None

        self._lock = threading.RLock()
        # libVLC callbacks only take these two, never _lock.
        self._listener_lock = threading.Lock()
        self._playing_lock = threading.Lock()
        self._listeners: list[TransportListener] = []
        self._items: list[QueueItem] = []
        self._order: list[int] = []
        self._index = -1
        self._shuffle = False
        self._repeat = RepeatMode.OFF
        self._pause_at_end = False
        self._playing = False
        self._pending_seek_ms = 0
        self._attach_player_events()

    def _attach_player_events(self) -> None:
        event_type = self._vlc.EventType
        manager = self.player.event_manager()
        manager.event_attach(event_type.MediaPlayerPlaying, self._on_vlc_playing)
        manager.event_attach(event_type.MediaPlayerPaused, self._on_vlc_stopped)
        manager.event_attach(event_type.MediaPlayerStopped, self._on_vlc_stopped)
        manager.event_attach(event_type.MediaPlayerEndReached, self._on_vlc_end_reached)
        manager.event_attach(event_type.MediaPlayerLengthChanged, self._on_vlc_length_changed)

    # Listeners

    def add_listener(self, listener: TransportListener) -> None:
        with self._listener_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: TransportListener) -> None:
        with self._listener_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _emit(self, *events: TransportEvent) -> None:
        with self._listener_lock:
            listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    self.logger.exception("Transport listener failed")

    # libVLC callbacks; they run on libVLC's event thread.

    def _on_vlc_playing(self, _event) -> None:
        self._set_playing(True)

    def _on_vlc_stopped(self, _event) -> None:
        self._set_playing(False)

    def _on_vlc_length_changed(self, event) -> None:
        length = getattr(getattr(event, "u", None), "new_length", 0)
        self._emit(DurationChanged(max(0, int(length or 0))))

    def _on_vlc_end_reached(self, _event) -> None:
        # libVLC must not be called back from its own event thread.
        threading.Thread(
            target=self._advance_after_end,
            name="vlc-advance",
            daemon=True,
        ).start()

    def _set_playing(self, playing: bool) -> None:
        with self._playing_lock:
            if self._playing == playing:
                return
            self._playing = playing
        self._emit(PlayingChanged(playing))

    def _advance_after_end(self) -> None:
        try:
            with self._lock:
                if self._index < 0:
                    return
                if self._repeat is RepeatMode.ONE:
                    target = self._index
                else:
                    target = self._neighbor(1, wrap=self._repeat is RepeatMode.ALL)
                if target is None:
                    self._pending_seek_ms = 0
                    autoplay = False
                else:
                    autoplay = self._load_locked(target) and not self._pause_at_end
            self._set_playing(False)
            if target is None:
                return
            self._emit(CurrentItemChanged(TransitionReason.AUTO))
            if autoplay:
                self.play()
        except Exception:
            self.logger.exception("Failed to advance after end of item")

    # Queue helpers

    def _rebuild_order_locked(self) -> None:
        indexes = list(range(len(self._items)))
        if not self._shuffle:
            self._order = indexes
            return
        rest = [index for index in indexes if index != self._index]
        self._rng.shuffle(rest)
        self._order = ([self._index] if self._index >= 0 else []) + rest

    def _neighbor(self, step: int, *, wrap: bool) -> int | None:
        if self._index < 0 or not self._order:
            return None
        position = self._order.index(self._index) + step
        if 0 <= position < len(self._order):
            return self._order[position]
        if wrap:
            return self._order[position % len(self._order)]
        return None

    def _is_playable_locked(self, index: int) -> bool:
        return os.path.isfile(self.path_resolver(self._items[index].location_token))

    def _nearest_playable_locked(self, index: int) -> int | None:
        count = len(self._items)
        for distance in range(count):
            for candidate in (index + distance, index - distance):
                if 0 <= candidate < count and self._is_playable_locked(candidate):
                    return candidate
        return None

    def _load_locked(self, index: int) -> bool:
        """Cue the existing file nearest to ``index``; False when none is left."""
        self._release_media_locked()
        if not self._items:
            self._index = -1
            return False
        index = max(0, min(len(self._items) - 1, int(index)))
        target = self._nearest_playable_locked(index)
        if target is None:
            self.logger.warning("No playable file left in a queue of %s items", len(self._items))
            self._index = index
            return False
        if target != index:
            self.logger.warning(
                "Skipping missing file: %s",
                self._items[index].location_token,
            )
        path = self.path_resolver(self._items[target].location_token)
        media = self.instance.media_new(os.path.abspath(path))
        self.player.set_media(media)
        self.media = media
        self._index = target
        return True

    def _release_media_locked(self) -> None:
        if self.media is not None:
            try:
                self.media.release()
            except Exception:
                pass
            self.media = None

    def _clear_locked(self) -> None:
        self.player.stop()
        self._release_media_locked()
        self._index = -1
        self._pending_seek_ms = 0

    def _move_to(self, index: int, reason: TransitionReason) -> None:
        with self._lock:
            was_playing = bool(self.player.is_playing())
            self._pending_seek_ms = 0
            loaded = self._load_locked(index)
        self._emit(CurrentItemChanged(reason))
        if was_playing and loaded:
            self.play()

    # Commands

    def load_queue(
        self,
        items: Sequence[QueueItem],
        start_index: int,
        start_position_ms: int = 0,
    ) -> None:
        with self._lock:
            self._items = list(items)
            self._clear_locked()
            if self._items:
                requested = max(0, min(len(self._items) - 1, int(start_index)))
                # A skipped start file also drops its resume position.
                if self._load_locked(requested) and self._index == requested:
                    self._pending_seek_ms = max(0, int(start_position_ms))
            self._rebuild_order_locked()
        self._emit(QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED))

    def play(self) -> None:
        with self._lock:
            if self._index < 0:
                return
            if self.media is None and not self._load_locked(self._index):
                raise FileNotFoundError("No playable file left in the queue.")
            rc = int(self.player.play())
            if rc == -1:
                raise RuntimeError("VLC failed to start playback.")
            if self._pending_seek_ms > 0:
                # VLC may ignore the seek until playback has started.
                self.player.set_time(self._pending_seek_ms)
                self._pending_seek_ms = 0

    def pause(self) -> None:
        self.player.set_pause(1)

    def seek(self, position_ms: int) -> None:
        with self._lock:
            if self.media is None:
                return
            target = max(0, int(position_ms))
            if not self.player.is_playing():
                self._pending_seek_ms = target
            self.player.set_time(target)

    def next(self) -> None:
        with self._lock:
            target = self._neighbor(1, wrap=self._repeat is RepeatMode.ALL)
        if target is not None:
            self._move_to(target, TransitionReason.SKIP)

    def previous(self) -> None:
        if self.current_position_ms() > _PREVIOUS_RESTARTS_AFTER_MS:
            self.seek(0)
            return
        with self._lock:
            target = self._neighbor(-1, wrap=self._repeat is RepeatMode.ALL)
        if target is None:
            self.seek(0)
            return
        self._move_to(target, TransitionReason.SKIP)

    def play_index(self, index: int) -> None:
        with self._lock:
            if not 0 <= int(index) < len(self._items):
                raise IndexError(f"Queue index out of range: {index}")
        self._move_to(int(index), TransitionReason.SEEK)

    def set_shuffle(self, enabled: bool) -> None:
        with self._lock:
            if self._shuffle == bool(enabled):
                return
            self._shuffle = bool(enabled)
            self._rebuild_order_locked()
        self._emit(ShuffleChanged(bool(enabled)))

    def set_repeat_mode(self, mode: RepeatMode) -> None:
        mode = RepeatMode.coerce(mode)
        with self._lock:
            if self._repeat is mode:
                return
            self._repeat = mode
        self._emit(RepeatChanged(mode))

    def set_pause_at_end_of_queue(self, enabled: bool) -> None:
        with self._lock:
            self._pause_at_end = bool(enabled)

    def add_items(self, items: Sequence[QueueItem]) -> None:
        if not items:
            return
        with self._lock:
            was_empty = not self._items
            self._items.extend(items)
            if was_empty:
                self._load_locked(0)
            self._rebuild_order_locked()
        if was_empty:
            self._emit(QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED))
        else:
            self._emit(QueueChanged())

    def remove_item(self, index: int) -> None:
        index = int(index)
        with self._lock:
            if not 0 <= index < len(self._items):
                return
            removing_current = index == self._index
            resume = bool(self.player.is_playing())
            del self._items[index]
            if not self._items:
                self._clear_locked()
            elif removing_current:
                self.player.stop()
                resume = self._load_locked(index) and resume
            elif index < self._index:
                self._index -= 1
            self._rebuild_order_locked()
        if removing_current:
            self._emit(QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED))
            if resume:
                self.play()
        else:
            self._emit(QueueChanged())

    # Accessors

    def current_position_ms(self) -> int:
        return max(0, int(self.player.get_time() or 0))

    def duration_ms(self) -> int:
        return max(0, int(self.player.get_length() or 0))

    def is_playing(self) -> bool:
        return bool(self.player.is_playing())

    def current_index(self) -> int:
        with self._lock:
            return self._index

    def current_item(self) -> QueueItem | None:
        with self._lock:
            if self._index < 0:
                return None
            return self._items[self._index]

    def queue_snapshot(self) -> list[QueueItem]:
        with self._lock:
            return list(self._items)

    def shuffle_mode(self) -> bool:
        with self._lock:
            return self._shuffle

    def repeat_mode(self) -> RepeatMode:
        with self._lock:
            return self._repeat

    def close(self) -> None:
        try:
            self.player.stop()
        except Exception:
            pass
        with self._listener_lock:
            self._listeners.clear()
        with self._lock:
            self._release_media_locked()
        try:
            self.player.release()
        except Exception:
            pass
        try:
            self.instance.release()
        except Exception:
            pass
