"""Application-level ports for storage access and playback transport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence, Union

from ..domain.models import QueueItem, RepeatMode, TrackMetadata, TransitionReason


@dataclass(frozen=True)
class StorageEntry:
    """One child of a location as reported by a storage provider."""

    name: str
    token: str
    is_directory: bool
    media_type: str | None = None


class StorageProvider(Protocol):
    """Port abstraction over a tree of readable locations.

    The tree is assumed acyclic; recursive listing relies on it.
    """

    def list(self, location_token: str) -> list[StorageEntry]: ...

    def grant_access(self, location_token: str) -> None: ...

    def revoke_access(self, location_token: str) -> None: ...

    def can_read(self, location_token: str) -> bool: ...


@dataclass(frozen=True)
class PlayingChanged:
    is_playing: bool


@dataclass(frozen=True)
class CurrentItemChanged:
    reason: TransitionReason = TransitionReason.UNKNOWN


@dataclass(frozen=True)
class QueueChanged:
    pass


@dataclass(frozen=True)
class ShuffleChanged:
    enabled: bool


@dataclass(frozen=True)
class RepeatChanged:
    mode: RepeatMode


@dataclass(frozen=True)
class DurationChanged:
    """The current item's length became known or changed."""

    duration_ms: int


TransportEvent = Union[
    PlayingChanged,
    CurrentItemChanged,
    QueueChanged,
    ShuffleChanged,
    RepeatChanged,
    DurationChanged,
]
TransportListener = Callable[[TransportEvent], None]


class PlaybackTransport(Protocol):
    """Port abstraction for the engine that owns the decode/output queue.

    Listeners may be invoked from any thread, in emission order.
    """

    def load_queue(
        self,
        items: Sequence[QueueItem],
        start_index: int,
        start_position_ms: int = 0,
    ) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, position_ms: int) -> None: ...

    def next(self) -> None: ...

    def previous(self) -> None: ...

    def play_index(self, index: int) -> None: ...

    def set_shuffle(self, enabled: bool) -> None: ...

    def set_repeat_mode(self, mode: RepeatMode) -> None: ...

    def set_pause_at_end_of_queue(self, enabled: bool) -> None: ...

    def add_items(self, items: Sequence[QueueItem]) -> None: ...

    def remove_item(self, index: int) -> None: ...

    def current_position_ms(self) -> int: ...

    def duration_ms(self) -> int: ...

    def is_playing(self) -> bool: ...

    def current_index(self) -> int: ...

    def current_item(self) -> QueueItem | None: ...

    def queue_snapshot(self) -> list[QueueItem]: ...

    def shuffle_mode(self) -> bool: ...

    def repeat_mode(self) -> RepeatMode: ...

    def add_listener(self, listener: TransportListener) -> None: ...

    def remove_listener(self, listener: TransportListener) -> None: ...


TransportFactory = Callable[[], PlaybackTransport]
MetadataReader = Callable[[str], TrackMetadata]
