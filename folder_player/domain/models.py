"""Value types shared by the session engine."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Mapping

from ..constants import DEFAULT_TRACK_TITLE


class RepeatMode(IntEnum):
    OFF = 0
    ALL = 1
    ONE = 2

    def next(self) -> "RepeatMode":
        order = (RepeatMode.OFF, RepeatMode.ALL, RepeatMode.ONE)
        return order[(order.index(self) + 1) % len(order)]

    @classmethod
    def coerce(cls, value: Any) -> "RepeatMode":
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.OFF


class TransitionReason(Enum):
    """Why the transport moved to another current item."""

    AUTO = "auto"
    SEEK = "seek"
    SKIP = "skip"
    QUEUE_REPLACED = "queue_replaced"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class MediaPlace:
    """A bookmarked root location."""

    location_token: str
    display_name: str

    def to_payload(self) -> dict[str, str]:
        return {"location_token": self.location_token, "display_name": self.display_name}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MediaPlace":
        token = str(payload["location_token"])
        return cls(location_token=token, display_name=str(payload.get("display_name") or token))


@dataclass(frozen=True)
class FileItem:
    name: str
    location_token: str
    is_directory: bool
    parent_location_token: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "location_token": self.location_token,
            "is_directory": self.is_directory,
            "parent_location_token": self.parent_location_token,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "FileItem":
        return cls(
            name=str(payload["name"]),
            location_token=str(payload["location_token"]),
            is_directory=bool(payload.get("is_directory", True)),
            parent_location_token=str(payload.get("parent_location_token") or ""),
        )


@dataclass(frozen=True)
class QueueItem:
    """One playable entry; built once when it enters a queue."""

    location_token: str
    title: str
    artist: str | None = None
    album_title: str | None = None
    album_artist: str | None = None
    artwork_bytes: bytes | None = None

    def to_payload(self) -> dict[str, Any]:
        artwork = None
        if self.artwork_bytes:
            artwork = base64.b64encode(self.artwork_bytes).decode("ascii")
        return {
            "location_token": self.location_token,
            "title": self.title,
            "artist": self.artist,
            "album_title": self.album_title,
            "album_artist": self.album_artist,
            "artwork": artwork,
        }

    def with_artwork(self, artwork_bytes: bytes | None) -> "QueueItem":
        return replace(self, artwork_bytes=artwork_bytes)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "QueueItem":
        token = str(payload["location_token"])
        artwork_bytes = None
        raw_artwork = payload.get("artwork")
        if raw_artwork:
            try:
                artwork_bytes = base64.b64decode(str(raw_artwork), validate=True)
            except (binascii.Error, ValueError):
                artwork_bytes = None
        return cls(
            location_token=token,
            title=str(payload.get("title") or token),
            artist=_optional_str(payload.get("artist")),
            album_title=_optional_str(payload.get("album_title")),
            album_artist=_optional_str(payload.get("album_artist")),
            artwork_bytes=artwork_bytes,
        )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def queue_identity(queue) -> tuple[str, ...]:
    """Ordered location tokens; the only thing queue change detection looks at."""
    return tuple(item.location_token for item in queue)


@dataclass(frozen=True)
class PlayerStatus:
    """Consolidated snapshot observed by the UI.

    Instances are never mutated; use ``with_changes`` to derive a new one.
    ``position_ms`` is excluded from equality so that observers are only
    notified about it by the periodic tick.
    """

    track_title: str = DEFAULT_TRACK_TITLE
    track_artist: str | None = None
    artwork_bytes: bytes | None = None
    is_playing: bool = False
    shuffle_mode: bool = False
    repeat_mode: RepeatMode = RepeatMode.OFF
    pause_at_end_of_queue: bool = False
    duration_ms: int = 0
    position_ms: int = field(default=0, compare=False)
    queue: tuple[QueueItem, ...] = ()
    current_index: int = -1
    loading: bool = True

    def with_changes(self, **changes: Any) -> "PlayerStatus":
        return replace(self, **changes).normalized()

    def normalized(self) -> "PlayerStatus":
        queue = tuple(self.queue)
        index = int(self.current_index)
        if not queue:
            index = -1
        else:
            index = max(0, min(len(queue) - 1, index))
        duration = max(0, int(self.duration_ms))
        position = max(0, int(self.position_ms))
        if duration > 0:
            position = min(position, duration)
        if (
            queue is self.queue
            and index == self.current_index
            and duration == self.duration_ms
            and position == self.position_ms
        ):
            return self
        return replace(
            self,
            queue=queue,
            current_index=index,
            duration_ms=duration,
            position_ms=position,
        )

    @property
    def current_item(self) -> QueueItem | None:
        if self.current_index < 0:
            return None
        return self.queue[self.current_index]


@dataclass(frozen=True)
class TrackMetadata:
    """Tag values resolved from an audio file."""

    title: str | None = None
    artist: str | None = None
    album_title: str | None = None
    album_artist: str | None = None
    artwork_bytes: bytes | None = None
