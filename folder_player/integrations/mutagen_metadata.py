"""Tag and embedded artwork reading with mutagen."""

from __future__ import annotations

import base64
from typing import Any, Callable

import mutagen
from mutagen.flac import Picture
from mutagen.id3 import ID3
from mutagen.mp4 import MP4

from ..domain.models import TrackMetadata


def _first(values: Any) -> str | None:
    if not values:
        return None
    if isinstance(values, (list, tuple)):
        value = values[0]
    else:
        value = values
    text = str(value).strip()
    return text or None


def extract_artwork(audio: Any) -> bytes | None:
    """Front cover bytes from ID3, MP4, FLAC or Vorbis comment pictures."""
    if audio is None:
        return None
    tags = getattr(audio, "tags", None)
    if isinstance(tags, ID3):
        frames = tags.getall("APIC")
        if frames:
            front = [frame for frame in frames if getattr(frame, "type", None) == 3]
            return bytes((front or frames)[0].data)
        return None
    if isinstance(audio, MP4):
        covers = tags.get("covr") if tags is not None else None
        if covers:
            return bytes(covers[0])
        return None
    pictures = getattr(audio, "pictures", None)
    if pictures:
        return bytes(pictures[0].data)
    if tags is not None and hasattr(tags, "get"):
        encoded = tags.get("metadata_block_picture")
        if encoded:
            try:
                return bytes(Picture(base64.b64decode(encoded[0])).data)
            except Exception:
                return None
    return None


class MutagenMetadataReader:
    """Callable ``location_token -> TrackMetadata``.

    Raises when the file cannot be parsed; callers degrade to a fallback title.
    """

    def __init__(self, path_resolver: Callable[[str], str] | None = None) -> None:
        self.path_resolver = path_resolver or (lambda token: token)

    def __call__(self, location_token: str) -> TrackMetadata:
        path = self.path_resolver(location_token)
        easy = mutagen.File(path, easy=True)
        if easy is None:
            raise ValueError(f"Unsupported audio file: {path}")
        tags = easy.tags or {}
        artwork = extract_artwork(mutagen.File(path))
        return TrackMetadata(
            title=_first(tags.get("title")),
            artist=_first(tags.get("artist")),
            album_title=_first(tags.get("album")),
            album_artist=_first(tags.get("albumartist")),
            artwork_bytes=artwork,
        )
