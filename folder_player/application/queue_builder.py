"""Queue construction with per-file metadata resolution."""

from __future__ import annotations

from typing import Callable, Iterable

from ..domain.models import FileItem, QueueItem
from .ports import MetadataReader


def _file_name(item: FileItem) -> str:
    return item.name


class QueueBuilder:
    """Turns file items into queue entries.

    This is the only place where tags are read. A file whose tags cannot be
    read still enters the queue under its fallback title.
    """

    def __init__(self, metadata_reader: MetadataReader, logger) -> None:
        self.metadata_reader = metadata_reader
        self.logger = logger

    def build(
        self,
        files: Iterable[FileItem],
        fallback_title: Callable[[FileItem], str] = _file_name,
    ) -> list[QueueItem]:
        items: list[QueueItem] = []
        for file_item in files:
            if file_item.is_directory:
                continue
            items.append(self._build_one(file_item, fallback_title(file_item)))
        return items

    def _build_one(self, file_item: FileItem, fallback: str) -> QueueItem:
        try:
            metadata = self.metadata_reader(file_item.location_token)
        except Exception as exc:
            self.logger.debug(
                "Metadata unavailable for %s: %s",
                file_item.location_token,
                exc,
            )
            return QueueItem(location_token=file_item.location_token, title=fallback)
        title = str(metadata.title or "").strip() or fallback
        return QueueItem(
            location_token=file_item.location_token,
            title=title,
            artist=metadata.artist or None,
            album_title=metadata.album_title or None,
            album_artist=metadata.album_artist or None,
            artwork_bytes=metadata.artwork_bytes or None,
        )
