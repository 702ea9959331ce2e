"""Folder listing over a storage provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..constants import DEFAULT_AUDIO_EXTENSIONS, HIDDEN_NAME_PREFIX, UNKNOWN_NAME
from ..domain.audio_files import is_audio_file, is_hidden, sort_file_items
from ..domain.models import FileItem
from .ports import StorageEntry, StorageProvider


@dataclass(frozen=True)
class BrowseResult:
    items: list[FileItem] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FolderBrowser:
    def __init__(
        self,
        storage_provider: StorageProvider,
        logger,
        *,
        audio_extensions: Iterable[str] = DEFAULT_AUDIO_EXTENSIONS,
        hidden_prefix: str = HIDDEN_NAME_PREFIX,
    ) -> None:
        self.storage_provider = storage_provider
        self.logger = logger
        self.audio_extensions = tuple(audio_extensions)
        self.hidden_prefix = hidden_prefix

    def list(self, location_token: str) -> BrowseResult:
        """Visible subfolders and audio files, folders first then by name."""
        try:
            entries = self.storage_provider.list(location_token)
        except Exception as exc:
            self.logger.exception("Failed to list folder: %s", location_token)
            return BrowseResult([], str(exc) or exc.__class__.__name__)

        items: list[FileItem] = []
        for entry in entries:
            item = self._to_file_item(entry, location_token)
            if item is not None:
                items.append(item)
        return BrowseResult(sort_file_items(items), None)

    def list_recursive(self, location_token: str) -> list[FileItem]:
        """Depth-first audio files below ``location_token``.

        Hidden folders are not entered. The provider exposes a strict tree, so
        there is no cycle detection and no depth limit.
        """
        try:
            entries = self.storage_provider.list(location_token)
        except Exception:
            self.logger.warning("Skipping unreadable folder: %s", location_token, exc_info=True)
            return []

        files: list[FileItem] = []
        for entry in sorted(entries, key=lambda value: str(value.name or "").lower()):
            if is_hidden(entry.name, self.hidden_prefix):
                continue
            if entry.is_directory:
                files.extend(self.list_recursive(entry.token))
                continue
            item = self._to_file_item(entry, location_token)
            if item is not None:
                files.append(item)
        return files

    def _to_file_item(self, entry: StorageEntry, parent_token: str) -> FileItem | None:
        name = str(entry.name or "")
        if not entry.token:
            return None
        if is_hidden(name, self.hidden_prefix):
            return None
        if not entry.is_directory and not is_audio_file(
            name,
            entry.media_type,
            extensions=self.audio_extensions,
        ):
            return None
        return FileItem(
            name=name or UNKNOWN_NAME,
            location_token=entry.token,
            is_directory=bool(entry.is_directory),
            parent_location_token=parent_token,
        )
