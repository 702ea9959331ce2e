"""Local filesystem implementation of the storage provider port."""

from __future__ import annotations

import os

from ..application.ports import StorageEntry
from ..domain.audio_files import guess_media_type


class LocalStorageProvider:
    """Location tokens are absolute filesystem paths.

    The filesystem has no revocable grants; granting only checks that the
    folder exists.
    """

    def __init__(self, logger) -> None:
        self.logger = logger

    @staticmethod
    def _normalize(location_token: str) -> str:
        return os.path.abspath(os.path.expanduser(str(location_token or "")))

    def list(self, location_token: str) -> list[StorageEntry]:
        folder = self._normalize(location_token)
        entries: list[StorageEntry] = []
        with os.scandir(folder) as iterator:
            for entry in iterator:
                try:
                    is_directory = entry.is_dir()
                    if not is_directory and not entry.is_file():
                        # Broken links and special files.
                        continue
                except OSError:
                    self.logger.debug("Skipping unreadable entry: %s", entry.path)
                    continue
                entries.append(
                    StorageEntry(
                        name=entry.name,
                        token=os.path.abspath(entry.path),
                        is_directory=is_directory,
                        media_type=None if is_directory else guess_media_type(entry.name),
                    )
                )
        return entries

    def grant_access(self, location_token: str) -> None:
        path = self._normalize(location_token)
        if not os.path.isdir(path):
            raise FileNotFoundError(f"Folder does not exist: {path}")
        self.logger.debug("Access granted: %s", path)

    def revoke_access(self, location_token: str) -> None:
        self.logger.debug("Access revoked: %s", self._normalize(location_token))

    def can_read(self, location_token: str) -> bool:
        """True only for folders this process can enumerate."""
        path = self._normalize(location_token)
        return os.path.isdir(path) and os.access(path, os.R_OK | os.X_OK)
