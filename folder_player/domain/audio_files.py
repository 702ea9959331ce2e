"""Audio file recognition and listing order."""

from __future__ import annotations

import mimetypes
import os
from typing import Iterable

from ..constants import AUDIO_MEDIA_TYPE_PREFIX, DEFAULT_AUDIO_EXTENSIONS, HIDDEN_NAME_PREFIX
from .models import FileItem


def is_hidden(name: str, hidden_prefix: str = HIDDEN_NAME_PREFIX) -> bool:
    return str(name or "").startswith(hidden_prefix)


def guess_media_type(name: str) -> str | None:
    media_type, _encoding = mimetypes.guess_type(str(name or ""), strict=False)
    return media_type


def is_audio_file(
    name: str,
    media_type: str | None = None,
    *,
    extensions: Iterable[str] = DEFAULT_AUDIO_EXTENSIONS,
) -> bool:
    """Either a declared ``audio/*`` media type or an allow-listed extension."""
    declared = media_type if media_type else guess_media_type(name)
    if declared and declared.lower().startswith(AUDIO_MEDIA_TYPE_PREFIX):
        return True
    _root, extension = os.path.splitext(str(name or "").lower())
    return bool(extension) and extension in tuple(extensions)


def sort_file_items(items: Iterable[FileItem]) -> list[FileItem]:
    return sorted(items, key=lambda item: (not item.is_directory, item.name.lower()))
