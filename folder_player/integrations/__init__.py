"""Adapters for the local filesystem, mutagen tags and libVLC playback."""

from .local_storage import LocalStorageProvider
from .mutagen_metadata import MutagenMetadataReader, extract_artwork
from .vlc_transport import VlcPlaybackTransport

__all__ = [
    "LocalStorageProvider",
    "MutagenMetadataReader",
    "VlcPlaybackTransport",
    "extract_artwork",
]
