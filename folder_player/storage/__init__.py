"""Storage layer for session state and bookmarks."""

from .place_registry import MediaPlaceRegistry
from .session_store import PersistedSettings, SessionStore

__all__ = [
    "MediaPlaceRegistry",
    "PersistedSettings",
    "SessionStore",
]
