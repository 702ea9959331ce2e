"""Application layer orchestration.

``bootstrap`` is imported directly by callers; it depends on the integrations
package, which in turn depends on the ports defined here.
"""

from .context import SessionContext
from .dispatcher import MainThreadDispatcher, PositionTicker
from .folder_browser import BrowseResult, FolderBrowser
from .ports import PlaybackTransport, StorageEntry, StorageProvider
from .queue_builder import QueueBuilder
from .session_controller import BrowserView, ConnectionState, SessionController
from .session_hooks import SessionHooks

__all__ = [
    "BrowseResult",
    "BrowserView",
    "ConnectionState",
    "FolderBrowser",
    "MainThreadDispatcher",
    "PlaybackTransport",
    "PositionTicker",
    "QueueBuilder",
    "SessionContext",
    "SessionController",
    "SessionHooks",
    "StorageEntry",
    "StorageProvider",
]
