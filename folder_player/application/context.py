"""Runtime dependency container for the session engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..config import AppConfig
    from .bootstrap import SessionServices


@dataclass
class SessionContext:
    """Holds runtime dependencies assembled at startup."""

    config: "AppConfig"
    logger: Any
    store: Any = None
    storage_provider: Any = None
    registry: Any = None
    dispatcher: Any = None
    executor: Any = None
    controller: Any = None

    def bind_services(self, services: "SessionServices") -> None:
        self.store = services.store
        self.storage_provider = services.storage_provider
        self.registry = services.registry
        self.dispatcher = services.dispatcher
        self.executor = services.executor
        self.controller = services.controller

    def close(self) -> None:
        """Dispose the controller, stop the worker pool, flush state, stop the dispatcher."""
        if self.controller is not None:
            transport = self.controller.transport
            try:
                self.controller.dispose()
            except Exception:
                self.logger.exception("Session dispose failed")
            close = getattr(transport, "close", None)
            if callable(close):
                try:
                    close()
                except Exception:
                    self.logger.exception("Transport close failed")
        if self.executor is not None:
            self.executor.shutdown(wait=False, cancel_futures=True)
        close_store = getattr(self.store, "close", None)
        if callable(close_store):
            try:
                close_store()
            except Exception:
                self.logger.exception("Session state close failed")
        if self.dispatcher is not None:
            self.dispatcher.close()
