"""Application bootstrap assembly for storage, transport and session services."""
from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass

from ..config import AppConfig
from ..integrations.local_storage import LocalStorageProvider
from ..integrations.mutagen_metadata import MutagenMetadataReader
from ..integrations.vlc_transport import VlcPlaybackTransport
from ..storage.place_registry import MediaPlaceRegistry
from ..storage.session_store import SessionStore
from .dispatcher import MainThreadDispatcher
from .folder_browser import FolderBrowser
from .ports import MetadataReader, StorageProvider, TransportFactory
from .queue_builder import QueueBuilder
from .session_controller import SessionController
from .session_hooks import SessionHooks


@dataclass(frozen=True)
class SessionServices:
    store: SessionStore
    storage_provider: StorageProvider
    registry: MediaPlaceRegistry
    browser: FolderBrowser
    queue_builder: QueueBuilder
    dispatcher: MainThreadDispatcher
    executor: Executor
    controller: SessionController


def build_transport_factory(config: AppConfig, logger) -> TransportFactory:
    """Create the libVLC transport factory, or one that always fails when disabled."""
    if config.vlc_enabled:

        def _vlc_transport():
            return VlcPlaybackTransport(logger_instance=logger)

        return _vlc_transport

    logger.warning("VLC_ENABLED is off; the player will stay disconnected.")

    def _disabled_transport():
        raise RuntimeError("Playback transport is disabled.")

    return _disabled_transport


def initialize_session_services(
    *,
    config: AppConfig,
    logger,
    transport_factory: TransportFactory | None = None,
    storage_provider: StorageProvider | None = None,
    metadata_reader: MetadataReader | None = None,
    executor: Executor | None = None,
    hooks: SessionHooks | None = None,
) -> SessionServices:
    """Construct all runtime services and return a typed service bundle."""
    store = SessionStore(config.session_state_path, logger_instance=logger, write_behind=True)
    logger.info("Session state path: %s", config.session_state_path)

    if storage_provider is None:
        storage_provider = LocalStorageProvider(logger)
    registry = MediaPlaceRegistry(store, storage_provider, logger)
    browser = FolderBrowser(
        storage_provider,
        logger,
        audio_extensions=config.audio_extensions,
        hidden_prefix=config.hidden_name_prefix,
    )
    queue_builder = QueueBuilder(metadata_reader or MutagenMetadataReader(), logger)
    dispatcher = MainThreadDispatcher(logger)
    if executor is None:
        executor = ThreadPoolExecutor(
            max_workers=config.worker_threads,
            thread_name_prefix="session-worker",
        )
    controller = SessionController(
        store=store,
        registry=registry,
        browser=browser,
        queue_builder=queue_builder,
        storage_provider=storage_provider,
        transport_factory=transport_factory or build_transport_factory(config, logger),
        dispatcher=dispatcher,
        executor=executor,
        logger=logger,
        hooks=hooks,
        tick_interval_ms=config.tick_interval_ms,
        connect_timeout_seconds=config.connect_timeout_seconds,
        connect_retries=config.connect_retries,
        connect_retry_delay_seconds=config.connect_retry_delay_seconds,
    )
    logger.debug(
        "Session services ready: workers=%s tick=%sms connect_timeout=%.1fs retries=%s",
        config.worker_threads,
        config.tick_interval_ms,
        config.connect_timeout_seconds,
        config.connect_retries,
    )
    return SessionServices(
        store=store,
        storage_provider=storage_provider,
        registry=registry,
        browser=browser,
        queue_builder=queue_builder,
        dispatcher=dispatcher,
        executor=executor,
        controller=controller,
    )
