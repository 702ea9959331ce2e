from types import SimpleNamespace

import pytest

from folder_player.application import bootstrap
from folder_player.application.context import SessionContext
from folder_player.application.session_hooks import SessionHooks
from folder_player.constants import DEFAULT_AUDIO_EXTENSIONS


def _minimal_config(tmp_path, **overrides):
    base = {
        "log_level": "INFO",
        "file_log_level": "DEBUG",
        "log_dir": str(tmp_path),
        "log_file": str(tmp_path / "session.log"),
        "session_state_path": str(tmp_path / "state.db"),
        "tick_interval_ms": 250,
        "worker_threads": 2,
        "connect_timeout_seconds": 5.0,
        "connect_retries": 1,
        "connect_retry_delay_seconds": 0.5,
        "audio_extensions": DEFAULT_AUDIO_EXTENSIONS,
        "hidden_name_prefix": ".",
        "vlc_enabled": True,
    }
    base.update(overrides)
    return SimpleNamespace(**base)


class _Logger:
    def __init__(self):
        self.warning_messages = []
        self.info_messages = []
        self.exceptions = []

    def warning(self, message, *args):
        self.warning_messages.append(message % args if args else message)

    def info(self, message, *args):
        self.info_messages.append(message % args if args else message)

    def debug(self, message, *args):
        return None

    def exception(self, message, *args):
        self.exceptions.append(message % args if args else message)


def test_disabled_transport_factory_raises(tmp_path):
    logger = _Logger()
    factory = bootstrap.build_transport_factory(_minimal_config(tmp_path, vlc_enabled=False), logger)
    with pytest.raises(RuntimeError, match="disabled"):
        factory()
    assert any("VLC_ENABLED" in message for message in logger.warning_messages)


def test_enabled_transport_factory_builds_vlc_transport(monkeypatch, tmp_path):
    created = []

    class _Transport:
        def __init__(self, **kwargs):
            created.append(kwargs)

    monkeypatch.setattr(bootstrap, "VlcPlaybackTransport", _Transport)
    logger = _Logger()
    factory = bootstrap.build_transport_factory(_minimal_config(tmp_path), logger)
    assert isinstance(factory(), _Transport)
    assert created == [{"logger_instance": logger}]


def test_initialize_session_services_wires_config(tmp_path):
    logger = _Logger()
    notices = []
    services = bootstrap.initialize_session_services(
        config=_minimal_config(tmp_path, audio_extensions=(".opus",), hidden_name_prefix="_"),
        logger=logger,
        transport_factory=lambda: None,
        metadata_reader=lambda token: None,
        hooks=SessionHooks(notify=notices.append),
    )
    try:
        controller = services.controller
        assert services.store.path == str(tmp_path / "state.db")
        assert services.browser.audio_extensions == (".opus",)
        assert services.browser.hidden_prefix == "_"
        assert controller.connect_timeout_seconds == 5.0
        assert controller.connect_retries == 1
        assert controller.store is services.store
        assert controller.registry is services.registry
        controller.hooks.notify("hello")
        assert notices == ["hello"]
    finally:
        services.executor.shutdown(wait=True)
        services.store.close()


def test_context_close_disposes_and_releases(tmp_path):
    closed = []

    class _Transport:
        def close(self):
            closed.append(True)

    class _Controller:
        def __init__(self):
            self.transport = _Transport()
            self.disposed = False

        def dispose(self):
            self.disposed = True
            self.transport = None

    class _Executor:
        def __init__(self):
            self.shutdown_calls = []

        def shutdown(self, **kwargs):
            self.shutdown_calls.append(kwargs)

    class _Dispatcher:
        def __init__(self):
            self.closed = False

        def close(self):
            self.closed = True

    class _Store:
        def __init__(self):
            self.closed = False

        def close(self):
            self.closed = True

    services = SimpleNamespace(
        store=_Store(),
        storage_provider=object(),
        registry=object(),
        dispatcher=_Dispatcher(),
        executor=_Executor(),
        controller=_Controller(),
    )
    context = SessionContext(config=_minimal_config(tmp_path), logger=_Logger())
    context.bind_services(services)
    context.close()
    assert services.controller.disposed is True
    assert closed == [True]
    assert services.executor.shutdown_calls == [{"wait": False, "cancel_futures": True}]
    assert services.store.closed is True
    assert services.dispatcher.closed is True


def test_context_close_without_services_is_noop(tmp_path):
    SessionContext(config=_minimal_config(tmp_path), logger=_Logger()).close()


def test_bookmark_on_a_plain_file_is_rejected(tmp_path):
    song = tmp_path / "song.mp3"
    song.write_bytes(b"x")
    notices = []
    services = bootstrap.initialize_session_services(
        config=_minimal_config(tmp_path),
        logger=_Logger(),
        transport_factory=lambda: None,
        metadata_reader=lambda token: None,
        hooks=SessionHooks(notify=notices.append),
    )
    try:
        controller = services.controller
        assert controller.add_bookmark(str(song)) is None
        assert notices == [f"Cannot read location: {song}"]
        place = controller.add_bookmark(str(tmp_path))
        assert place is not None
        assert services.registry.list() == [place]
    finally:
        services.executor.shutdown(wait=True)
        services.store.close()


def test_write_behind_store_flushes_on_close(tmp_path):
    services = bootstrap.initialize_session_services(
        config=_minimal_config(tmp_path),
        logger=_Logger(),
        transport_factory=lambda: None,
        metadata_reader=lambda token: None,
    )
    services.store.save_last_queue_index(4)
    services.store.close()
    services.executor.shutdown(wait=True)
    reopened = bootstrap.SessionStore(str(tmp_path / "state.db"))
    assert reopened.load_last_queue_index() == 4
