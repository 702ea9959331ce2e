import threading
import time

from folder_player.application.dispatcher import MainThreadDispatcher, PositionTicker


class _Logger:
    def __init__(self):
        self.debugs = []
        self.exceptions = []

    def debug(self, message, *args):
        self.debugs.append(message % args if args else message)

    def exception(self, message, *args):
        self.exceptions.append(message % args if args else message)


def test_run_pending_runs_callbacks_in_order_and_logs_failures():
    logger = _Logger()
    dispatcher = MainThreadDispatcher(logger)
    calls = []
    dispatcher.post(lambda: calls.append(1))
    dispatcher.post(lambda: 1 / 0)
    dispatcher.post(lambda: calls.append(2))
    assert dispatcher.run_pending() == 3
    assert calls == [1, 2]
    assert logger.exceptions == ["Main-thread callback failed"]
    assert dispatcher.run_pending() == 0


def test_callbacks_posted_from_workers_run_on_draining_thread():
    dispatcher = MainThreadDispatcher(_Logger())
    seen = []
    worker = threading.Thread(target=lambda: dispatcher.post(lambda: seen.append(threading.current_thread())))
    worker.start()
    worker.join()
    dispatcher.run_pending()
    assert seen == [threading.current_thread()]


def test_close_stops_run_forever_and_drops_later_posts():
    logger = _Logger()
    dispatcher = MainThreadDispatcher(logger)
    calls = []
    dispatcher.post(lambda: calls.append("before"))
    dispatcher.close()
    dispatcher.post(lambda: calls.append("after"))
    dispatcher.run_forever(threading.Event())
    assert calls == ["before"]
    assert logger.debugs


def test_ticker_posts_until_stopped():
    dispatcher = MainThreadDispatcher(_Logger())
    ticks = []
    ticker = PositionTicker(dispatcher, lambda: ticks.append(1), interval_ms=10)
    ticker.start()
    assert ticker.running
    deadline = time.monotonic() + 2.0
    while not ticks and time.monotonic() < deadline:
        dispatcher.run_pending(wait_seconds=0.05)
    ticker.stop()
    assert not ticker.running
    assert ticks
