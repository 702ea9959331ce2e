import random
from types import SimpleNamespace

import pytest

from folder_player.application.ports import (
    CurrentItemChanged,
    DurationChanged,
    PlayingChanged,
    QueueChanged,
    RepeatChanged,
    ShuffleChanged,
)
from folder_player.domain.models import QueueItem, RepeatMode, TransitionReason
from folder_player.integrations import vlc_transport as vlc_mod
from folder_player.integrations.vlc_transport import VlcPlaybackTransport


class _FakeMedia:
    def __init__(self, path):
        self.path = path
        self.released = False

    def release(self):
        self.released = True


class _FakeEventManager:
    def __init__(self):
        self.attached = {}

    def event_attach(self, event_type, callback):
        self.attached[event_type] = callback


class _FakePlayer:
    def __init__(self):
        self.media = None
        self.play_rc = 0
        self.time_ms = 0
        self.length_ms = 0
        self.playing = False
        self.set_time_calls = []
        self.play_calls = 0
        self.released = False
        self.events = _FakeEventManager()

    def event_manager(self):
        return self.events

    def set_media(self, media):
        self.media = media

    def play(self):
        self.play_calls += 1
        if self.play_rc == 0:
            self.playing = True
        return self.play_rc

    def set_pause(self, value):
        self.playing = not bool(value)

    def stop(self):
        self.playing = False

    def is_playing(self):
        return self.playing

    def get_time(self):
        return self.time_ms

    def get_length(self):
        return self.length_ms

    def set_time(self, value):
        self.set_time_calls.append(value)
        self.time_ms = value

    def release(self):
        self.released = True


class _FakeInstance:
    def __init__(self, args):
        self.args = args
        self.player = _FakePlayer()
        self.released = False

    def media_player_new(self):
        return self.player

    def media_new(self, path):
        return _FakeMedia(path)

    def release(self):
        self.released = True


class _FakeVlc:
    EventType = SimpleNamespace(
        MediaPlayerPlaying="playing",
        MediaPlayerPaused="paused",
        MediaPlayerStopped="stopped",
        MediaPlayerEndReached="end",
        MediaPlayerLengthChanged="length",
    )

    def __init__(self):
        self.last_instance = None

    def Instance(self, args):
        self.last_instance = _FakeInstance(args)
        return self.last_instance


def _queue(tmp_path, *names):
    items = []
    for name in names:
        path = tmp_path / name
        path.write_bytes(b"data")
        items.append(QueueItem(str(path), name))
    return items


def _transport(**kwargs):
    fake_vlc = _FakeVlc()
    transport = VlcPlaybackTransport(vlc_module=fake_vlc, platform_name="linux", **kwargs)
    events = []
    transport.add_listener(events.append)
    return transport, fake_vlc.last_instance.player, events


def test_instance_arguments_and_event_wiring():
    fake_vlc = _FakeVlc()
    transport = VlcPlaybackTransport(vlc_module=fake_vlc, platform_name="linux")
    assert fake_vlc.last_instance.args == ["--no-xlib", "--no-video"]
    assert set(transport.player.events.attached) == {"playing", "paused", "stopped", "end", "length"}

    VlcPlaybackTransport(vlc_module=fake_vlc, platform_name="win32")
    assert fake_vlc.last_instance.args == ["--no-video"]


def test_missing_python_vlc_raises(monkeypatch):
    monkeypatch.setattr(vlc_mod, "_vlc", None)
    with pytest.raises(RuntimeError, match="not available"):
        VlcPlaybackTransport()


def test_load_queue_clamps_index_and_emits(tmp_path):
    transport, player, events = _transport()
    items = _queue(tmp_path, "a.mp3", "b.mp3")
    transport.load_queue(items, 9)
    assert transport.current_index() == 1
    assert transport.current_item() == items[1]
    assert player.media.path == items[1].location_token
    assert transport.queue_snapshot() == items
    assert events == [QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED)]


def test_load_queue_skips_to_nearest_existing_file(tmp_path):
    transport, player, events = _transport()
    items = _queue(tmp_path, "a.mp3", "b.mp3", "c.mp3")
    (tmp_path / "b.mp3").unlink()

    transport.load_queue(items, 1, 4000)
    assert transport.queue_snapshot() == items
    assert transport.current_index() == 2
    assert player.media.path == items[2].location_token
    assert events == [QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED)]

    transport.play()
    assert player.play_calls == 1
    assert player.set_time_calls == []


def test_load_queue_without_any_existing_file_keeps_index_in_range(tmp_path):
    transport, player, events = _transport()
    transport.load_queue([QueueItem(str(tmp_path / "gone.mp3"), "gone")], 0)
    assert transport.current_index() == 0
    assert transport.media is None
    assert events == [QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED)]

    with pytest.raises(FileNotFoundError):
        transport.play()
    assert player.play_calls == 0


def test_play_applies_start_position_and_reports_failures(tmp_path):
    transport, player, _events = _transport()
    transport.load_queue(_queue(tmp_path, "a.mp3"), 0, 1500)
    transport.play()
    assert player.set_time_calls == [1500]
    transport.play()
    assert player.set_time_calls == [1500]

    player.play_rc = -1
    with pytest.raises(RuntimeError, match="failed"):
        transport.play()


def test_play_on_empty_queue_is_noop():
    transport, player, _events = _transport()
    transport.play()
    assert player.play_calls == 0


def test_next_and_previous_respect_repeat_all(tmp_path):
    transport, player, events = _transport()
    transport.load_queue(_queue(tmp_path, "a.mp3", "b.mp3"), 1)
    events.clear()
    transport.next()
    assert transport.current_index() == 1
    assert events == []

    transport.set_repeat_mode(RepeatMode.ALL)
    transport.next()
    assert transport.current_index() == 0
    assert events == [RepeatChanged(RepeatMode.ALL), CurrentItemChanged(TransitionReason.SKIP)]

    transport.previous()
    assert transport.current_index() == 1


def test_previous_restarts_current_item_after_three_seconds(tmp_path):
    transport, player, events = _transport()
    transport.load_queue(_queue(tmp_path, "a.mp3", "b.mp3"), 1)
    events.clear()
    player.time_ms = 5000
    transport.previous()
    assert transport.current_index() == 1
    assert player.time_ms == 0
    assert events == []


def test_skip_keeps_playing(tmp_path):
    transport, player, _events = _transport()
    transport.load_queue(_queue(tmp_path, "a.mp3", "b.mp3"), 0)
    transport.play()
    transport.next()
    assert player.play_calls == 2
    assert player.playing is True


def test_play_index_emits_seek_and_validates(tmp_path):
    transport, _player, events = _transport()
    transport.load_queue(_queue(tmp_path, "a.mp3", "b.mp3"), 0)
    events.clear()
    transport.play_index(1)
    assert events == [CurrentItemChanged(TransitionReason.SEEK)]
    with pytest.raises(IndexError):
        transport.play_index(2)


def test_shuffle_keeps_current_first_and_emits_on_change(tmp_path):
    transport, _player, events = _transport(rng=random.Random(3))
    items = _queue(tmp_path, "a.mp3", "b.mp3", "c.mp3", "d.mp3")
    transport.load_queue(items, 2)
    events.clear()
    transport.set_shuffle(True)
    transport.set_shuffle(True)
    assert events == [ShuffleChanged(True)]
    assert transport.shuffle_mode() is True

    visited = [transport.current_index()]
    for _ in range(3):
        transport.next()
        visited.append(transport.current_index())
    assert visited[0] == 2
    assert sorted(visited) == [0, 1, 2, 3]


def test_repeat_mode_emits_only_on_change():
    transport, _player, events = _transport()
    transport.set_repeat_mode(RepeatMode.OFF)
    transport.set_repeat_mode(RepeatMode.ONE)
    assert events == [RepeatChanged(RepeatMode.ONE)]
    assert transport.repeat_mode() is RepeatMode.ONE


def test_vlc_state_callbacks_emit_playing_changes_once(tmp_path):
    transport, player, events = _transport()
    player.events.attached["playing"](None)
    player.events.attached["playing"](None)
    player.events.attached["paused"](None)
    assert events == [PlayingChanged(True), PlayingChanged(False)]


def test_end_of_item_advances_and_autoplays(tmp_path):
    transport, player, events = _transport()
    transport.load_queue(_queue(tmp_path, "a.mp3", "b.mp3"), 0)
    transport.play()
    transport._on_vlc_playing(None)
    events.clear()
    player.playing = False

    transport._advance_after_end()
    assert transport.current_index() == 1
    assert events[:2] == [PlayingChanged(False), CurrentItemChanged(TransitionReason.AUTO)]
    assert player.play_calls == 2


def test_end_of_item_with_pause_at_end_cues_without_playing(tmp_path):
    transport, player, events = _transport()
    transport.set_pause_at_end_of_queue(True)
    transport.load_queue(_queue(tmp_path, "a.mp3", "b.mp3"), 0)
    transport.play()
    events.clear()

    transport._advance_after_end()
    assert transport.current_index() == 1
    assert events == [CurrentItemChanged(TransitionReason.AUTO)]
    assert player.play_calls == 1


def test_end_of_last_item_stops_unless_repeating(tmp_path):
    transport, player, events = _transport()
    transport.load_queue(_queue(tmp_path, "a.mp3", "b.mp3"), 1)
    events.clear()
    transport._advance_after_end()
    assert transport.current_index() == 1
    assert events == []

    transport.set_repeat_mode(RepeatMode.ONE)
    events.clear()
    transport._advance_after_end()
    assert transport.current_index() == 1
    assert events == [CurrentItemChanged(TransitionReason.AUTO)]


def test_add_and_remove_items_adjust_current_index(tmp_path):
    transport, _player, events = _transport()
    items = _queue(tmp_path, "a.mp3", "b.mp3", "c.mp3")
    transport.add_items(items[:1])
    assert transport.current_index() == 0
    assert events == [QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED)]

    transport.add_items(items[1:])
    transport.play_index(2)
    events.clear()
    transport.remove_item(0)
    assert transport.current_index() == 1
    assert events == [QueueChanged()]

    events.clear()
    transport.remove_item(1)
    assert transport.current_index() == 0
    assert transport.current_item() == items[1]
    assert events == [QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED)]

    transport.remove_item(0)
    assert transport.current_index() == -1
    assert transport.current_item() is None
    transport.remove_item(5)


def test_close_releases_everything(tmp_path):
    transport, player, events = _transport()
    transport.load_queue(_queue(tmp_path, "a.mp3"), 0)
    media = transport.media
    transport.close()
    assert media.released is True
    assert player.released is True
    assert transport.instance.released is True
    transport._emit(QueueChanged())
    assert events == [QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED)]


def test_removing_current_item_with_missing_neighbour_stays_in_range(tmp_path):
    transport, player, events = _transport()
    items = _queue(tmp_path, "a.mp3", "b.mp3", "c.mp3")
    transport.load_queue(items, 1)
    transport.play()
    (tmp_path / "c.mp3").unlink()
    events.clear()

    transport.remove_item(1)
    assert transport.current_index() == 0
    assert transport.current_item() == items[0]
    assert events == [QueueChanged(), CurrentItemChanged(TransitionReason.QUEUE_REPLACED)]
    assert player.play_calls == 2


def test_length_change_is_reported_as_duration(tmp_path):
    transport, player, events = _transport()
    event = SimpleNamespace(u=SimpleNamespace(new_length=215_000))
    player.events.attached["length"](event)
    player.events.attached["length"](SimpleNamespace())
    assert events == [DurationChanged(215_000), DurationChanged(0)]
