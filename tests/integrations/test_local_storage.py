import os

import pytest

from folder_player.integrations.local_storage import LocalStorageProvider


class _Logger:
    def __init__(self):
        self.debugs = []

    def debug(self, message, *args):
        self.debugs.append(message % args if args else message)


def test_list_reports_children_with_tokens_and_media_types(tmp_path):
    (tmp_path / "album").mkdir()
    (tmp_path / "song.mp3").write_bytes(b"x")
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
    provider = LocalStorageProvider(_Logger())

    entries = {entry.name: entry for entry in provider.list(str(tmp_path))}
    assert set(entries) == {"album", "song.mp3", "notes.txt"}
    assert entries["album"].is_directory is True
    assert entries["album"].media_type is None
    assert entries["song.mp3"].token == str(tmp_path / "song.mp3")
    assert entries["song.mp3"].media_type.startswith("audio/")
    assert entries["notes.txt"].media_type == "text/plain"


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_list_skips_broken_links(tmp_path):
    (tmp_path / "ok.mp3").write_bytes(b"x")
    try:
        os.symlink(str(tmp_path / "missing.mp3"), str(tmp_path / "broken.mp3"))
    except OSError:
        pytest.skip("cannot create symlinks")
    names = [entry.name for entry in LocalStorageProvider(_Logger()).list(str(tmp_path))]
    assert names == ["ok.mp3"]


def test_list_of_missing_folder_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        LocalStorageProvider(_Logger()).list(str(tmp_path / "missing"))


def test_grant_and_revoke_access(tmp_path):
    logger = _Logger()
    provider = LocalStorageProvider(logger)
    provider.grant_access(str(tmp_path))
    provider.revoke_access(str(tmp_path))
    assert logger.debugs == [f"Access granted: {tmp_path}", f"Access revoked: {tmp_path}"]
    with pytest.raises(FileNotFoundError):
        provider.grant_access(str(tmp_path / "missing"))


def test_can_read_accepts_only_folders(tmp_path):
    song = tmp_path / "song.mp3"
    song.write_bytes(b"x")
    provider = LocalStorageProvider(_Logger())
    assert provider.can_read(str(tmp_path)) is True
    assert provider.can_read(str(tmp_path / "missing")) is False
    assert provider.can_read(str(song)) is False
