"""Shared constants for the session engine."""

HIDDEN_NAME_PREFIX = "."
DEFAULT_AUDIO_EXTENSIONS = (".mp3", ".wav", ".ogg", ".m4a", ".flac")
AUDIO_MEDIA_TYPE_PREFIX = "audio/"
DEFAULT_TRACK_TITLE = "No title"
UNKNOWN_NAME = "Unknown"
NO_AUDIO_FILES_FOUND = "No audio files found"
