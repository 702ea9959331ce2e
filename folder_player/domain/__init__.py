"""Domain values for folders, queues and player status."""

from .audio_files import is_audio_file, is_hidden, sort_file_items
from .models import (
    FileItem,
    MediaPlace,
    PlayerStatus,
    QueueItem,
    RepeatMode,
    TrackMetadata,
    TransitionReason,
    queue_identity,
)
from .navigation import NavigationStack, validate_restored_stack

__all__ = [
    "FileItem",
    "MediaPlace",
    "NavigationStack",
    "PlayerStatus",
    "QueueItem",
    "RepeatMode",
    "TrackMetadata",
    "TransitionReason",
    "is_audio_file",
    "is_hidden",
    "queue_identity",
    "sort_file_items",
    "validate_restored_stack",
]
