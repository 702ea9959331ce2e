"""Breadcrumb stack of visited folders."""

from __future__ import annotations

from typing import Callable, Iterable

from .models import FileItem


class NavigationStack:
    """Ordered folders, oldest first.

    No two consecutive entries share a location token; an empty stack means the
    bookmark list is shown.
    """

    def __init__(self, items: Iterable[FileItem] = ()) -> None:
        self._items: list[FileItem] = list(items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> tuple[FileItem, ...]:
        return tuple(self._items)

    @property
    def top(self) -> FileItem | None:
        return self._items[-1] if self._items else None

    @property
    def is_empty(self) -> bool:
        return not self._items

    def push(self, item: FileItem) -> bool:
        """Append unless the top already points at the same location."""
        top = self.top
        if top is not None and top.location_token == item.location_token:
            return False
        self._items.append(item)
        return True

    def pop(self) -> FileItem | None:
        """Drop the top entry and return the new top."""
        if self._items:
            self._items.pop()
        return self.top

    def replace(self, items: Iterable[FileItem]) -> None:
        # Restoration input is trusted; the push guard is not applied.
        self._items = list(items)

    def to_payload(self) -> list[dict]:
        return [item.to_payload() for item in self._items]


def validate_restored_stack(
    items: Iterable[FileItem],
    can_read: Callable[[str], bool],
    logger,
) -> list[FileItem]:
    """Keep restored entries up to the first one that is no longer readable.

    A folder whose parent was dropped would leave the stack discontiguous, so
    everything from the first failure onward is discarded.
    """
    kept: list[FileItem] = []
    for item in items:
        try:
            readable = bool(can_read(item.location_token))
        except Exception:
            logger.exception("Read check failed for breadcrumb entry: %s", item.location_token)
            readable = False
        if not readable:
            logger.warning(
                "Breadcrumb entry is no longer readable, truncating stack at: %s",
                item.location_token,
            )
            break
        kept.append(item)
    return kept
