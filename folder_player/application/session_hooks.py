"""Notification hooks from the session engine to its UI collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


def _ignore(_message: str) -> None:
    return None


@dataclass(frozen=True)
class SessionHooks:
    notify: Callable[[str], None] = _ignore
