"""Bookmarked root locations."""

from __future__ import annotations

from ..domain.models import MediaPlace
from .session_store import SessionStore


class MediaPlaceRegistry:
    def __init__(self, store: SessionStore, storage_provider, logger) -> None:
        self.store = store
        self.storage_provider = storage_provider
        self.logger = logger
        self._places: list[MediaPlace] = []
        # Unreadable at load; still persisted so they return once readable.
        self._unavailable: list[MediaPlace] = []

    def load(self) -> list[MediaPlace]:
        places: list[MediaPlace] = []
        unavailable: list[MediaPlace] = []
        for place in self.store.load_media_places():
            try:
                readable = bool(self.storage_provider.can_read(place.location_token))
            except Exception:
                self.logger.exception("Read check failed for bookmark: %s", place.location_token)
                readable = False
            if readable:
                places.append(place)
            else:
                self.logger.warning("Hiding unreadable bookmark: %s", place.location_token)
                unavailable.append(place)
        self._places = places
        self._unavailable = unavailable
        return list(self._places)

    def list(self) -> list[MediaPlace]:
        return list(self._places)

    def find(self, location_token: str) -> MediaPlace | None:
        for place in self._places:
            if place.location_token == location_token:
                return place
        return None

    def add(self, location_token: str, display_name: str) -> MediaPlace:
        existing = self.find(location_token)
        if existing is not None:
            return existing
        place = MediaPlace(location_token=location_token, display_name=display_name)
        self._places = [*self._places, place]
        self._unavailable = [value for value in self._unavailable if value.location_token != location_token]
        self._persist()
        self.logger.info("Added bookmark: %s (%s)", display_name, location_token)
        return place

    def remove(self, place: MediaPlace) -> bool:
        if place not in self._places:
            return False
        self._places = [value for value in self._places if value != place]
        self._persist()
        try:
            self.storage_provider.revoke_access(place.location_token)
        except Exception:
            self.logger.exception("Failed to revoke access for: %s", place.location_token)
        self.logger.info("Removed bookmark: %s", place.location_token)
        return True

    def _persist(self) -> None:
        self.store.save_media_places([*self._places, *self._unavailable])
