from __future__ import annotations

import json
import logging

from bookingflow.application.ports.draft_store import DraftStorePort
from bookingflow.domain.entities.booking_draft import BookingDraft


class MemoryDraftStore(DraftStorePort):
    """Process-local key/value slot holding serialized drafts, like browser local storage."""

    def __init__(self, key: str = "booking.draft", items: dict[str, str] | None = None) -> None:
        self._key = key
        self._items: dict[str, str] = items if items is not None else {}
        self._logger = logging.getLogger(__name__)

    def load_draft(self) -> BookingDraft | None:
        raw = self._items.get(self._key)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if data is None:
                return None
            return BookingDraft.from_dict(data)
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            self._logger.warning("Failed to read draft", extra={"error": str(e)})
            return None

    def save_draft(self, draft: BookingDraft | None) -> None:
        if not draft:
            self.clear_draft()
            return
        try:
            self._items[self._key] = json.dumps(draft.to_dict())
        except (TypeError, ValueError) as e:
            self._logger.warning("Failed to persist draft", extra={"error": str(e)})

    def clear_draft(self) -> None:
        self._items.pop(self._key, None)
