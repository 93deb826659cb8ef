from __future__ import annotations

import json
import logging
from pathlib import Path

from bookingflow.application.ports.draft_store import DraftStorePort
from bookingflow.domain.entities.booking_draft import BookingDraft


class JsonDraftStore(DraftStorePort):
    """Draft slot backed by one JSON file per storage key."""

    def __init__(self, data_dir: str = "./data/drafts", key: str = "booking.draft") -> None:
        self._data_dir = Path(data_dir)
        self._key = key
        self._logger = logging.getLogger(__name__)

    @property
    def file_path(self) -> Path:
        return self._data_dir / f"{self._key}.json"

    def load_draft(self) -> BookingDraft | None:
        file_path = self.file_path
        if not file_path.exists():
            return None

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if data is None:
                return None
            return BookingDraft.from_dict(data)
        except (json.JSONDecodeError, OSError, TypeError, ValueError) as e:
            self._logger.warning("Failed to read draft", extra={"path": str(file_path), "error": str(e)})
            return None

    def save_draft(self, draft: BookingDraft | None) -> None:
        if not draft:
            self.clear_draft()
            return

        file_path = self.file_path
        temp_path = file_path.with_suffix(".json.tmp")
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            # Serialize before touching disk so a bad value never truncates the stored draft.
            body = json.dumps(draft.to_dict(), indent=2, ensure_ascii=False)
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(body)
            temp_path.replace(file_path)
        except (OSError, TypeError, ValueError) as e:
            self._logger.warning("Failed to persist draft", extra={"path": str(file_path), "error": str(e)})
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                pass

    def clear_draft(self) -> None:
        try:
            self.file_path.unlink(missing_ok=True)
        except OSError as e:
            self._logger.warning("Failed to clear draft", extra={"path": str(self.file_path), "error": str(e)})
