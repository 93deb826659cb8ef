from __future__ import annotations

from abc import ABC, abstractmethod

from bookingflow.domain.entities.booking_draft import BookingDraft


class DraftStorePort(ABC):
    """Single-slot persistence for the in-progress booking draft.

    Implementations swallow storage failures: they log and degrade to
    "no draft" instead of raising to the caller.
    """

    @abstractmethod
    def load_draft(self) -> BookingDraft | None:
        """Return the stored draft, or None when absent or unreadable."""
        raise NotImplementedError

    @abstractmethod
    def save_draft(self, draft: BookingDraft | None) -> None:
        """Persist the draft. A falsy draft removes the stored entry."""
        raise NotImplementedError

    @abstractmethod
    def clear_draft(self) -> None:
        """Remove the stored entry."""
        raise NotImplementedError
