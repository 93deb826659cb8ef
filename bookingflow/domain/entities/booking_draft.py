from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WizardStep(str, Enum):
    service = "service"
    schedule = "schedule"
    location = "location"
    custom = "custom"
    notes = "notes"
    review = "review"

    @property
    def position(self) -> int:
        return STEP_SEQUENCE.index(self)

    @classmethod
    def at(cls, index: int) -> "WizardStep":
        return STEP_SEQUENCE[clamp_step_index(index)]

    def next_step(self) -> "WizardStep":
        """Following step; review is terminal and maps to itself."""
        return WizardStep.at(self.position + 1)

    def previous_step(self) -> "WizardStep":
        """Preceding step; service is initial and maps to itself."""
        return WizardStep.at(self.position - 1)


STEP_SEQUENCE: tuple[WizardStep, ...] = (
    WizardStep.service,
    WizardStep.schedule,
    WizardStep.location,
    WizardStep.custom,
    WizardStep.notes,
    WizardStep.review,
)


def clamp_step_index(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(0, min(value, len(STEP_SEQUENCE) - 1))


# Fields a step component may write directly.
EDITABLE_FIELDS = frozenset(
    {
        "service_id",
        "provider_id",
        "scheduled_date",
        "scheduled_time",
        "location",
        "notes",
        "price",
    }
)


@dataclass
class BookingDraft:
    service_id: str = ""
    provider_id: str = ""
    scheduled_date: str = ""  # YYYY-MM-DD
    scheduled_time: str = ""  # HH:MM
    location: str = ""
    custom_input_values: dict[str, str] = field(default_factory=dict)
    notes: str = ""
    price: int | str | None = None  # legacy, not used for pricing
    step_index: int = 0
    idempotency_key: str | None = None

    @property
    def step(self) -> WizardStep:
        return WizardStep.at(self.step_index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_id": self.service_id,
            "provider_id": self.provider_id,
            "scheduled_date": self.scheduled_date,
            "scheduled_time": self.scheduled_time,
            "location": self.location,
            "custom_input_values": dict(self.custom_input_values),
            "notes": self.notes,
            "price": self.price,
            "step_index": self.step_index,
            "idempotency_key": self.idempotency_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BookingDraft":
        if not isinstance(data, dict):
            raise TypeError(f"Draft payload must be an object, got {type(data).__name__}")

        custom_values = data.get("custom_input_values") or {}
        if not isinstance(custom_values, dict):
            custom_values = {}

        return cls(
            service_id=data.get("service_id") or "",
            provider_id=data.get("provider_id") or "",
            scheduled_date=data.get("scheduled_date") or "",
            scheduled_time=data.get("scheduled_time") or "",
            location=data.get("location") or "",
            custom_input_values={str(k): "" if v is None else str(v) for k, v in custom_values.items()},
            notes=data.get("notes") or "",
            price=data.get("price"),
            step_index=clamp_step_index(data.get("step_index", 0)),
            idempotency_key=data.get("idempotency_key"),
        )
