from __future__ import annotations

from bookingflow.domain.entities.booking_draft import STEP_SEQUENCE, BookingDraft, WizardStep
from bookingflow.domain.entities.catalog import Service


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def validate_step(step: WizardStep, draft: BookingDraft, service: Service | None = None) -> dict[str, str]:
    """Return field -> message for every required field the step is missing."""
    errors: dict[str, str] = {}

    if step == WizardStep.service:
        if _is_blank(draft.service_id):
            errors["service_id"] = "Select a service to continue."
        if _is_blank(draft.provider_id):
            errors["provider_id"] = "Choose a provider."

    elif step == WizardStep.schedule:
        if _is_blank(draft.scheduled_date):
            errors["scheduled_date"] = "Pick a date."
        if _is_blank(draft.scheduled_time):
            errors["scheduled_time"] = "Choose a start time."

    elif step == WizardStep.location:
        if _is_blank(draft.location):
            errors["location"] = "Add a service location."

    elif step == WizardStep.custom:
        for custom_field in service.custom_fields if service else ():
            if custom_field.required and _is_blank(draft.custom_input_values.get(custom_field.id)):
                errors[f"custom.{custom_field.id}"] = f"{custom_field.label} is required."

    # notes and review have no required fields
    return errors


def validate_all_steps(draft: BookingDraft, service: Service | None = None) -> dict[str, str]:
    errors: dict[str, str] = {}
    for step in STEP_SEQUENCE:
        errors.update(validate_step(step, draft, service))
    return errors
