from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar
from zoneinfo import ZoneInfo

from bookingflow.application.exceptions import (
    BackendError,
    BackendTimeoutError,
    BookingSubmissionError,
    SubmissionInProgressError,
    WizardStateError,
    WizardValidationError,
)
from bookingflow.application.ports.booking_backend import BookingBackendPort
from bookingflow.application.ports.draft_store import DraftStorePort
from bookingflow.application.use_cases.booking_payload import build_booking_payload
from bookingflow.application.utils.pricing import (
    PriceBreakdown,
    compute_deposit,
    compute_price,
    format_cents,
    service_label,
)
from bookingflow.application.utils.scheduling import combine_schedule
from bookingflow.application.utils.step_validation import validate_all_steps, validate_step
from bookingflow.domain.entities.booking_draft import EDITABLE_FIELDS, BookingDraft, WizardStep
from bookingflow.domain.entities.catalog import Booking, Provider, Service
from bookingflow.domain.entities.promotion import PromotionApplication

T = TypeVar("T")

PROMO_CODE_REQUIRED = "Enter a promo code."
PROMO_SERVICE_REQUIRED = "Select a service first."
PROMO_GENERIC_ERROR = "Unable to apply promo code."
SUBMISSION_GENERIC_ERROR = "Booking failed."


@dataclass(frozen=True)
class SubmissionResult:
    booking: Booking
    payload: dict[str, Any]

    @property
    def booking_id(self) -> str:
        return self.booking.id

    @property
    def confirmation_path(self) -> str:
        return f"/app/book/confirm?bookingId={self.booking.id}"


class BookingWizard:
    """
    Linear, resumable booking checkout: service -> schedule -> location -> custom -> notes -> review.

    Every draft mutation is written through to the draft store. The wizard owns the
    in-memory draft; the store only mirrors it so the flow survives a reload.
    """

    def __init__(
        self,
        store: DraftStorePort,
        backend: BookingBackendPort,
        timezone: ZoneInfo,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._store = store
        self._backend = backend
        self._timezone = timezone
        self._timeout_seconds = timeout_seconds
        self._logger = logging.getLogger(__name__)

        self._draft = BookingDraft()
        self._services: list[Service] = []
        self._providers: list[Provider] = []

        self.errors: dict[str, str] = {}
        self.promo_code_input: str = ""
        self.promo_error: str | None = None
        self.submission_error: str | None = None
        self.confirmed_booking_id: str | None = None

        self._applied_promotion: PromotionApplication | None = None
        self._promotion_service_id: str | None = None
        # Bumped whenever an applied or in-flight promotion stops being valid.
        self._promo_generation = 0
        self._submitting = False
        self._background_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------ state

    @property
    def draft(self) -> BookingDraft:
        return copy.deepcopy(self._draft)

    @property
    def step(self) -> WizardStep:
        return self._draft.step

    @property
    def submitting(self) -> bool:
        return self._submitting

    @property
    def applied_promotion(self) -> PromotionApplication | None:
        """The promotion, only while it belongs to the currently selected service."""
        if self._applied_promotion is None or self._promotion_service_id != self._draft.service_id:
            return None
        return self._applied_promotion

    @property
    def services(self) -> list[Service]:
        return list(self._services)

    @property
    def providers(self) -> list[Provider]:
        return list(self._providers)

    @property
    def selected_service(self) -> Service | None:
        return next((s for s in self._services if s.id == self._draft.service_id), None)

    @property
    def selected_provider(self) -> Provider | None:
        return next((p for p in self._providers if p.id == self._draft.provider_id), None)

    # --------------------------------------------------------------- lifecycle

    async def start(self, provider_id: str | None = None) -> None:
        """Refresh lookups and rehydrate the draft from the store (or start empty)."""
        self._ensure_not_submitting()
        self._services = await self._load_lookup(self._backend.fetch_services, "services")
        self._providers = await self._load_lookup(self._backend.fetch_providers, "providers")

        stored = self._store.load_draft()
        self._draft = stored or BookingDraft()
        self.errors = {}
        self.submission_error = None
        self.confirmed_booking_id = None
        self._clear_promotion()

        self._logger.info(
            "Booking wizard started",
            extra={"step": self._draft.step.value, "resumed": stored is not None},
        )

        if provider_id and provider_id != self._draft.provider_id:
            self._draft.provider_id = provider_id
            self._persist()

    async def _load_lookup(self, fetch: Callable[[], Awaitable[list[T]]], name: str) -> list[T]:
        try:
            return await self._call_backend(fetch())
        except BackendError as e:
            self._logger.warning("Failed to load %s", name, extra={"error": str(e)})
            return []

    # --------------------------------------------------------------- mutation

    def update(self, **fields: Any) -> None:
        self._ensure_not_submitting()
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown draft fields: {', '.join(sorted(unknown))}")

        previous_service_id = self._draft.service_id
        for name, value in fields.items():
            if name == "price":
                self._draft.price = value
            else:
                setattr(self._draft, name, "" if value is None else str(value))

        if self._draft.service_id != previous_service_id:
            # Discount eligibility is per service.
            if self._applied_promotion is not None:
                self._logger.info(
                    "Dropping promotion after service change",
                    extra={"promo_code": self._applied_promotion.promo_code, "service_id": self._draft.service_id},
                )
                self._clear_promotion()
            else:
                self._promo_generation += 1

        self._persist()

    def set_custom_value(self, field_id: str, value: str | None) -> None:
        self._ensure_not_submitting()
        self._draft.custom_input_values[field_id] = "" if value is None else str(value)
        self._persist()

    def next(self) -> bool:
        self._ensure_not_submitting()
        step = self._draft.step
        errors = validate_step(step, self._draft, self.selected_service)
        if errors:
            self.errors = errors
            self._logger.info("Step validation failed", extra={"step": step.value, "fields": sorted(errors)})
            return False

        self.errors = {}
        self._draft.step_index = step.next_step().position
        self._persist()
        return True

    def back(self) -> None:
        self._ensure_not_submitting()
        self.errors = {}
        self._draft.step_index = self._draft.step.previous_step().position
        self._persist()

    def _persist(self) -> None:
        if self._draft.idempotency_key is None:
            self._draft.idempotency_key = uuid.uuid4().hex
        self._store.save_draft(self._draft)

    def _ensure_not_submitting(self) -> None:
        # The in-flight payload is already built; edits now would be lost on success.
        if self._submitting:
            raise SubmissionInProgressError("The draft cannot change while a booking is being submitted.")

    # -------------------------------------------------------------- promotion

    async def apply_promo_code(self, code: str | None) -> PromotionApplication | None:
        self._ensure_not_submitting()
        code = (code or "").strip()
        self.promo_code_input = code
        if not code:
            self.promo_error = PROMO_CODE_REQUIRED
            return None

        service = self.selected_service
        if service is None or not self._draft.provider_id:
            self.promo_error = PROMO_SERVICE_REQUIRED
            return None

        self._promo_generation += 1
        generation = self._promo_generation
        try:
            promotion = await self._call_backend(
                self._backend.validate_promo_code(code, self._draft.provider_id, service.name)
            )
        except BackendError as e:
            if self._is_stale_promo_result(generation, service.id, code):
                return None
            self._applied_promotion = None
            self._promotion_service_id = None
            self.promo_error = str(e) or PROMO_GENERIC_ERROR
            self._logger.info("Promo code rejected", extra={"promo_code": code, "error": self.promo_error})
            return None

        if self._is_stale_promo_result(generation, service.id, code):
            return None

        self._applied_promotion = promotion
        self._promotion_service_id = service.id
        self.promo_error = None
        self._logger.info("Promo code applied", extra={"promo_code": code, "service_id": service.id})
        return promotion

    def _is_stale_promo_result(self, generation: int, service_id: str, code: str) -> bool:
        """True when the service, the promo input or a newer validation superseded this one."""
        if generation == self._promo_generation and self._draft.service_id == service_id:
            return False
        self._logger.info("Discarding stale promo validation", extra={"promo_code": code, "service_id": service_id})
        return True

    def remove_promo_code(self) -> None:
        self._ensure_not_submitting()
        self._clear_promotion()

    def _clear_promotion(self) -> None:
        self._applied_promotion = None
        self._promotion_service_id = None
        self.promo_code_input = ""
        self.promo_error = None
        self._promo_generation += 1

    # ---------------------------------------------------------------- pricing

    def price_breakdown(self) -> PriceBreakdown:
        return compute_price(self.selected_service, self.applied_promotion)

    def service_options(self) -> list[dict[str, str]]:
        return [{"value": s.id, "label": service_label(s)} for s in self._services]

    def provider_options(self) -> list[dict[str, str]]:
        service_id = self._draft.service_id
        return [
            {"value": p.id, "label": f"{p.name} · {p.rating:.1f}★"}
            for p in self._providers
            if not service_id or service_id in p.services_offered
        ]

    def review_summary(self) -> dict[str, Any]:
        service = self.selected_service
        provider = self.selected_provider
        promotion = self.applied_promotion
        breakdown = compute_price(service, promotion)

        summary: dict[str, Any] = {
            "service": service.name if service else None,
            "provider": provider.name if provider else None,
            "schedule": f"{self._draft.scheduled_date} · {self._draft.scheduled_time}",
            "location": self._draft.location,
            "notes": self._draft.notes or None,
            "estimated_price": format_cents(breakdown.base_price) if breakdown.base_price else "Provided after confirmation",
        }

        if promotion is not None and breakdown.final_price is not None:
            summary["promo_code"] = promotion.promo_code
            summary["discount"] = f"-{format_cents(breakdown.discount_amount)}"
            summary["total"] = format_cents(breakdown.final_price)

        payable = breakdown.final_price if promotion is not None else breakdown.base_price
        if service is not None and service.requires_deposit and payable is not None:
            split = compute_deposit(payable, service.deposit_percentage)
            summary["deposit_due"] = format_cents(split.deposit_amount)
            summary["balance_due"] = format_cents(split.final_amount)

        return summary

    # ------------------------------------------------------------- submission

    async def submit(self) -> SubmissionResult:
        if self._submitting:
            raise SubmissionInProgressError("A booking submission is already in progress.")
        if self._draft.step != WizardStep.review:
            raise WizardStateError("Bookings can only be submitted from the review step.")

        self._submitting = True
        try:
            service = self.selected_service
            errors = validate_all_steps(self._draft, service)
            scheduled_at = combine_schedule(self._draft.scheduled_date, self._draft.scheduled_time, self._timezone)
            if scheduled_at is None and not errors:
                errors["scheduled_date"] = "Pick a valid date and time."
            if errors:
                self.errors = errors
                raise WizardValidationError(errors)

            promotion = self.applied_promotion
            payload = build_booking_payload(self._draft, scheduled_at, service, promotion)
            self.submission_error = None

            try:
                booking = await self._call_backend(
                    self._backend.create_booking(payload, self._draft.idempotency_key)
                )
            except BackendError as e:
                self.submission_error = str(e) or SUBMISSION_GENERIC_ERROR
                self._logger.error(
                    "Booking creation failed",
                    extra={"service_id": self._draft.service_id, "error": self.submission_error},
                )
                raise BookingSubmissionError(self.submission_error) from e

            self._logger.info("Booking created", extra={"booking_id": booking.id, "service_id": booking.service_id})

            if promotion is not None:
                self._spawn_usage_increment(promotion.id)

            self._store.clear_draft()
            self._draft = BookingDraft()
            self._clear_promotion()
            self.errors = {}
            self.confirmed_booking_id = booking.id
            return SubmissionResult(booking=booking, payload=payload)
        finally:
            self._submitting = False

    def _spawn_usage_increment(self, promotion_id: str) -> None:
        # Detached, never awaited by submit and never retried.
        task = asyncio.create_task(self._increment_usage(promotion_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _increment_usage(self, promotion_id: str) -> None:
        try:
            await self._call_backend(self._backend.increment_promotion_usage(promotion_id))
        except Exception as e:
            self._logger.warning(
                "Promotion usage increment failed",
                extra={"promotion_id": promotion_id, "error": str(e)},
            )

    async def drain_background_tasks(self) -> None:
        """Wait for detached tasks (shutdown, tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _call_backend(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout_seconds)
        except asyncio.TimeoutError as e:
            raise BackendTimeoutError(
                f"Request timed out after {self._timeout_seconds:g} seconds"
            ) from e
