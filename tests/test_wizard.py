"""
Tests for the booking wizard: step gating, promotions, pricing and submission.
"""

from __future__ import annotations

import asyncio
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from bookingflow.application.exceptions import (
    BackendError,
    BookingSubmissionError,
    SubmissionInProgressError,
    WizardStateError,
    WizardValidationError,
)
from bookingflow.application.ports.booking_backend import BookingBackendPort
from bookingflow.application.use_cases.booking_wizard import BookingWizard
from bookingflow.domain.entities.booking_draft import BookingDraft, WizardStep
from bookingflow.domain.entities.catalog import Booking, CustomField, Provider, Service
from bookingflow.domain.entities.promotion import DiscountType, PromotionApplication
from bookingflow.infrastructure.store.memory_store import MemoryDraftStore


HOME_CLEAN = Service(id="svc-home-clean", name="Home Cleaning", base_price=12000, unit="per visit")
DEEP_CLEAN = Service(
    id="svc-deep-clean",
    name="Deep Cleaning",
    base_price=10000,
    requires_deposit=True,
    deposit_percentage=30,
)
GROOMING = Service(
    id="svc-grooming",
    name="Pet Grooming",
    base_price=5000,
    custom_fields=(CustomField(id="breed", label="Breed", required=True), CustomField(id="color", label="Color")),
)
QUOTE_ONLY = Service(id="svc-quote", name="Renovation Quote")
ELLA = Provider(
    id="prov-ella-hughes",
    name="Ella Hughes",
    rating=4.9,
    services_offered=("svc-home-clean", "svc-deep-clean", "svc-grooming", "svc-quote"),
)
SAM = Provider(id="prov-sam", name="Sam Ortiz", rating=4.2, services_offered=("svc-grooming",))

SPRING20 = PromotionApplication(id="promo-1", promo_code="SPRING20", discount_type=DiscountType.percentage, discount_value=20)
TENOFF = PromotionApplication(id="promo-2", promo_code="TENOFF", discount_type=DiscountType.fixed, discount_value=10)


class FakeBackend(BookingBackendPort):
    def __init__(
        self,
        promotion: PromotionApplication | None = None,
        promo_error: BackendError | None = None,
        promo_delay: float = 0.0,
        create_error: BackendError | None = None,
        create_delay: float = 0.0,
        increment_error: Exception | None = None,
        lookup_error: BackendError | None = None,
    ) -> None:
        self.promotion = promotion
        self.promo_error = promo_error
        self.promo_delay = promo_delay
        self.create_error = create_error
        self.create_delay = create_delay
        self.increment_error = increment_error
        self.lookup_error = lookup_error
        self.validate_calls: list[tuple[str, str, str]] = []
        self.create_calls: list[tuple[dict[str, Any], str | None]] = []
        self.increment_calls: list[str] = []

    async def fetch_services(self) -> list[Service]:
        if self.lookup_error:
            raise self.lookup_error
        return [HOME_CLEAN, DEEP_CLEAN, GROOMING, QUOTE_ONLY]

    async def fetch_providers(self) -> list[Provider]:
        if self.lookup_error:
            raise self.lookup_error
        return [ELLA, SAM]

    async def validate_promo_code(self, code: str, provider_id: str, service_name: str) -> PromotionApplication:
        self.validate_calls.append((code, provider_id, service_name))
        if self.promo_delay:
            await asyncio.sleep(self.promo_delay)
        if self.promo_error:
            raise self.promo_error
        if self.promotion is None:
            raise BackendError("Invalid promo code", status_code=404)
        return self.promotion

    async def create_booking(self, payload: dict[str, Any], idempotency_key: str | None = None) -> Booking:
        self.create_calls.append((payload, idempotency_key))
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.create_error:
            raise self.create_error
        return Booking(id="bk-1", service_id=payload["serviceId"], provider_id=payload["providerId"], price=payload["price"])

    async def increment_promotion_usage(self, promotion_id: str) -> None:
        self.increment_calls.append(promotion_id)
        if self.increment_error:
            raise self.increment_error


def make_wizard(
    backend: FakeBackend | None = None,
    store: MemoryDraftStore | None = None,
    timeout_seconds: float = 15.0,
) -> tuple[BookingWizard, FakeBackend, MemoryDraftStore]:
    backend = backend or FakeBackend()
    store = store or MemoryDraftStore()
    wizard = BookingWizard(
        store=store,
        backend=backend,
        timezone=ZoneInfo("America/Toronto"),
        timeout_seconds=timeout_seconds,
    )
    asyncio.run(wizard.start())
    return wizard, backend, store


def fill_to_review(wizard: BookingWizard, service_id: str = "svc-home-clean") -> None:
    wizard.update(service_id=service_id, provider_id="prov-ella-hughes")
    assert wizard.next()
    wizard.update(scheduled_date="2025-03-14", scheduled_time="10:30")
    assert wizard.next()
    wizard.update(location="12 King St W, Toronto")
    assert wizard.next()
    assert wizard.next()  # custom
    assert wizard.next()  # notes
    assert wizard.step == WizardStep.review


def test_start_without_draft_begins_at_service():
    wizard, _, store = make_wizard()

    assert wizard.step == WizardStep.service
    assert wizard.draft == BookingDraft()
    assert store.load_draft() is None
    assert [o["value"] for o in wizard.service_options()] == [
        "svc-home-clean",
        "svc-deep-clean",
        "svc-grooming",
        "svc-quote",
    ]


def test_start_resumes_stored_draft():
    store = MemoryDraftStore()
    store.save_draft(
        BookingDraft(
            service_id="svc-home-clean",
            provider_id="prov-ella-hughes",
            scheduled_date="2025-03-14",
            scheduled_time="10:30",
            step_index=2,
        )
    )

    wizard, _, _ = make_wizard(store=store)

    assert wizard.step == WizardStep.location
    assert wizard.draft.scheduled_time == "10:30"
    assert wizard.selected_service == HOME_CLEAN


def test_start_provider_hint_overrides_stored_provider():
    store = MemoryDraftStore()
    store.save_draft(BookingDraft(service_id="svc-grooming", provider_id="prov-ella-hughes"))
    backend = FakeBackend()
    wizard = BookingWizard(store=store, backend=backend, timezone=ZoneInfo("America/Toronto"))

    asyncio.run(wizard.start(provider_id="prov-sam"))

    assert wizard.draft.provider_id == "prov-sam"
    assert store.load_draft().provider_id == "prov-sam"


def test_start_survives_lookup_failure(caplog):
    wizard, _, _ = make_wizard(backend=FakeBackend(lookup_error=BackendError("Service unavailable", 503)))

    assert wizard.services == []
    assert wizard.providers == []
    assert "Failed to load services" in caplog.text


def test_service_step_requires_service_and_provider():
    wizard, _, _ = make_wizard()

    assert wizard.next() is False
    assert wizard.step == WizardStep.service
    assert set(wizard.errors) == {"service_id", "provider_id"}
    assert all(wizard.errors.values())

    wizard.update(service_id="svc-home-clean")
    assert wizard.next() is False
    assert set(wizard.errors) == {"provider_id"}

    wizard.update(provider_id="prov-ella-hughes")
    assert wizard.next() is True
    assert wizard.draft.step_index == 1
    assert wizard.errors == {}


def test_schedule_and_location_steps_require_their_fields():
    wizard, _, _ = make_wizard()
    wizard.update(service_id="svc-home-clean", provider_id="prov-ella-hughes")
    wizard.next()

    assert wizard.next() is False
    assert set(wizard.errors) == {"scheduled_date", "scheduled_time"}
    wizard.update(scheduled_date="2025-03-14", scheduled_time="   ")
    assert wizard.next() is False
    assert set(wizard.errors) == {"scheduled_time"}
    wizard.update(scheduled_time="10:30")
    assert wizard.next() is True

    assert wizard.next() is False
    assert wizard.errors == {"location": "Add a service location."}
    wizard.update(location="12 King St W")
    assert wizard.next() is True
    assert wizard.step == WizardStep.custom


def test_custom_step_requires_required_fields_only():
    wizard, _, _ = make_wizard()
    wizard.update(service_id="svc-grooming", provider_id="prov-sam")
    wizard.next()
    wizard.update(scheduled_date="2025-03-14", scheduled_time="10:30")
    wizard.next()
    wizard.update(location="Home")
    wizard.next()

    assert wizard.next() is False
    assert wizard.errors == {"custom.breed": "Breed is required."}

    wizard.set_custom_value("breed", "Poodle")
    assert wizard.next() is True
    assert wizard.step == WizardStep.notes

    # notes are optional
    assert wizard.next() is True
    assert wizard.step == WizardStep.review


def test_back_and_next_are_clamped():
    wizard, _, _ = make_wizard()
    wizard.back()
    assert wizard.step == WizardStep.service

    fill_to_review(wizard)
    assert wizard.next() is True
    assert wizard.step == WizardStep.review

    wizard.back()
    assert wizard.step == WizardStep.notes


def test_every_mutation_is_written_through():
    wizard, _, store = make_wizard()

    wizard.update(service_id="svc-home-clean")
    first = store.load_draft()
    assert first.service_id == "svc-home-clean"
    assert first.idempotency_key

    wizard.update(provider_id="prov-ella-hughes")
    wizard.next()
    stored = store.load_draft()
    assert stored.provider_id == "prov-ella-hughes"
    assert stored.step_index == 1
    assert stored.idempotency_key == first.idempotency_key


def test_update_rejects_unknown_fields():
    wizard, _, _ = make_wizard()

    with pytest.raises(ValueError):
        wizard.update(step_index=4)


def test_apply_blank_promo_code_is_rejected_locally():
    wizard, backend, _ = make_wizard(backend=FakeBackend(promotion=SPRING20))
    fill_to_review(wizard)

    assert asyncio.run(wizard.apply_promo_code("   ")) is None
    assert wizard.promo_error == "Enter a promo code."
    assert backend.validate_calls == []


def test_apply_promo_code_percentage():
    wizard, backend, _ = make_wizard(backend=FakeBackend(promotion=SPRING20))
    fill_to_review(wizard)

    promotion = asyncio.run(wizard.apply_promo_code(" spring20 "))

    assert promotion == SPRING20
    assert backend.validate_calls == [("spring20", "prov-ella-hughes", "Home Cleaning")]
    assert wizard.promo_error is None
    breakdown = wizard.price_breakdown()
    assert breakdown.discount_amount == 2400
    assert breakdown.final_price == 9600


def test_rejected_promo_code_surfaces_backend_message():
    backend = FakeBackend(promo_error=BackendError("This promo code is not applicable to this service", 400))
    wizard, _, _ = make_wizard(backend=backend)
    fill_to_review(wizard)

    assert asyncio.run(wizard.apply_promo_code("SPRING20")) is None
    assert wizard.promo_error == "This promo code is not applicable to this service"
    assert wizard.applied_promotion is None
    assert wizard.price_breakdown().final_price == 12000


def test_rejected_promo_code_without_message_uses_fallback():
    wizard, _, _ = make_wizard(backend=FakeBackend(promo_error=BackendError("")))
    fill_to_review(wizard)

    asyncio.run(wizard.apply_promo_code("SPRING20"))

    assert wizard.promo_error == "Unable to apply promo code."


def test_promo_validation_times_out():
    wizard, _, _ = make_wizard(backend=FakeBackend(promotion=SPRING20, promo_delay=1.0), timeout_seconds=0.01)
    fill_to_review(wizard)

    assert asyncio.run(wizard.apply_promo_code("SPRING20")) is None
    assert "timed out" in wizard.promo_error


def test_remove_promo_code_restores_base_price():
    wizard, _, _ = make_wizard(backend=FakeBackend(promotion=SPRING20))
    fill_to_review(wizard)
    asyncio.run(wizard.apply_promo_code("SPRING20"))

    wizard.remove_promo_code()

    assert wizard.applied_promotion is None
    assert wizard.promo_code_input == ""
    breakdown = wizard.price_breakdown()
    assert breakdown.discount_amount == 0
    assert breakdown.final_price == 12000


def test_changing_service_drops_promotion():
    wizard, _, _ = make_wizard(backend=FakeBackend(promotion=SPRING20))
    fill_to_review(wizard)
    asyncio.run(wizard.apply_promo_code("SPRING20"))

    wizard.update(notes="Side door")
    assert wizard.applied_promotion == SPRING20

    wizard.update(service_id="svc-deep-clean")
    assert wizard.applied_promotion is None


def test_service_change_during_promo_validation_discards_result():
    wizard, backend, _ = make_wizard(backend=FakeBackend(promotion=SPRING20, promo_delay=0.05))
    fill_to_review(wizard)

    async def scenario():
        pending = asyncio.create_task(wizard.apply_promo_code("SPRING20"))
        await asyncio.sleep(0.01)
        wizard.update(service_id="svc-deep-clean")
        return await pending

    assert asyncio.run(scenario()) is None
    assert backend.validate_calls == [("SPRING20", "prov-ella-hughes", "Home Cleaning")]
    assert wizard.applied_promotion is None
    breakdown = wizard.price_breakdown()
    assert breakdown.discount_amount == 0
    assert breakdown.final_price == 10000
    assert "promo_code" not in wizard.review_summary()


def test_removing_promo_during_validation_keeps_it_removed():
    wizard, _, _ = make_wizard(backend=FakeBackend(promotion=SPRING20, promo_delay=0.05))
    fill_to_review(wizard)

    async def scenario():
        pending = asyncio.create_task(wizard.apply_promo_code("SPRING20"))
        await asyncio.sleep(0.01)
        wizard.remove_promo_code()
        return await pending

    assert asyncio.run(scenario()) is None
    assert wizard.applied_promotion is None
    assert wizard.promo_code_input == ""
    assert wizard.price_breakdown().final_price == 12000


def test_superseded_promo_rejection_does_not_clear_newer_result():
    class SlowRejectionBackend(FakeBackend):
        async def validate_promo_code(self, code: str, provider_id: str, service_name: str) -> PromotionApplication:
            self.validate_calls.append((code, provider_id, service_name))
            if code == "BOGUS":
                await asyncio.sleep(0.05)
                raise BackendError("Invalid promo code", status_code=404)
            return SPRING20

    wizard, _, _ = make_wizard(backend=SlowRejectionBackend())
    fill_to_review(wizard)

    async def scenario():
        first = asyncio.create_task(wizard.apply_promo_code("BOGUS"))
        await asyncio.sleep(0.01)
        second = await wizard.apply_promo_code("SPRING20")
        assert await first is None
        return second

    assert asyncio.run(scenario()) == SPRING20
    assert wizard.applied_promotion == SPRING20
    assert wizard.promo_error is None
    assert wizard.price_breakdown().final_price == 9600


def test_provider_options_follow_selected_service():
    wizard, _, _ = make_wizard()
    assert len(wizard.provider_options()) == 2

    wizard.update(service_id="svc-home-clean")
    assert wizard.provider_options() == [{"value": "prov-ella-hughes", "label": "Ella Hughes · 4.9★"}]


def test_review_summary_shows_estimated_price():
    wizard, _, _ = make_wizard()
    fill_to_review(wizard)

    summary = wizard.review_summary()

    assert summary["service"] == "Home Cleaning"
    assert summary["provider"] == "Ella Hughes"
    assert summary["schedule"] == "2025-03-14 · 10:30"
    assert summary["estimated_price"] == "$120.00"
    assert summary["notes"] is None


def test_review_summary_without_price():
    wizard, _, _ = make_wizard()
    fill_to_review(wizard, service_id="svc-quote")

    assert wizard.review_summary()["estimated_price"] == "Provided after confirmation"


def test_submit_end_to_end_without_promotion_or_deposit():
    wizard, backend, store = make_wizard()
    fill_to_review(wizard)
    key = store.load_draft().idempotency_key

    result = asyncio.run(wizard.submit())

    assert result.booking_id == "bk-1"
    assert result.confirmation_path == "/app/book/confirm?bookingId=bk-1"
    assert len(backend.create_calls) == 1
    payload, idempotency_key = backend.create_calls[0]
    assert payload == {
        "serviceId": "svc-home-clean",
        "providerId": "prov-ella-hughes",
        "scheduledAt": "2025-03-14T14:30:00Z",
        "location": "12 King St W, Toronto",
        "notes": "",
        "status": "upcoming",
        "price": 12000,
        "originalPrice": 12000,
        "idempotencyKey": key,
    }
    assert idempotency_key == key
    assert store.load_draft() is None
    assert wizard.confirmed_booking_id == "bk-1"
    assert wizard.step == WizardStep.service


def test_submit_with_fixed_promotion_and_deposit():
    wizard, backend, _ = make_wizard(backend=FakeBackend(promotion=TENOFF))
    fill_to_review(wizard, service_id="svc-deep-clean")

    async def scenario():
        await wizard.apply_promo_code("TENOFF")
        result = await wizard.submit()
        await wizard.drain_background_tasks()
        return result

    result = asyncio.run(scenario())

    payload = result.payload
    assert payload["originalPrice"] == 10000
    assert payload["discountAmount"] == 1000
    assert payload["price"] == 9000
    assert payload["promotionId"] == "promo-2"
    assert payload["promoCode"] == "TENOFF"
    assert payload["discountType"] == "fixed"
    assert payload["depositAmount"] == 2700
    assert payload["finalAmount"] == 6300
    assert payload["depositPercentage"] == 30
    assert backend.increment_calls == ["promo-2"]


def test_submit_attaches_custom_values():
    wizard, backend, _ = make_wizard()
    wizard.update(service_id="svc-grooming", provider_id="prov-sam")
    wizard.next()
    wizard.update(scheduled_date="2025-03-14", scheduled_time="10:30")
    wizard.next()
    wizard.update(location="Home")
    wizard.next()
    wizard.set_custom_value("breed", "Poodle")
    wizard.set_custom_value("color", "")
    wizard.next()
    wizard.next()

    asyncio.run(wizard.submit())

    payload, _ = backend.create_calls[0]
    assert payload["customInputValues"] == {"breed": "Poodle"}


def test_failed_submission_keeps_draft():
    backend = FakeBackend(create_error=BackendError("Provider is unavailable", status_code=503))
    wizard, _, store = make_wizard(backend=backend)
    fill_to_review(wizard)
    before = store.load_draft()

    with pytest.raises(BookingSubmissionError, match="Provider is unavailable"):
        asyncio.run(wizard.submit())

    assert store.load_draft() == before
    assert wizard.step == WizardStep.review
    assert wizard.submission_error == "Provider is unavailable"
    assert wizard.submitting is False

    backend.create_error = None
    result = asyncio.run(wizard.submit())
    assert result.booking_id == "bk-1"
    assert backend.create_calls[0][1] == backend.create_calls[1][1]
    assert store.load_draft() is None


def test_overlapping_submissions_create_one_booking():
    wizard, backend, _ = make_wizard(backend=FakeBackend(create_delay=0.05))
    fill_to_review(wizard)

    async def scenario():
        return await asyncio.gather(wizard.submit(), wizard.submit(), return_exceptions=True)

    first, second = asyncio.run(scenario())

    assert first.booking_id == "bk-1"
    assert isinstance(second, SubmissionInProgressError)
    assert len(backend.create_calls) == 1


def test_submit_only_from_review():
    wizard, backend, _ = make_wizard()

    with pytest.raises(WizardStateError):
        asyncio.run(wizard.submit())
    assert backend.create_calls == []


def test_submit_revalidates_all_steps():
    store = MemoryDraftStore()
    store.save_draft(BookingDraft(service_id="svc-home-clean", step_index=5))
    wizard, backend, _ = make_wizard(store=store)

    with pytest.raises(WizardValidationError) as exc_info:
        asyncio.run(wizard.submit())

    assert set(exc_info.value.errors) == {"provider_id", "scheduled_date", "scheduled_time", "location"}
    assert backend.create_calls == []
    assert store.load_draft() is not None


def test_submit_rejects_malformed_schedule():
    wizard, backend, _ = make_wizard()
    fill_to_review(wizard)
    wizard.update(scheduled_date="next friday")

    with pytest.raises(WizardValidationError):
        asyncio.run(wizard.submit())
    assert backend.create_calls == []


def test_promotion_usage_failure_does_not_affect_booking(caplog):
    backend = FakeBackend(promotion=SPRING20, increment_error=BackendError("Promotion not found", 404))
    wizard, _, store = make_wizard(backend=backend)
    fill_to_review(wizard)

    async def scenario():
        await wizard.apply_promo_code("SPRING20")
        result = await wizard.submit()
        await wizard.drain_background_tasks()
        return result

    result = asyncio.run(scenario())

    assert result.booking_id == "bk-1"
    assert result.payload["price"] == 9600
    assert backend.increment_calls == ["promo-1"]
    assert store.load_draft() is None
    assert "Promotion usage increment failed" in caplog.text


def test_draft_is_locked_while_submitting():
    backend = FakeBackend(create_delay=0.05, create_error=BackendError("Provider is unavailable", 503))
    wizard, _, store = make_wizard(backend=backend)
    fill_to_review(wizard)

    async def scenario():
        pending = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0.01)
        assert wizard.submitting is True
        with pytest.raises(SubmissionInProgressError):
            wizard.update(location="Suite 900, 1 Front St")
        with pytest.raises(SubmissionInProgressError):
            wizard.set_custom_value("breed", "Poodle")
        with pytest.raises(SubmissionInProgressError):
            wizard.back()
        with pytest.raises(SubmissionInProgressError):
            wizard.next()
        with pytest.raises(SubmissionInProgressError):
            wizard.remove_promo_code()
        with pytest.raises(SubmissionInProgressError):
            await wizard.apply_promo_code("SPRING20")
        with pytest.raises(BookingSubmissionError):
            await pending

    asyncio.run(scenario())

    assert wizard.step == WizardStep.review
    assert wizard.draft.location == "12 King St W, Toronto"
    assert store.load_draft().location == "12 King St W, Toronto"
    assert backend.validate_calls == []

    wizard.update(location="Suite 900, 1 Front St")
    assert store.load_draft().location == "Suite 900, 1 Front St"
