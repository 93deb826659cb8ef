from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from bookingflow.application.exceptions import BackendError
from bookingflow.application.ports.booking_backend import BookingBackendPort
from bookingflow.domain.entities.catalog import Booking, Provider, Service
from bookingflow.domain.entities.promotion import Promotion, PromotionApplication

DEFAULT_SERVICES: tuple[Service, ...] = (
    Service(
        id="svc-home-clean",
        name="Home Cleaning",
        description="Detailed cleaning for condos, apartments, and houses.",
        category="Home",
        base_price=12000,
        unit="per visit",
        duration_minutes=120,
    ),
    Service(
        id="svc-personal-training",
        name="Personal Training",
        description="One-on-one fitness session tailored to your goals.",
        category="Wellness",
        base_price=9000,
        unit="per hour",
        duration_minutes=60,
    ),
)

DEFAULT_PROVIDERS: tuple[Provider, ...] = (
    Provider(
        id="prov-ella-hughes",
        name="Ella Hughes",
        rating=4.9,
        review_count=184,
        location="Toronto, ON",
        services_offered=("svc-home-clean",),
    ),
)


class MockBookingBackend(BookingBackendPort):
    """In-memory backend for local runs: fixed catalog, promotions and bookings kept in dicts."""

    def __init__(
        self,
        services: list[Service] | None = None,
        providers: list[Provider] | None = None,
        promotions: list[Promotion] | None = None,
    ) -> None:
        self._services = list(services if services is not None else DEFAULT_SERVICES)
        self._providers = list(providers if providers is not None else DEFAULT_PROVIDERS)
        self._promotions: dict[str, Promotion] = {p.id: p for p in promotions or []}
        self._bookings: dict[str, dict[str, Any]] = {}
        self._bookings_by_key: dict[str, str] = {}
        self._logger = logging.getLogger(__name__)

    @property
    def bookings(self) -> list[dict[str, Any]]:
        return list(self._bookings.values())

    def get_promotion(self, promotion_id: str) -> Promotion | None:
        return self._promotions.get(promotion_id)

    async def fetch_services(self) -> list[Service]:
        return list(self._services)

    async def fetch_providers(self) -> list[Provider]:
        return list(self._providers)

    async def validate_promo_code(self, code: str, provider_id: str, service_name: str) -> PromotionApplication:
        normalized = code.strip().upper()
        promotion = next(
            (
                p
                for p in self._promotions.values()
                if p.promo_code.upper() == normalized and p.provider_id == provider_id
            ),
            None,
        )
        if promotion is None or not promotion.is_active:
            raise BackendError("Invalid promo code", status_code=404)

        now = datetime.now(timezone.utc)
        if promotion.start_at and now < promotion.start_at:
            raise BackendError("This promo code is not active yet", status_code=400)
        if promotion.end_at and now > promotion.end_at:
            raise BackendError("This promo code has expired", status_code=400)
        if promotion.applicable_services and service_name not in promotion.applicable_services:
            raise BackendError("This promo code is not applicable to this service", status_code=400)

        return promotion.to_application()

    async def create_booking(self, payload: dict[str, Any], idempotency_key: str | None = None) -> Booking:
        if idempotency_key and idempotency_key in self._bookings_by_key:
            stored = self._bookings[self._bookings_by_key[idempotency_key]]
            self._logger.info("Replaying booking for idempotency key", extra={"booking_id": stored["id"]})
            return self._to_booking(stored)

        if not payload.get("serviceId") or not payload.get("providerId") or not payload.get("scheduledAt"):
            raise BackendError("serviceId, providerId, and scheduledAt are required.", status_code=400)

        now = datetime.now(timezone.utc).isoformat()
        record = {
            **payload,
            "id": str(uuid.uuid4()),
            "status": payload.get("status") or "draft",
            "createdAt": now,
            "updatedAt": now,
        }
        self._bookings[record["id"]] = record
        if idempotency_key:
            self._bookings_by_key[idempotency_key] = record["id"]

        self._logger.info("Mock booking created", extra={"booking_id": record["id"], "service_id": record["serviceId"]})
        return self._to_booking(record)

    async def increment_promotion_usage(self, promotion_id: str) -> None:
        promotion = self._promotions.get(promotion_id)
        if promotion is None:
            raise BackendError("Promotion not found", status_code=404)
        promotion.usage_count += 1

    @staticmethod
    def _to_booking(record: dict[str, Any]) -> Booking:
        return Booking(
            id=record["id"],
            status=record["status"],
            service_id=record.get("serviceId"),
            provider_id=record.get("providerId"),
            scheduled_at=record.get("scheduledAt"),
            price=record.get("price"),
            raw=dict(record),
        )
