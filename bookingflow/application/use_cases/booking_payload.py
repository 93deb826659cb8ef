from __future__ import annotations

from datetime import datetime
from typing import Any

from bookingflow.application.utils.pricing import compute_deposit, compute_price
from bookingflow.application.utils.scheduling import to_utc_iso
from bookingflow.domain.entities.booking_draft import BookingDraft
from bookingflow.domain.entities.catalog import Service
from bookingflow.domain.entities.promotion import PromotionApplication

# Client-chosen initial status; the backend may move it on.
INITIAL_BOOKING_STATUS = "upcoming"


def build_booking_payload(
    draft: BookingDraft,
    scheduled_at: datetime,
    service: Service | None,
    promotion: PromotionApplication | None = None,
) -> dict[str, Any]:
    """Build the create-booking request body (camelCase keys, as the REST backend expects)."""
    breakdown = compute_price(service, promotion)
    if promotion is not None and breakdown.final_price is not None:
        effective_price = breakdown.final_price
    else:
        effective_price = breakdown.base_price

    payload: dict[str, Any] = {
        "serviceId": draft.service_id,
        "providerId": draft.provider_id,
        "scheduledAt": to_utc_iso(scheduled_at),
        "location": draft.location,
        "notes": draft.notes,
        "status": INITIAL_BOOKING_STATUS,
        "price": effective_price,
        "originalPrice": breakdown.base_price,
    }

    if draft.idempotency_key:
        payload["idempotencyKey"] = draft.idempotency_key

    if promotion is not None:
        payload.update(
            {
                "promotionId": promotion.id,
                "promoCode": promotion.promo_code,
                "discountType": promotion.discount_type.value,
                "discountValue": promotion.discount_value,
                "discountAmount": breakdown.discount_amount,
            }
        )

    if service is not None and service.requires_deposit and effective_price is not None:
        split = compute_deposit(effective_price, service.deposit_percentage)
        payload.update(
            {
                "depositAmount": split.deposit_amount,
                "finalAmount": split.final_amount,
                "depositPercentage": split.deposit_percentage,
            }
        )

    custom_values = {key: value for key, value in draft.custom_input_values.items() if value}
    if custom_values:
        payload["customInputValues"] = custom_values

    return payload
