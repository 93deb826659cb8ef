from __future__ import annotations

import logging
from typing import Any

import httpx

from bookingflow.application.exceptions import BackendError, BackendTimeoutError
from bookingflow.application.ports.booking_backend import BookingBackendPort
from bookingflow.core.config import settings
from bookingflow.domain.entities.catalog import Booking, CustomField, Provider, Service
from bookingflow.domain.entities.promotion import DiscountType, PromotionApplication


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key; the backend mixes camelCase and snake_case."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_dict(body: Any) -> dict[str, Any]:
    return body if isinstance(body, dict) else {}


def parse_service(data: dict[str, Any]) -> Service:
    base_price = _pick(data, "basePrice", "base_price")
    custom_fields = tuple(
        CustomField(
            id=str(item.get("id")),
            label=item.get("label") or item.get("name") or str(item.get("id")),
            required=bool(item.get("required", False)),
        )
        for item in _pick(data, "customFields", "custom_fields", default=[])
        if isinstance(item, dict) and item.get("id") is not None
    )
    return Service(
        id=str(data["id"]),
        name=data.get("name") or "",
        base_price=int(base_price) if base_price is not None else None,
        unit=data.get("unit") or "",
        duration_minutes=_pick(data, "duration", "durationMinutes", "duration_minutes"),
        category=data.get("category"),
        description=data.get("description"),
        requires_deposit=bool(_pick(data, "requiresDeposit", "requires_deposit", default=False)),
        deposit_percentage=_pick(data, "depositPercentage", "deposit_percentage", default=0),
        custom_fields=custom_fields,
    )


def parse_provider(data: dict[str, Any]) -> Provider:
    return Provider(
        id=str(data["id"]),
        name=data.get("name") or "",
        rating=float(data.get("rating") or 0),
        review_count=int(_pick(data, "reviewCount", "review_count", default=0)),
        location=data.get("location"),
        services_offered=tuple(_pick(data, "servicesOffered", "services_offered", default=[])),
    )


def parse_promotion(data: dict[str, Any]) -> PromotionApplication:
    try:
        return PromotionApplication(
            id=str(data["id"]),
            promo_code=_pick(data, "promoCode", "promo_code", default=""),
            discount_type=DiscountType(_pick(data, "discountType", "discount_type")),
            discount_value=float(_pick(data, "discountValue", "discount_value", default=0)),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise BackendError(f"Malformed promotion in backend response: {e}") from e


def parse_booking(data: dict[str, Any]) -> Booking:
    if not data or data.get("id") is None:
        raise BackendError("No booking ID returned from backend")
    return Booking(
        id=str(data["id"]),
        status=data.get("status") or "upcoming",
        service_id=_pick(data, "serviceId", "service_id"),
        provider_id=_pick(data, "providerId", "provider_id"),
        scheduled_at=_pick(data, "scheduledAt", "scheduled_at"),
        price=data.get("price"),
        raw=dict(data),
    )


class HttpBookingBackend(BookingBackendPort):
    def __init__(
        self,
        base_url: str | None = None,
        user_id: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.BACKEND_BASE_URL or "").rstrip("/")
        self._user_id = user_id or settings.BACKEND_USER_ID
        if not self._base_url:
            raise ValueError("BACKEND_BASE_URL is required for the HTTP booking backend")

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout or settings.BACKEND_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._logger = logging.getLogger(__name__)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._user_id:
            headers["x-user-id"] = self._user_id
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            resp = await self._client.request(method, path, json=json, headers=self._headers(headers))
        except httpx.TimeoutException as e:
            self._logger.error("Backend request timed out", extra={"path": path, "error": str(e)})
            raise BackendTimeoutError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            self._logger.error("Backend request failed", extra={"path": path, "error": str(e)})
            raise BackendError(f"Request to {path} failed: {e}") from e

        is_json = "application/json" in resp.headers.get("content-type", "")
        try:
            body = resp.json() if is_json else resp.text
        except ValueError:
            body = resp.text

        if resp.status_code >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            self._logger.error(
                "Backend request rejected",
                extra={"path": path, "status": resp.status_code, "error": message},
            )
            raise BackendError(message or "Request failed", status_code=resp.status_code)

        return body

    async def fetch_services(self) -> list[Service]:
        data = await self._request("GET", "/services")
        try:
            return [parse_service(item) for item in _as_dict(data).get("services", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise BackendError(f"Malformed services response: {e}") from e

    async def fetch_providers(self) -> list[Provider]:
        data = await self._request("GET", "/providers")
        try:
            return [parse_provider(item) for item in _as_dict(data).get("providers", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise BackendError(f"Malformed providers response: {e}") from e

    async def validate_promo_code(self, code: str, provider_id: str, service_name: str) -> PromotionApplication:
        data = await self._request(
            "POST",
            "/promotions/validate",
            json={"promoCode": code, "providerId": provider_id, "serviceName": service_name},
        )
        promotion = _as_dict(data).get("promotion")
        if not promotion:
            raise BackendError("Invalid promo code")
        return parse_promotion(promotion)

    async def create_booking(self, payload: dict[str, Any], idempotency_key: str | None = None) -> Booking:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        data = await self._request("POST", "/bookings", json=payload, headers=headers)
        booking = parse_booking(_as_dict(data).get("booking") or {})
        self._logger.info("Booking created", extra={"booking_id": booking.id})
        return booking

    async def increment_promotion_usage(self, promotion_id: str) -> None:
        await self._request("POST", f"/promotions/{promotion_id}/increment-usage")
