from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from bookingflow.domain.entities.catalog import Booking, Provider, Service
from bookingflow.domain.entities.promotion import PromotionApplication


class BookingBackendPort(ABC):
    @abstractmethod
    async def fetch_services(self) -> list[Service]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_providers(self) -> list[Provider]:
        raise NotImplementedError

    @abstractmethod
    async def validate_promo_code(self, code: str, provider_id: str, service_name: str) -> PromotionApplication:
        """Validate a promo code for a provider's service. Raises BackendError when rejected."""
        raise NotImplementedError

    @abstractmethod
    async def create_booking(self, payload: dict[str, Any], idempotency_key: str | None = None) -> Booking:
        """Create a booking. Raises BackendError on rejection."""
        raise NotImplementedError

    @abstractmethod
    async def increment_promotion_usage(self, promotion_id: str) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release transport resources. Adapters without any keep this no-op."""
        return None
