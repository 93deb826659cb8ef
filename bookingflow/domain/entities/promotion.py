from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class DiscountType(str, Enum):
    percentage = "percentage"
    fixed = "fixed"


@dataclass(frozen=True)
class PromotionApplication:
    """A promotion accepted for one (provider, service) pair. Never persisted with the draft."""

    id: str
    promo_code: str
    discount_type: DiscountType
    discount_value: float  # percent (0-100) or major currency units


@dataclass
class Promotion:
    id: str
    provider_id: str
    promo_code: str
    discount_type: DiscountType
    discount_value: float
    applicable_services: tuple[str, ...] = ()  # service names
    start_at: datetime | None = None
    end_at: datetime | None = None
    is_active: bool = True
    usage_count: int = 0

    def to_application(self) -> PromotionApplication:
        return PromotionApplication(
            id=self.id,
            promo_code=self.promo_code,
            discount_type=self.discount_type,
            discount_value=self.discount_value,
        )
