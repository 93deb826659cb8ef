from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CustomField:
    id: str
    label: str
    required: bool = False


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    base_price: int | None = None  # cents
    unit: str = ""
    duration_minutes: int | None = None
    category: str | None = None
    description: str | None = None
    requires_deposit: bool = False
    deposit_percentage: float = 0
    custom_fields: tuple[CustomField, ...] = ()


@dataclass(frozen=True)
class Provider:
    id: str
    name: str
    rating: float = 0.0
    review_count: int = 0
    location: str | None = None
    services_offered: tuple[str, ...] = ()


@dataclass(frozen=True)
class Booking:
    id: str
    status: str = "upcoming"
    service_id: str | None = None
    provider_id: str | None = None
    scheduled_at: str | None = None
    price: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)
