from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from bookingflow.domain.entities.catalog import Service
from bookingflow.domain.entities.promotion import DiscountType, PromotionApplication


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: int | None
    discount_amount: int
    final_price: int | None

    @property
    def has_discount(self) -> bool:
        return self.discount_amount > 0


@dataclass(frozen=True)
class DepositSplit:
    deposit_percentage: float
    deposit_amount: int
    final_amount: int


def _to_decimal(value: int | float) -> Decimal:
    return Decimal(str(value))


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_discount(base_price: int | None, promotion: PromotionApplication | None) -> int:
    """Discount in cents. Percentage rounds half up; fixed values are dollars, capped at the base price."""
    if promotion is None or base_price is None:
        return 0

    value = _to_decimal(promotion.discount_value)
    if promotion.discount_type == DiscountType.percentage:
        return _round_half_up(_to_decimal(base_price) * value / 100)

    return min(_round_half_up(value * 100), base_price)


def compute_price(service: Service | None, promotion: PromotionApplication | None) -> PriceBreakdown:
    base_price = service.base_price if service else None
    discount_amount = compute_discount(base_price, promotion)
    final_price = base_price - discount_amount if base_price is not None else None
    return PriceBreakdown(base_price=base_price, discount_amount=discount_amount, final_price=final_price)


def compute_deposit(amount: int, deposit_percentage: float) -> DepositSplit:
    """Split an amount into a truncated deposit and the remainder due later."""
    deposit_amount = int((_to_decimal(amount) * _to_decimal(deposit_percentage) / 100).to_integral_value(rounding=ROUND_DOWN))
    return DepositSplit(
        deposit_percentage=deposit_percentage,
        deposit_amount=deposit_amount,
        final_amount=amount - deposit_amount,
    )


def format_cents(cents: int) -> str:
    return f"${Decimal(cents) / 100:,.2f}"


def service_label(service: Service) -> str:
    if service.base_price is None:
        return service.name
    label = f"{service.name} · {format_cents(service.base_price)}"
    return f"{label} {service.unit}" if service.unit else label
