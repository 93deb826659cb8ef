from pydantic import BaseModel, ConfigDict, Field
from typing import Any


class StartRequestSchema(BaseModel):
    provider_id: str | None = None


class DraftUpdateSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service_id: str | None = None
    provider_id: str | None = None
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    location: str | None = None
    notes: str | None = None
    price: int | str | None = None


class CustomValueSchema(BaseModel):
    value: str = ""


class PromoCodeSchema(BaseModel):
    code: str = ""


class OptionSchema(BaseModel):
    value: str
    label: str


class PromotionSchema(BaseModel):
    id: str
    promo_code: str
    discount_type: str
    discount_value: float


class PriceSchema(BaseModel):
    base_price: int | None = None
    discount_amount: int = 0
    final_price: int | None = None


class WizardStateSchema(BaseModel):
    step: str
    step_index: int
    steps: list[str]
    draft: dict[str, Any]
    errors: dict[str, str] = Field(default_factory=dict)
    promo_code: str = ""
    promo_error: str | None = None
    applied_promotion: PromotionSchema | None = None
    price: PriceSchema
    summary: dict[str, Any] | None = None
    service_options: list[OptionSchema] = Field(default_factory=list)
    provider_options: list[OptionSchema] = Field(default_factory=list)
    submitting: bool = False
    submission_error: str | None = None
    confirmed_booking_id: str | None = None


class StepResponseSchema(BaseModel):
    advanced: bool
    state: WizardStateSchema


class SubmitResponseSchema(BaseModel):
    booking_id: str
    confirmation_path: str
    payload: dict[str, Any]
