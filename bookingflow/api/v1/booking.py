from fastapi import APIRouter, Depends, HTTPException

from bookingflow.api.v1.schemas import (
    CustomValueSchema,
    DraftUpdateSchema,
    OptionSchema,
    PriceSchema,
    PromoCodeSchema,
    PromotionSchema,
    StartRequestSchema,
    StepResponseSchema,
    SubmitResponseSchema,
    WizardStateSchema,
)
from bookingflow.application.exceptions import (
    BookingSubmissionError,
    WizardStateError,
    WizardValidationError,
)
from bookingflow.application.use_cases.booking_wizard import BookingWizard
from bookingflow.domain.entities.booking_draft import STEP_SEQUENCE, WizardStep
from bookingflow.wiring.dependencies import get_booking_wizard

router = APIRouter()


def _state(wizard: BookingWizard) -> WizardStateSchema:
    promotion = wizard.applied_promotion
    breakdown = wizard.price_breakdown()
    draft = wizard.draft
    return WizardStateSchema(
        step=wizard.step.value,
        step_index=draft.step_index,
        steps=[s.value for s in STEP_SEQUENCE],
        draft=draft.to_dict(),
        errors=wizard.errors,
        promo_code=wizard.promo_code_input,
        promo_error=wizard.promo_error,
        applied_promotion=(
            PromotionSchema(
                id=promotion.id,
                promo_code=promotion.promo_code,
                discount_type=promotion.discount_type.value,
                discount_value=promotion.discount_value,
            )
            if promotion
            else None
        ),
        price=PriceSchema(
            base_price=breakdown.base_price,
            discount_amount=breakdown.discount_amount,
            final_price=breakdown.final_price,
        ),
        summary=wizard.review_summary() if wizard.step == WizardStep.review else None,
        service_options=[OptionSchema(**o) for o in wizard.service_options()],
        provider_options=[OptionSchema(**o) for o in wizard.provider_options()],
        submitting=wizard.submitting,
        submission_error=wizard.submission_error,
        confirmed_booking_id=wizard.confirmed_booking_id,
    )


@router.post("/start", response_model=WizardStateSchema)
async def start(req: StartRequestSchema, wizard: BookingWizard = Depends(get_booking_wizard)):
    try:
        await wizard.start(provider_id=req.provider_id)
    except WizardStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _state(wizard)


@router.get("", response_model=WizardStateSchema)
async def get_state(wizard: BookingWizard = Depends(get_booking_wizard)):
    return _state(wizard)


@router.patch("/draft", response_model=WizardStateSchema)
async def update_draft(req: DraftUpdateSchema, wizard: BookingWizard = Depends(get_booking_wizard)):
    try:
        wizard.update(**req.model_dump(exclude_unset=True))
    except WizardStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state(wizard)


@router.put("/draft/custom/{field_id}", response_model=WizardStateSchema)
async def set_custom_value(field_id: str, req: CustomValueSchema, wizard: BookingWizard = Depends(get_booking_wizard)):
    try:
        wizard.set_custom_value(field_id, req.value)
    except WizardStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _state(wizard)


@router.post("/next", response_model=StepResponseSchema)
async def next_step(wizard: BookingWizard = Depends(get_booking_wizard)):
    try:
        advanced = wizard.next()
    except WizardStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return StepResponseSchema(advanced=advanced, state=_state(wizard))


@router.post("/back", response_model=WizardStateSchema)
async def previous_step(wizard: BookingWizard = Depends(get_booking_wizard)):
    try:
        wizard.back()
    except WizardStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _state(wizard)


@router.post("/promo", response_model=WizardStateSchema)
async def apply_promo(req: PromoCodeSchema, wizard: BookingWizard = Depends(get_booking_wizard)):
    try:
        await wizard.apply_promo_code(req.code)
    except WizardStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _state(wizard)


@router.delete("/promo", response_model=WizardStateSchema)
async def remove_promo(wizard: BookingWizard = Depends(get_booking_wizard)):
    try:
        wizard.remove_promo_code()
    except WizardStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _state(wizard)


@router.post("/submit", response_model=SubmitResponseSchema)
async def submit(wizard: BookingWizard = Depends(get_booking_wizard)):
    try:
        result = await wizard.submit()
    except WizardValidationError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors})
    except WizardStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BookingSubmissionError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return SubmitResponseSchema(
        booking_id=result.booking_id,
        confirmation_path=result.confirmation_path,
        payload=result.payload,
    )
