from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.api.v1.schemas import (
    BookingCreateSchema,
    BookingCreatedSchema,
    CatalogSchema,
    ServiceOfferingSchema,
    TimeSlotSchema,
)
from app.application.exceptions import BookingSubmissionError, BookingValidationError
from app.application.use_cases.catalog_cache import CatalogCache
from app.application.use_cases.submit_booking import SubmitBookingUseCase
from app.domain.entities.booking_request import BookingDraft
from app.wiring.dependencies import business_today, get_catalog_cache, get_submit_booking_use_case

router = APIRouter()


@router.get("/catalog", response_model=CatalogSchema)
async def get_catalog(catalog: CatalogCache = Depends(get_catalog_cache)):
    services = await catalog.services()
    time_slots = await catalog.time_slots()
    return CatalogSchema(
        services=[
            ServiceOfferingSchema(
                id=s.id,
                name_key=s.name_key,
                base_price=float(s.base_price),
                duration_minutes=s.duration_minutes,
            )
            for s in services
        ],
        time_slots=[
            TimeSlotSchema(id=t.id, time_slot=t.time_slot, order_index=t.order_index)
            for t in time_slots
        ],
    )


@router.post("/bookings", response_model=BookingCreatedSchema, status_code=201)
async def create_booking(
    req: BookingCreateSchema,
    uc: SubmitBookingUseCase = Depends(get_submit_booking_use_case),
):
    draft = BookingDraft(**req.model_dump())
    try:
        result = await uc.execute(draft, today=business_today())
    except BookingValidationError as e:
        return JSONResponse(status_code=422, content={"errors": e.errors})
    except BookingSubmissionError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return BookingCreatedSchema(id=result.booking_id, price=float(result.price))
