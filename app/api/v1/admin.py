from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from app.api.v1.schemas import (
    BookingListSchema,
    BookingSchema,
    CalendarDaySchema,
    CalendarEntrySchema,
    CalendarSchema,
    LoginSchema,
    NotesUpdateSchema,
    StatsSchema,
    TokenSchema,
)
from app.application.exceptions import (
    AuthenticationError,
    BookingNotFound,
    BookingSubmissionError,
    InvalidStatusTransition,
)
from app.application.ports.auth import AdminUser, AuthPort
from app.application.presenters.booking_calendar import BookingCalendarPresenter
from app.application.presenters.booking_list import BookingListPresenter, BookingRow
from app.application.view_models.booking_view_model import BookingViewModel
from app.domain.entities.booking import StatusFilter
from app.wiring.dependencies import act_as_admin, business_today, get_auth, get_view_model, release_admin

router = APIRouter()
logger = logging.getLogger(__name__)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def require_admin(
    authorization: str | None = Header(None),
    auth: AuthPort = Depends(get_auth),
) -> AdminUser:
    token = _bearer_token(authorization)
    user = await auth.current_user(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    await act_as_admin(token)
    return user


def _row_schema(row: BookingRow) -> BookingSchema:
    return BookingSchema(
        id=row.id,
        phone_number=row.phone_number,
        booking_date=row.booking_date,
        booking_time=row.booking_time,
        car_vin=row.car_vin,
        car_plate=row.car_plate,
        service_type=row.service_type,
        price=float(row.price),
        status=row.status,
        status_color=row.status_color,
        customer_notes=row.customer_notes,
        admin_notes=row.admin_notes,
        created_at=row.created_at,
        can_moderate=row.can_moderate,
    )


def _stats_schema(vm: BookingViewModel) -> StatsSchema:
    stats = vm.stats
    return StatsSchema(
        total=stats.total,
        pending=stats.pending,
        approved=stats.approved,
        declined=stats.declined,
    )


def _list_response(vm: BookingViewModel, status_filter: StatusFilter) -> BookingListSchema:
    presenter = BookingListPresenter(vm, status_filter=status_filter)
    return BookingListSchema(
        status_filter=status_filter,
        version=vm.version,
        loading=vm.loading,
        stats=_stats_schema(vm),
        bookings=[_row_schema(row) for row in presenter.rows()],
    )


def _single_booking(vm: BookingViewModel, booking_id: str) -> BookingSchema:
    rows = [row for row in BookingListPresenter(vm, status_filter=StatusFilter.all).rows() if row.id == booking_id]
    if not rows:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _row_schema(rows[0])


@router.post("/login", response_model=TokenSchema)
async def login(req: LoginSchema, auth: AuthPort = Depends(get_auth)):
    try:
        session = await auth.sign_in(req.email, req.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    logger.info("Admin signed in", extra={"reason": session.user.email})
    return TokenSchema(access_token=session.access_token, email=session.user.email)


@router.post("/logout", status_code=204)
async def logout(
    authorization: str | None = Header(None),
    auth: AuthPort = Depends(get_auth),
    _: AdminUser = Depends(require_admin),
):
    token = _bearer_token(authorization)
    if token:
        await auth.sign_out(token)
        release_admin(token)


@router.get("/bookings", response_model=BookingListSchema)
async def list_bookings(
    status: StatusFilter = Query(StatusFilter.all),
    vm: BookingViewModel = Depends(get_view_model),
    _: AdminUser = Depends(require_admin),
):
    return _list_response(vm, status)


@router.get("/stats", response_model=StatsSchema)
async def get_stats(
    vm: BookingViewModel = Depends(get_view_model),
    _: AdminUser = Depends(require_admin),
):
    return _stats_schema(vm)


@router.get("/calendar", response_model=CalendarSchema)
async def get_calendar(
    year: int | None = Query(None),
    month: int | None = Query(None, ge=1, le=12),
    status: StatusFilter = Query(StatusFilter.all),
    vm: BookingViewModel = Depends(get_view_model),
    _: AdminUser = Depends(require_admin),
):
    presenter = BookingCalendarPresenter(vm, today=business_today(), status_filter=status)
    current_year, current_month = presenter.displayed_month
    presenter.show_month(year or current_year, month or current_month)
    grid = presenter.month_grid()
    return CalendarSchema(
        year=grid.year,
        month=grid.month,
        title=grid.title,
        weekday_labels=list(grid.weekday_labels),
        leading_blanks=grid.leading_blanks,
        days=[
            CalendarDaySchema(
                day=d.day,
                iso_date=d.iso_date,
                is_today=d.is_today,
                entries=[
                    CalendarEntrySchema(
                        id=e.id,
                        booking_time=e.booking_time,
                        car_plate=e.car_plate,
                        status=e.status,
                        status_color=e.status_color,
                    )
                    for e in d.entries
                ],
            )
            for d in grid.days
        ],
    )


@router.post("/bookings/{booking_id}/approve", response_model=BookingSchema)
async def approve_booking(
    booking_id: str,
    vm: BookingViewModel = Depends(get_view_model),
    _: AdminUser = Depends(require_admin),
):
    await _apply(vm.approve(booking_id))
    return _single_booking(vm, booking_id)


@router.post("/bookings/{booking_id}/decline", response_model=BookingSchema)
async def decline_booking(
    booking_id: str,
    vm: BookingViewModel = Depends(get_view_model),
    _: AdminUser = Depends(require_admin),
):
    await _apply(vm.decline(booking_id))
    return _single_booking(vm, booking_id)


@router.put("/bookings/{booking_id}/notes", response_model=BookingSchema)
async def update_notes(
    booking_id: str,
    req: NotesUpdateSchema,
    vm: BookingViewModel = Depends(get_view_model),
    _: AdminUser = Depends(require_admin),
):
    await _apply(vm.set_admin_notes(booking_id, req.admin_notes))
    return _single_booking(vm, booking_id)


@router.post("/refresh", response_model=BookingListSchema)
async def refresh(
    vm: BookingViewModel = Depends(get_view_model),
    _: AdminUser = Depends(require_admin),
):
    await vm.reconcile()
    return _list_response(vm, StatusFilter.all)


async def _apply(action) -> None:
    try:
        await action
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BookingNotFound:
        raise HTTPException(status_code=404, detail="Booking not found")
    except BookingSubmissionError as e:
        raise HTTPException(status_code=502, detail=str(e))
