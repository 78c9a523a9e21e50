from datetime import date, datetime

from pydantic import BaseModel, Field

from app.domain.entities.booking import StatusFilter


class BookingCreateSchema(BaseModel):
    # Free-form on purpose: field rules are applied by the resolver so the
    # client gets every field error in one response.
    phone_number: str = ""
    booking_date: str = ""
    booking_time: str = ""
    car_vin: str = ""
    car_plate: str = ""
    service_type: str = ""
    customer_notes: str = ""


class BookingCreatedSchema(BaseModel):
    id: str
    price: float
    status: str = "pending"


class ValidationErrorSchema(BaseModel):
    errors: dict[str, str]


class ServiceOfferingSchema(BaseModel):
    id: str
    name_key: str
    base_price: float
    duration_minutes: int


class TimeSlotSchema(BaseModel):
    id: str
    time_slot: str
    order_index: int


class CatalogSchema(BaseModel):
    services: list[ServiceOfferingSchema] = Field(default_factory=list)
    time_slots: list[TimeSlotSchema] = Field(default_factory=list)


class BookingSchema(BaseModel):
    id: str
    phone_number: str
    booking_date: date
    booking_time: str
    car_vin: str | None = None
    car_plate: str
    service_type: str
    price: float
    status: str
    status_color: str
    customer_notes: str | None = None
    admin_notes: str | None = None
    created_at: datetime | None = None
    can_moderate: bool


class StatsSchema(BaseModel):
    total: int
    pending: int
    approved: int
    declined: int


class BookingListSchema(BaseModel):
    status_filter: StatusFilter
    version: int
    loading: bool
    stats: StatsSchema
    bookings: list[BookingSchema]


class NotesUpdateSchema(BaseModel):
    admin_notes: str = ""


class LoginSchema(BaseModel):
    email: str
    password: str


class TokenSchema(BaseModel):
    access_token: str
    token_type: str = "bearer"
    email: str


class CalendarEntrySchema(BaseModel):
    id: str
    booking_time: str
    car_plate: str
    status: str
    status_color: str


class CalendarDaySchema(BaseModel):
    day: int
    iso_date: str
    is_today: bool
    entries: list[CalendarEntrySchema] = Field(default_factory=list)


class CalendarSchema(BaseModel):
    year: int
    month: int
    title: str
    weekday_labels: list[str]
    leading_blanks: int
    days: list[CalendarDaySchema]
