from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from consultation_api.models.appointment import Appointment, AppointmentStatus, PaymentStatus
from consultation_api.services.slots import normalize_clock, parse_clock

MAX_CUSTOMER_NOTES_LENGTH = 1000


class CamelModel(BaseModel):
    """Accepts and renders the camelCase keys used by the storefront."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


def _normalize_required(value: str, message: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(message)
    return normalized


def _normalize_optional(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def _normalize_clock_field(value: str) -> str:
    try:
        return normalize_clock(value)
    except ValueError as exc:
        raise ValueError('Heure invalide, format attendu HH:MM.') from exc


# ---------------------------------------------------------------- services

class ConsultationServiceResponse(CamelModel):
    id: int
    name: str
    slug: str
    description: str
    price: int
    duration: int
    features: list[str]
    color: str
    icon: str
    enabled: bool
    requires_payment: bool
    sort_order: int


class CreateServiceRequest(CamelModel):
    name: str
    description: str = ''
    price: int = Field(default=0, ge=0)
    duration: int = Field(default=60, gt=0)
    features: list[str] = Field(default_factory=list)
    color: str = '#8b5cf6'
    icon: str = 'sparkles'
    enabled: bool = True
    requires_payment: bool = True
    sort_order: int | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _normalize_required(value, 'Le nom est requis')


class UpdateServiceRequest(CamelModel):
    id: int
    name: str | None = None
    description: str | None = None
    price: int | None = Field(default=None, ge=0)
    duration: int | None = Field(default=None, gt=0)
    features: list[str] | None = None
    color: str | None = None
    icon: str | None = None
    enabled: bool | None = None
    requires_payment: bool | None = None
    sort_order: int | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_required(value, 'Le nom est requis')


# ------------------------------------------------------------ availability

class SlotResponse(BaseModel):
    time: str
    available: bool


class SlotsResponse(BaseModel):
    slots: list[SlotResponse]


class AvailabilityRuleResponse(CamelModel):
    id: int
    day_of_week: int
    start_time: str
    end_time: str
    slot_duration: int
    break_between: int
    enabled: bool


class CreateAvailabilityRuleRequest(CamelModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    slot_duration: int = Field(default=60, gt=0)
    break_between: int = Field(default=15, ge=0)
    enabled: bool = True

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_clock(cls, value: str) -> str:
        return _normalize_clock_field(value)

    @model_validator(mode='after')
    def validate_window(self):
        if parse_clock(self.end_time) <= parse_clock(self.start_time):
            raise ValueError("L'heure de fin doit être après l'heure de début.")
        return self


class UpdateAvailabilityRuleRequest(CamelModel):
    id: int
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: str | None = None
    end_time: str | None = None
    slot_duration: int | None = Field(default=None, gt=0)
    break_between: int | None = Field(default=None, ge=0)
    enabled: bool | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_clock(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_clock_field(value)


# ------------------------------------------------------------ appointments

class CreateBookingRequest(CamelModel):
    service_id: int
    date: date
    time: str
    customer_name: str
    customer_phone: str
    customer_email: str | None = None
    customer_notes: str | None = None

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _normalize_clock_field(value)

    @field_validator('customer_name')
    @classmethod
    def validate_customer_name(cls, value: str) -> str:
        return _normalize_required(value, 'Le nom est requis')

    @field_validator('customer_phone')
    @classmethod
    def validate_customer_phone(cls, value: str) -> str:
        normalized = _normalize_required(value, 'Le téléphone est requis')
        return ''.join(normalized.split())

    @field_validator('customer_email')
    @classmethod
    def validate_customer_email(cls, value: str | None) -> str | None:
        normalized = _normalize_optional(value)
        return normalized.lower() if normalized else None

    @field_validator('customer_notes')
    @classmethod
    def validate_customer_notes(cls, value: str | None) -> str | None:
        normalized = _normalize_optional(value)
        if normalized and len(normalized) > MAX_CUSTOMER_NOTES_LENGTH:
            raise ValueError(f'Les notes doivent faire au plus {MAX_CUSTOMER_NOTES_LENGTH} caractères.')
        return normalized


class CancelAppointmentRequest(CamelModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_optional(value)


class RescheduleAppointmentRequest(CamelModel):
    date: date
    time: str

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _normalize_clock_field(value)


class UpdateAppointmentRequest(CamelModel):
    status: AppointmentStatus | None = None
    payment_status: PaymentStatus | None = None
    payment_method: str | None = None
    paid_amount: int | None = Field(default=None, ge=0)
    admin_notes: str | None = None


class AppointmentResponse(CamelModel):
    id: int
    reference: str
    service_id: int
    service_name: str | None = None
    customer_name: str
    customer_phone: str
    customer_email: str | None = None
    customer_notes: str | None = None
    date: date
    time: str
    duration: int
    price: int
    status: str
    payment_status: str
    payment_method: str | None = None
    paid_amount: int | None = None
    admin_notes: str | None = None
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> 'AppointmentResponse':
        return cls(
            id=appointment.id,
            reference=appointment.reference,
            service_id=appointment.type_id,
            service_name=appointment.type.name if appointment.type else None,
            customer_name=appointment.customer_name,
            customer_phone=appointment.customer_phone,
            customer_email=appointment.customer_email,
            customer_notes=appointment.customer_notes,
            date=appointment.date,
            time=appointment.time,
            duration=appointment.duration,
            price=appointment.price,
            status=appointment.status,
            payment_status=appointment.payment_status,
            payment_method=appointment.payment_method,
            paid_amount=appointment.paid_amount,
            admin_notes=appointment.admin_notes,
            confirmed_at=appointment.confirmed_at,
            completed_at=appointment.completed_at,
            cancelled_at=appointment.cancelled_at,
            created_at=appointment.created_at,
        )


class BookingResponse(CamelModel):
    success: bool = True
    reference: str
    appointment: AppointmentResponse


class AppointmentEnvelope(CamelModel):
    success: bool = True
    appointment: AppointmentResponse


class AppointmentListResponse(CamelModel):
    appointments: list[AppointmentResponse]
    total: int
    page: int
    limit: int


class AppointmentStatsResponse(CamelModel):
    pending: int
    confirmed: int
    completed_today: int
    total_this_week: int


class AdminAppointmentListResponse(AppointmentListResponse):
    stats: AppointmentStatsResponse
