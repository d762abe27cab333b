from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from consultation_api.auth.dependencies import get_optional_user
from consultation_api.database import get_db
from consultation_api.models.consultation_type import ConsultationType
from consultation_api.models.user import User
from consultation_api.routes.common import booking_failure, ensure_database_ready, store_failure
from consultation_api.schemas import (
    AppointmentResponse,
    BookingResponse,
    ConsultationServiceResponse,
    CreateBookingRequest,
    SlotResponse,
    SlotsResponse,
)
from consultation_api.services.booking import BookingError, book_appointment
from consultation_api.services.catalog import list_enabled_services
from consultation_api.services.slots import get_day_slots

router = APIRouter(tags=['consultations'])


def parse_date_param(value: str | None) -> date:
    if not value or not value.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Date requise')

    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Date requise') from exc


@router.get('/services')
def list_services(db: Session = Depends(get_db)) -> dict[str, list[ConsultationServiceResponse]]:
    try:
        services = list_enabled_services(db)
        return {'services': [ConsultationServiceResponse.model_validate(service) for service in services]}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'fetching consultation services') from exc


@router.get('/slots', response_model=SlotsResponse)
def list_slots(
    date: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    target_date = parse_date_param(date)
    ensure_database_ready()

    try:
        slots = get_day_slots(db, target_date)
        return SlotsResponse(slots=[SlotResponse(**slot) for slot in slots])
    except SQLAlchemyError as exc:
        raise store_failure(db, 'fetching slots') from exc


@router.post('/book', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_consultation(
    data: CreateBookingRequest,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    ensure_database_ready()

    try:
        service = db.get(ConsultationType, data.service_id)
        if service is None or not service.enabled:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Service de consultation non trouvé',
            )

        appointment = book_appointment(
            db,
            service,
            data.date,
            data.time,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            customer_email=data.customer_email,
            customer_notes=data.customer_notes,
            user_id=current_user.id if current_user else None,
        )

        return BookingResponse(
            reference=appointment.reference,
            appointment=AppointmentResponse.from_appointment(appointment),
        )
    except BookingError as exc:
        raise booking_failure(exc) from exc
    except SQLAlchemyError as exc:
        raise store_failure(db, 'booking appointment') from exc
