from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from consultation_api.auth.dependencies import get_current_user
from consultation_api.database import get_db
from consultation_api.models.appointment import Appointment, AppointmentStatus
from consultation_api.models.user import User
from consultation_api.routes.common import booking_failure, ensure_database_ready, store_failure
from consultation_api.schemas import (
    AppointmentEnvelope,
    AppointmentListResponse,
    AppointmentResponse,
    CancelAppointmentRequest,
    RescheduleAppointmentRequest,
)
from consultation_api.services.booking import BookingError, cancel_appointment, reschedule_appointment

router = APIRouter(tags=['account'])


def get_owned_appointment(appointment_id: int, user: User, db: Session) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.user_id == user.id,
    ).first()

    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Rendez-vous non trouvé')

    return appointment


@router.get('', response_model=AppointmentListResponse)
def list_my_appointments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: str | None = Query(default=None, alias='status'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    normalized_status = (status_filter or '').strip().upper()
    if normalized_status in {'', 'ALL'}:
        normalized_status = None
    elif normalized_status not in AppointmentStatus.__members__:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Statut invalide')

    try:
        query = db.query(Appointment).filter(Appointment.user_id == current_user.id)
        if normalized_status:
            query = query.filter(Appointment.status == normalized_status)

        total = query.count()
        appointments = query.order_by(
            Appointment.date.desc(),
            Appointment.time.desc(),
        ).offset((page - 1) * limit).limit(limit).all()

        return AppointmentListResponse(
            appointments=[AppointmentResponse.from_appointment(appointment) for appointment in appointments],
            total=total,
            page=page,
            limit=limit,
        )
    except SQLAlchemyError as exc:
        raise store_failure(db, 'fetching customer appointments') from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentEnvelope)
def cancel_my_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_appointment(appointment_id, current_user, db)
        appointment = cancel_appointment(
            db,
            appointment,
            cancelled_by='customer',
            reason=data.reason if data else None,
        )
        return AppointmentEnvelope(appointment=AppointmentResponse.from_appointment(appointment))
    except BookingError as exc:
        raise booking_failure(exc) from exc
    except SQLAlchemyError as exc:
        raise store_failure(db, 'cancelling appointment') from exc


@router.post('/{appointment_id}/reschedule', response_model=AppointmentEnvelope)
def reschedule_my_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_appointment(appointment_id, current_user, db)
        appointment = reschedule_appointment(db, appointment, data.date, data.time)
        return AppointmentEnvelope(appointment=AppointmentResponse.from_appointment(appointment))
    except BookingError as exc:
        raise booking_failure(exc) from exc
    except SQLAlchemyError as exc:
        raise store_failure(db, 'rescheduling appointment') from exc
