"""Booking writer: create, reschedule, cancel and transition appointments.

Every write that puts an appointment on a slot is guarded twice: a read
against the ledger gives a readable error in the common case, and the
``uq_appointments_active_slot`` index turns the remaining race (two clients
passing the read at the same moment) into an ``IntegrityError`` at commit,
reported here as ``BookingConflictError``.
"""

import logging
import secrets
import string
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from consultation_api.core import config
from consultation_api.database import ACTIVE_SLOT_INDEX_NAME
from consultation_api.models.appointment import Appointment, AppointmentStatus, PaymentStatus, utcnow
from consultation_api.models.consultation_type import ConsultationType
from consultation_api.services.slots import generate_slots, normalize_clock, select_rule

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_SUFFIX_LENGTH = 6
MODIFIABLE_STATUSES = {AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value}


class BookingError(Exception):
    """Base class for booking failures that are the caller's to fix."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BookingConflictError(BookingError):
    pass


class SlotNotOfferedError(BookingError):
    pass


class PastDateError(BookingError):
    pass


class InvalidTransitionError(BookingError):
    pass


def generate_reference(year: int | None = None) -> str:
    year = year or date.today().year
    suffix = ''.join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_SUFFIX_LENGTH))
    return f'{config.APPOINTMENT_REFERENCE_PREFIX}-{year}-{suffix}'


def allocate_reference(db: Session) -> str:
    reference = generate_reference()
    for _ in range(config.APPOINTMENT_REFERENCE_ATTEMPTS):
        taken = db.query(Appointment.id).filter(Appointment.reference == reference).first()
        if taken is None:
            break
        reference = generate_reference()

    return reference


def is_active_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig) if getattr(exc, 'orig', None) is not None else str(exc)
    # PostgreSQL names the index, SQLite names the columns.
    return ACTIVE_SLOT_INDEX_NAME in message or 'appointments.date, appointments.time' in message


def commit_slot_write(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_active_slot_violation(exc):
            raise BookingConflictError("Ce créneau n'est plus disponible. Veuillez en choisir un autre.") from exc
        raise


def find_active_appointment(
    db: Session,
    target_date: date,
    slot_time: str,
    exclude_appointment_id: int | None = None,
) -> Appointment | None:
    query = db.query(Appointment).filter(
        Appointment.date == target_date,
        Appointment.time == slot_time,
        Appointment.status != AppointmentStatus.CANCELLED.value,
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)

    return query.first()


def ensure_slot_offered(db: Session, target_date: date, slot_time: str, today: date | None = None) -> str:
    """Validate a requested slot and return its canonical ``HH:MM`` form."""
    today = today or date.today()
    if target_date < today:
        raise PastDateError('Impossible de réserver une date passée.')

    try:
        normalized_time = normalize_clock(slot_time)
    except ValueError as exc:
        raise SlotNotOfferedError('Heure invalide.') from exc

    if normalized_time not in generate_slots(select_rule(db, target_date)):
        raise SlotNotOfferedError("Ce créneau n'est pas proposé à cette date.")

    return normalized_time


def book_appointment(
    db: Session,
    service: ConsultationType,
    target_date: date,
    slot_time: str,
    *,
    customer_name: str,
    customer_phone: str,
    customer_email: str | None = None,
    customer_notes: str | None = None,
    user_id: int | None = None,
    today: date | None = None,
) -> Appointment:
    normalized_time = ensure_slot_offered(db, target_date, slot_time, today=today)

    if find_active_appointment(db, target_date, normalized_time) is not None:
        logger.info('Slot %s %s already taken', target_date.isoformat(), normalized_time)
        raise BookingConflictError("Ce créneau n'est plus disponible. Veuillez en choisir un autre.")

    appointment = Appointment(
        reference=allocate_reference(db),
        type_id=service.id,
        user_id=user_id,
        customer_name=customer_name,
        customer_phone=customer_phone,
        customer_email=customer_email or None,
        customer_notes=customer_notes or None,
        date=target_date,
        time=normalized_time,
        duration=service.duration,
        price=service.price,
        status=AppointmentStatus.PENDING.value,
        payment_status=PaymentStatus.PAID.value if service.price == 0 else PaymentStatus.UNPAID.value,
    )
    db.add(appointment)
    try:
        commit_slot_write(db)
    except BookingConflictError:
        logger.warning('Concurrent booking lost the race for %s %s', target_date.isoformat(), normalized_time)
        raise
    db.refresh(appointment)

    logger.info(
        'Booked appointment %s for %s %s (service %s)',
        appointment.reference,
        target_date.isoformat(),
        normalized_time,
        service.slug,
    )
    return appointment


def cancel_appointment(
    db: Session,
    appointment: Appointment,
    *,
    cancelled_by: str,
    reason: str | None = None,
) -> Appointment:
    if appointment.status not in MODIFIABLE_STATUSES:
        raise InvalidTransitionError('Ce rendez-vous ne peut plus être annulé.')

    appointment.status = AppointmentStatus.CANCELLED.value
    appointment.cancelled_at = utcnow()
    appointment.cancelled_by = cancelled_by
    if reason:
        appointment.admin_notes = f'Raison client: {reason}'

    db.commit()
    db.refresh(appointment)

    logger.info('Cancelled appointment %s (by %s)', appointment.reference, cancelled_by)
    return appointment


def reschedule_appointment(
    db: Session,
    appointment: Appointment,
    target_date: date,
    slot_time: str,
    today: date | None = None,
) -> Appointment:
    if appointment.status not in MODIFIABLE_STATUSES:
        raise InvalidTransitionError('Ce rendez-vous ne peut plus être modifié.')

    normalized_time = ensure_slot_offered(db, target_date, slot_time, today=today)

    if find_active_appointment(db, target_date, normalized_time, exclude_appointment_id=appointment.id):
        raise BookingConflictError("Ce créneau n'est plus disponible.")

    previous = f'{appointment.date.isoformat()} {appointment.time}'
    appointment.date = target_date
    appointment.time = normalized_time
    appointment.status = AppointmentStatus.PENDING.value
    appointment.confirmed_at = None
    appointment.confirmed_by = None
    commit_slot_write(db)
    db.refresh(appointment)

    logger.info(
        'Rescheduled appointment %s from %s to %s %s',
        appointment.reference,
        previous,
        target_date.isoformat(),
        normalized_time,
    )
    return appointment


def update_appointment_status(
    db: Session,
    appointment: Appointment,
    new_status: AppointmentStatus,
    actor: str,
) -> None:
    """Move an appointment to ``new_status`` and stamp who did it.

    The caller commits through ``commit_slot_write`` so that reviving a
    cancelled appointment onto a slot taken in the meantime is a conflict.
    """
    if (
        appointment.status == AppointmentStatus.CANCELLED.value
        and new_status != AppointmentStatus.CANCELLED
        and find_active_appointment(db, appointment.date, appointment.time, exclude_appointment_id=appointment.id)
    ):
        raise BookingConflictError("Ce créneau a été réservé depuis l'annulation.")

    appointment.status = new_status.value
    now = utcnow()
    if new_status == AppointmentStatus.CONFIRMED:
        appointment.confirmed_at = now
        appointment.confirmed_by = actor
    elif new_status == AppointmentStatus.COMPLETED:
        appointment.completed_at = now
        appointment.completed_by = actor
    elif new_status == AppointmentStatus.CANCELLED:
        appointment.cancelled_at = now
        appointment.cancelled_by = actor
