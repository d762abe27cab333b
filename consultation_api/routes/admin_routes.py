import logging
from datetime import date, datetime, time, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from consultation_api.auth.dependencies import require_staff
from consultation_api.database import get_db
from consultation_api.models.appointment import Appointment, AppointmentStatus
from consultation_api.models.availability import AvailabilityRule
from consultation_api.models.consultation_type import ConsultationType
from consultation_api.models.user import User
from consultation_api.routes.common import booking_failure, ensure_database_ready, store_failure
from consultation_api.schemas import (
    AdminAppointmentListResponse,
    AppointmentEnvelope,
    AppointmentResponse,
    AppointmentStatsResponse,
    AvailabilityRuleResponse,
    ConsultationServiceResponse,
    CreateAvailabilityRuleRequest,
    CreateServiceRequest,
    UpdateAppointmentRequest,
    UpdateAvailabilityRuleRequest,
    UpdateServiceRequest,
)
from consultation_api.services.booking import BookingError, commit_slot_write, update_appointment_status
from consultation_api.services.catalog import allocate_slug, next_sort_order, slugify
from consultation_api.services.slots import parse_clock

router = APIRouter(tags=['admin'])

logger = logging.getLogger(__name__)


# ------------------------------------------------------------ availability

@router.get('/availability')
def list_availability_rules(
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> dict[str, list[AvailabilityRuleResponse]]:
    try:
        rules = db.query(AvailabilityRule).order_by(
            AvailabilityRule.day_of_week.asc(),
            AvailabilityRule.id.asc(),
        ).all()
        return {'availability': [AvailabilityRuleResponse.model_validate(rule) for rule in rules]}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'fetching availability') from exc


@router.post('/availability', status_code=status.HTTP_201_CREATED)
def create_availability_rule(
    data: CreateAvailabilityRuleRequest,
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> dict[str, AvailabilityRuleResponse]:
    ensure_database_ready()

    try:
        existing = db.query(AvailabilityRule).filter(AvailabilityRule.day_of_week == data.day_of_week).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Une disponibilité existe déjà pour ce jour',
            )

        rule = AvailabilityRule(
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            slot_duration=data.slot_duration,
            break_between=data.break_between,
            enabled=data.enabled,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)

        logger.info('Availability rule %s created for day %s by user %s', rule.id, rule.day_of_week, staff.id)
        return {'availability': AvailabilityRuleResponse.model_validate(rule)}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'creating availability') from exc


@router.put('/availability')
def update_availability_rule(
    data: UpdateAvailabilityRuleRequest,
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> dict[str, AvailabilityRuleResponse]:
    ensure_database_ready()

    try:
        rule = db.get(AvailabilityRule, data.id)
        if rule is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Disponibilité non trouvée')

        changes = data.model_dump(exclude_unset=True, exclude={'id'})
        for field_name, value in changes.items():
            if value is not None:
                setattr(rule, field_name, value)

        if parse_clock(rule.end_time) <= parse_clock(rule.start_time):
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="L'heure de fin doit être après l'heure de début.",
            )

        db.commit()
        db.refresh(rule)

        logger.info('Availability rule %s updated by user %s', rule.id, staff.id)
        return {'availability': AvailabilityRuleResponse.model_validate(rule)}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'updating availability') from exc


@router.delete('/availability')
def delete_availability_rule(
    rule_id: int = Query(alias='id'),
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    try:
        rule = db.get(AvailabilityRule, rule_id)
        if rule is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Disponibilité non trouvée')

        db.delete(rule)
        db.commit()

        logger.info('Availability rule %s deleted by user %s', rule_id, staff.id)
        return {'success': True}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'deleting availability') from exc


# ---------------------------------------------------------------- services

@router.get('/services')
def list_all_services(
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> dict[str, list[ConsultationServiceResponse]]:
    try:
        services = db.query(ConsultationType).order_by(
            ConsultationType.sort_order.asc(),
            ConsultationType.id.asc(),
        ).all()
        return {'services': [ConsultationServiceResponse.model_validate(service) for service in services]}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'fetching services') from exc


@router.post('/services', status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> dict[str, ConsultationServiceResponse]:
    try:
        service = ConsultationType(
            name=data.name,
            slug=allocate_slug(db, data.name),
            description=data.description,
            price=data.price,
            duration=data.duration,
            features=data.features,
            color=data.color,
            icon=data.icon,
            enabled=data.enabled,
            requires_payment=data.requires_payment,
            sort_order=data.sort_order if data.sort_order is not None else next_sort_order(db),
        )
        db.add(service)
        db.commit()
        db.refresh(service)

        logger.info('Consultation service %s created by user %s', service.slug, staff.id)
        return {'service': ConsultationServiceResponse.model_validate(service)}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'creating service') from exc


@router.put('/services')
def update_service(
    data: UpdateServiceRequest,
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> dict[str, ConsultationServiceResponse]:
    try:
        service = db.get(ConsultationType, data.id)
        if service is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Service non trouvé')

        changes = data.model_dump(exclude_unset=True, exclude={'id'})
        if changes.get('name') is not None:
            # Keep the old slug when the new one belongs to another service.
            candidate = slugify(changes['name'])
            taken = db.query(ConsultationType.id).filter(
                ConsultationType.slug == candidate,
                ConsultationType.id != service.id,
            ).first()
            if taken is None:
                service.slug = candidate

        for field_name, value in changes.items():
            if value is not None:
                setattr(service, field_name, value)

        db.commit()
        db.refresh(service)

        logger.info('Consultation service %s updated by user %s', service.slug, staff.id)
        return {'service': ConsultationServiceResponse.model_validate(service)}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'updating service') from exc


@router.delete('/services')
def delete_service(
    service_id: int = Query(alias='id'),
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    try:
        service = db.get(ConsultationType, service_id)
        if service is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Service non trouvé')

        appointment_count = db.query(Appointment).filter(Appointment.type_id == service_id).count()
        if appointment_count > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f'Ce service a {appointment_count} rendez-vous. '
                    'Désactivez-le plutôt que de le supprimer.'
                ),
            )

        db.delete(service)
        db.commit()

        logger.info('Consultation service %s deleted by user %s', service_id, staff.id)
        return {'success': True}
    except SQLAlchemyError as exc:
        raise store_failure(db, 'deleting service') from exc


# ------------------------------------------------------------ appointments

def _local_midnight_utc(day: date) -> datetime:
    # completed_at is stored as naive UTC; "today" is the server's local calendar day.
    return datetime.combine(day, time.min).astimezone(timezone.utc).replace(tzinfo=None)


def get_appointment_stats(db: Session, today: date) -> AppointmentStatsResponse:
    day_start = _local_midnight_utc(today)
    next_day_start = _local_midnight_utc(today + timedelta(days=1))
    # Weeks start on Sunday, matching the schedule's day numbering.
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    week_end = week_start + timedelta(days=7)

    return AppointmentStatsResponse(
        pending=db.query(Appointment).filter(Appointment.status == AppointmentStatus.PENDING.value).count(),
        confirmed=db.query(Appointment).filter(Appointment.status == AppointmentStatus.CONFIRMED.value).count(),
        completed_today=db.query(Appointment).filter(
            Appointment.status == AppointmentStatus.COMPLETED.value,
            Appointment.completed_at >= day_start,
            Appointment.completed_at < next_day_start,
        ).count(),
        total_this_week=db.query(Appointment).filter(
            Appointment.date >= week_start,
            Appointment.date < week_end,
        ).count(),
    )


@router.get('', response_model=AdminAppointmentListResponse)
def list_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    normalized_status = (status_filter or '').strip().upper() or None
    if normalized_status and normalized_status not in AppointmentStatus.__members__:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Statut invalide')

    try:
        query = db.query(Appointment)
        if normalized_status:
            query = query.filter(Appointment.status == normalized_status)

        total = query.count()
        appointments = query.order_by(
            Appointment.date.desc(),
            Appointment.time.desc(),
        ).offset((page - 1) * limit).limit(limit).all()

        return AdminAppointmentListResponse(
            appointments=[AppointmentResponse.from_appointment(appointment) for appointment in appointments],
            total=total,
            page=page,
            limit=limit,
            stats=get_appointment_stats(db, date.today()),
        )
    except SQLAlchemyError as exc:
        raise store_failure(db, 'fetching appointments') from exc


@router.get('/{appointment_id}', response_model=AppointmentEnvelope)
def get_appointment(
    appointment_id: int,
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    try:
        appointment = db.get(Appointment, appointment_id)
        if appointment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Rendez-vous non trouvé')

        return AppointmentEnvelope(appointment=AppointmentResponse.from_appointment(appointment))
    except SQLAlchemyError as exc:
        raise store_failure(db, 'fetching appointment') from exc


@router.patch('/{appointment_id}', response_model=AppointmentEnvelope)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = db.get(Appointment, appointment_id)
        if appointment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Rendez-vous non trouvé')

        if data.status is not None:
            update_appointment_status(db, appointment, data.status, actor=str(staff.id))
        if data.payment_status is not None:
            appointment.payment_status = data.payment_status.value
        if data.payment_method:
            appointment.payment_method = data.payment_method
        if data.paid_amount is not None:
            appointment.paid_amount = data.paid_amount
        if data.admin_notes is not None:
            appointment.admin_notes = data.admin_notes

        commit_slot_write(db)
        db.refresh(appointment)

        logger.info('Appointment %s updated by user %s', appointment.reference, staff.id)
        return AppointmentEnvelope(appointment=AppointmentResponse.from_appointment(appointment))
    except BookingError as exc:
        raise booking_failure(exc) from exc
    except SQLAlchemyError as exc:
        raise store_failure(db, 'updating appointment') from exc
