import os
import time as clock
from datetime import date, datetime, time, timedelta, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from consultation_api.auth.dependencies import require_staff
from consultation_api.models.appointment import Appointment, AppointmentStatus
from consultation_api.models.consultation_type import ConsultationType
from consultation_api.routes.admin_routes import (
    create_availability_rule,
    create_service,
    delete_availability_rule,
    delete_service,
    get_appointment,
    get_appointment_stats,
    list_all_services,
    list_appointments,
    list_availability_rules,
    update_appointment,
    update_availability_rule,
    update_service,
)
from consultation_api.schemas import (
    CreateAvailabilityRuleRequest,
    CreateServiceRequest,
    UpdateAppointmentRequest,
    UpdateAvailabilityRuleRequest,
    UpdateServiceRequest,
)


def test_require_staff_rejects_customers(customer) -> None:
    with pytest.raises(HTTPException) as exception_info:
        require_staff(user=customer)

    assert exception_info.value.status_code == 401


def test_require_staff_accepts_admins(admin) -> None:
    assert require_staff(user=admin) is admin


def test_create_availability_rule_request_normalizes_times() -> None:
    request = CreateAvailabilityRuleRequest(dayOfWeek=2, startTime='9:00', endTime='18:00')

    assert request.start_time == '09:00'
    assert request.slot_duration == 60
    assert request.break_between == 15
    assert request.enabled is True


@pytest.mark.parametrize(
    'payload',
    [
        {'dayOfWeek': 7, 'startTime': '09:00', 'endTime': '18:00'},
        {'dayOfWeek': 1, 'startTime': '18:00', 'endTime': '09:00'},
        {'dayOfWeek': 1, 'startTime': '09:00', 'endTime': '18:00', 'slotDuration': 0},
        {'dayOfWeek': 1, 'startTime': 'matin', 'endTime': '18:00'},
    ],
)
def test_create_availability_rule_request_rejects_invalid_rules(payload: dict) -> None:
    with pytest.raises(ValidationError):
        CreateAvailabilityRuleRequest(**payload)


def test_create_availability_rule_refuses_second_rule_for_same_day(db_session, admin, monday_rule) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_availability_rule(
            data=CreateAvailabilityRuleRequest(dayOfWeek=1, startTime='14:00', endTime='18:00'),
            staff=admin,
            db=db_session,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Une disponibilité existe déjà pour ce jour'


def test_availability_rule_lifecycle(db_session, admin) -> None:
    created = create_availability_rule(
        data=CreateAvailabilityRuleRequest(dayOfWeek=6, startTime='09:00', endTime='13:00'),
        staff=admin,
        db=db_session,
    )['availability']

    updated = update_availability_rule(
        data=UpdateAvailabilityRuleRequest(id=created.id, endTime='14:00', breakBetween=0),
        staff=admin,
        db=db_session,
    )['availability']

    assert updated.start_time == '09:00'
    assert updated.end_time == '14:00'
    assert updated.break_between == 0
    assert updated.slot_duration == 60

    listed = list_availability_rules(staff=admin, db=db_session)['availability']
    assert [rule.id for rule in listed] == [created.id]

    assert delete_availability_rule(rule_id=created.id, staff=admin, db=db_session) == {'success': True}
    assert list_availability_rules(staff=admin, db=db_session)['availability'] == []


def test_update_availability_rule_rejects_inverted_window(db_session, admin, monday_rule) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_availability_rule(
            data=UpdateAvailabilityRuleRequest(id=monday_rule.id, endTime='08:00'),
            staff=admin,
            db=db_session,
        )

    assert exception_info.value.status_code == 400


def test_delete_availability_rule_returns_not_found(db_session, admin) -> None:
    with pytest.raises(HTTPException) as exception_info:
        delete_availability_rule(rule_id=42, staff=admin, db=db_session)

    assert exception_info.value.status_code == 404


def test_create_service_derives_slug_and_sort_order(db_session, admin, service) -> None:
    created = create_service(
        data=CreateServiceRequest(name='Conseil Élégance Pro', price=35000, duration=90),
        staff=admin,
        db=db_session,
    )['service']

    assert created.slug == 'conseil-elegance-pro'
    assert created.sort_order == service.sort_order + 1
    assert created.features == []


def test_create_service_suffixes_taken_slug(db_session, admin, service) -> None:
    created = create_service(
        data=CreateServiceRequest(name='Analyse morphologique'),
        staff=admin,
        db=db_session,
    )['service']

    assert created.slug != service.slug
    assert created.slug.startswith('analyse-morphologique-')


def test_update_service_keeps_slug_when_new_one_is_taken(db_session, admin, service) -> None:
    other = create_service(data=CreateServiceRequest(name='Personal Shopping'), staff=admin, db=db_session)['service']

    updated = update_service(
        data=UpdateServiceRequest(id=other.id, name='Analyse Morphologique', enabled=False),
        staff=admin,
        db=db_session,
    )['service']

    assert updated.name == 'Analyse Morphologique'
    assert updated.slug == 'personal-shopping'
    assert updated.enabled is False
    assert [item.id for item in list_all_services(staff=admin, db=db_session)['services']] == [service.id, other.id]


def test_delete_service_refuses_when_appointments_exist(db_session, admin, monday_rule, service, add_appointment) -> None:
    add_appointment('09:00')

    with pytest.raises(HTTPException) as exception_info:
        delete_service(service_id=service.id, staff=admin, db=db_session)

    assert exception_info.value.status_code == 400
    assert 'Désactivez-le' in exception_info.value.detail
    assert db_session.get(ConsultationType, service.id) is not None


def test_delete_service_without_appointments(db_session, admin, service) -> None:
    assert delete_service(service_id=service.id, staff=admin, db=db_session) == {'success': True}
    assert db_session.get(ConsultationType, service.id) is None


def test_update_appointment_confirms_and_records_payment(db_session, admin, monday_rule, add_appointment) -> None:
    appointment = add_appointment('09:00')

    response = update_appointment(
        appointment_id=appointment.id,
        data=UpdateAppointmentRequest(status='CONFIRMED', paymentStatus='PAID', paidAmount=25000),
        staff=admin,
        db=db_session,
    )

    assert response.appointment.status == AppointmentStatus.CONFIRMED.value
    assert response.appointment.payment_status == 'PAID'
    assert response.appointment.paid_amount == 25000
    assert response.appointment.confirmed_at is not None
    assert db_session.get(Appointment, appointment.id).confirmed_by == str(admin.id)


def test_update_appointment_refuses_to_revive_onto_taken_slot(
    db_session, admin, monday_rule, add_appointment,
) -> None:
    cancelled = add_appointment('09:40', status=AppointmentStatus.CANCELLED)
    add_appointment('09:40')

    with pytest.raises(HTTPException) as exception_info:
        update_appointment(
            appointment_id=cancelled.id,
            data=UpdateAppointmentRequest(status='PENDING'),
            staff=admin,
            db=db_session,
        )

    assert exception_info.value.status_code == 409


def test_get_appointment_returns_not_found(db_session, admin) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_appointment(appointment_id=404, staff=admin, db=db_session)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Rendez-vous non trouvé'


def test_list_appointments_filters_and_paginates(db_session, admin, monday_rule, add_appointment) -> None:
    for slot_time in ('09:00', '09:40', '10:20'):
        add_appointment(slot_time)
    add_appointment('11:00', status=AppointmentStatus.CANCELLED)

    response = list_appointments(status_filter='pending', page=1, limit=2, staff=admin, db=db_session)

    assert response.total == 3
    assert [appointment.time for appointment in response.appointments] == ['10:20', '09:40']
    assert response.stats.pending == 3


def test_get_appointment_stats_counts_week_and_completed_today(db_session, monday_rule, add_appointment) -> None:
    today = date.today()
    completed = add_appointment('09:00', slot_date=today, status=AppointmentStatus.COMPLETED)
    completed.completed_at = datetime.combine(today, time(10, 30)).astimezone(timezone.utc).replace(tzinfo=None)
    add_appointment('09:00', slot_date=today + timedelta(days=60), status=AppointmentStatus.CONFIRMED)
    db_session.commit()

    stats = get_appointment_stats(db_session, today)

    assert stats.pending == 0
    assert stats.confirmed == 1
    assert stats.completed_today == 1
    assert stats.total_this_week == 1


@pytest.fixture
def tokyo_server_clock():
    previous = os.environ.get('TZ')
    os.environ['TZ'] = 'JST-9'
    clock.tzset()
    try:
        yield
    finally:
        if previous is None:
            os.environ.pop('TZ', None)
        else:
            os.environ['TZ'] = previous
        clock.tzset()


def test_get_appointment_stats_counts_completions_by_local_day(
    db_session, monday_rule, add_appointment, tokyo_server_clock,
) -> None:
    # 20:00 UTC on the 2nd is 05:00 on the 3rd in Tokyo; 16:00 UTC on the 3rd is already the 4th.
    early = add_appointment('09:00', status=AppointmentStatus.COMPLETED)
    early.completed_at = datetime(2031, 3, 2, 20, 0)
    late = add_appointment('09:40', status=AppointmentStatus.COMPLETED)
    late.completed_at = datetime(2031, 3, 3, 16, 0)
    db_session.commit()

    stats = get_appointment_stats(db_session, date(2031, 3, 3))

    assert stats.completed_today == 1
