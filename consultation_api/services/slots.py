"""Slot generation and availability resolution for consultation bookings.

A day's candidate slots come from the first enabled ``AvailabilityRule`` for
that weekday; a candidate is available when no non-cancelled appointment
holds the same ``(date, time)``. Nothing here is cached: every call reads the
ledger again so a booking shows up on the very next query.
"""

from datetime import date
from typing import TypedDict

from sqlalchemy.orm import Session

from consultation_api.models.appointment import Appointment, AppointmentStatus
from consultation_api.models.availability import AvailabilityRule


class Slot(TypedDict):
    time: str
    available: bool


def parse_clock(value: str) -> int:
    """Convert ``HH:MM`` into minutes past midnight."""
    try:
        hours_text, minutes_text = value.strip().split(':')
        hours = int(hours_text)
        minutes = int(minutes_text)
    except (AttributeError, ValueError) as exc:
        raise ValueError(f'Invalid time of day: {value!r}') from exc

    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f'Invalid time of day: {value!r}')

    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def normalize_clock(value: str) -> str:
    return format_clock(parse_clock(value))


def day_of_week(target_date: date) -> int:
    # Schedule rules count Sunday as 0; date.weekday() counts Monday as 0.
    return (target_date.weekday() + 1) % 7


def select_rule(db: Session, target_date: date) -> AvailabilityRule | None:
    """Return the enabled rule for the weekday of ``target_date``.

    Several enabled rules for one weekday resolve to the lowest id.
    """
    return db.query(AvailabilityRule).filter(
        AvailabilityRule.day_of_week == day_of_week(target_date),
        AvailabilityRule.enabled.is_(True),
    ).order_by(AvailabilityRule.id.asc()).first()


def generate_slots(rule: AvailabilityRule | None) -> list[str]:
    if rule is None:
        return []

    start_minutes = parse_clock(rule.start_time)
    end_minutes = parse_clock(rule.end_time)
    slot_duration = rule.slot_duration
    if slot_duration <= 0:
        raise ValueError('Slot duration must be positive.')

    step = slot_duration + (rule.break_between or 0)

    slots: list[str] = []
    current = start_minutes
    while current + slot_duration <= end_minutes:
        slots.append(format_clock(current))
        current += step

    return slots


def get_booked_times(db: Session, target_date: date, exclude_appointment_id: int | None = None) -> set[str]:
    query = db.query(Appointment.time).filter(
        Appointment.date == target_date,
        Appointment.status != AppointmentStatus.CANCELLED.value,
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)

    return {booked_time for (booked_time,) in query.all()}


def resolve_availability(slots: list[str], booked_times: set[str]) -> list[Slot]:
    return [Slot(time=slot_time, available=slot_time not in booked_times) for slot_time in slots]


def get_day_slots(db: Session, target_date: date) -> list[Slot]:
    slots = generate_slots(select_rule(db, target_date))
    if not slots:
        return []

    return resolve_availability(slots, get_booked_times(db, target_date))
