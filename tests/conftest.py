import os
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from consultation_api.database import Base  # noqa: E402
from consultation_api.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from consultation_api.models.availability import AvailabilityRule  # noqa: E402
from consultation_api.models.consultation_type import ConsultationType  # noqa: E402
from consultation_api.models.user import User  # noqa: E402

# 2031-03-03 is a Monday (day_of_week 1), 2031-03-02 a Sunday (day_of_week 0).
MONDAY = date(2031, 3, 3)
SUNDAY = date(2031, 3, 2)


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('consultation_api.routes.common.ensure_availability_schema', lambda: None)
    monkeypatch.setattr('consultation_api.routes.common.ensure_appointment_schema', lambda: None)


@pytest.fixture
def monday_rule(db_session) -> AvailabilityRule:
    rule = AvailabilityRule(
        day_of_week=1,
        start_time='09:00',
        end_time='12:00',
        slot_duration=30,
        break_between=10,
        enabled=True,
    )
    db_session.add(rule)
    db_session.commit()
    db_session.refresh(rule)
    return rule


@pytest.fixture
def service(db_session) -> ConsultationType:
    consultation = ConsultationType(
        name='Analyse Morphologique',
        slug='analyse-morphologique',
        description='Analyse complète de votre silhouette',
        price=25000,
        duration=60,
        features=['Guide des coupes adaptées'],
        enabled=True,
        requires_payment=True,
        sort_order=1,
    )
    db_session.add(consultation)
    db_session.commit()
    db_session.refresh(consultation)
    return consultation


@pytest.fixture
def customer(db_session) -> User:
    user = User(email='awa@example.com', phone='2250700000001', name='Awa Koné', role='CUSTOMER')
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin(db_session) -> User:
    user = User(email='gerante@example.com', phone='2250700000002', name='Gérante', role='ADMIN')
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def add_appointment(db_session, service):
    counter = {'value': 0}

    def _add(
        slot_time: str,
        slot_date: date = MONDAY,
        status: AppointmentStatus = AppointmentStatus.PENDING,
        user: User | None = None,
    ) -> Appointment:
        counter['value'] += 1
        appointment = Appointment(
            reference=f'RDV-2031-TEST{counter["value"]:02d}',
            type_id=service.id,
            user_id=user.id if user else None,
            customer_name='Awa Koné',
            customer_phone='2250700000001',
            date=slot_date,
            time=slot_time,
            duration=service.duration,
            price=service.price,
            status=status.value,
        )
        db_session.add(appointment)
        db_session.commit()
        db_session.refresh(appointment)
        return appointment

    return _add
