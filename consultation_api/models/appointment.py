"""Appointment model definitions."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from consultation_api.database import ACTIVE_SLOT_INDEX_NAME, Base
from consultation_api.models.consultation_type import ConsultationType
from consultation_api.models.user import User


class AppointmentStatus(str, enum.Enum):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class PaymentStatus(str, enum.Enum):
    UNPAID = 'UNPAID'
    PARTIAL = 'PARTIAL'
    PAID = 'PAID'
    REFUNDED = 'REFUNDED'


ACTIVE_SLOT_CONDITION = text("status <> 'CANCELLED'")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Appointment(Base):
    """Represents a booked consultation.

    A (date, time) pair may hold any number of cancelled rows but at most
    one row in any other status; the partial unique index enforces it.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            ACTIVE_SLOT_INDEX_NAME,
            'date',
            'time',
            unique=True,
            postgresql_where=ACTIVE_SLOT_CONDITION,
            sqlite_where=ACTIVE_SLOT_CONDITION,
        ),
        Index('idx_appointments_status_date', 'status', 'date'),
    )

    id = Column(Integer, primary_key=True)
    reference = Column(String, nullable=False, unique=True, index=True)
    type_id = Column(Integer, ForeignKey("consultation_types.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)
    customer_email = Column(String, nullable=True)
    customer_notes = Column(Text, nullable=True)

    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    duration = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False, default=0)

    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    payment_status = Column(String, nullable=False, default=PaymentStatus.UNPAID.value)
    payment_method = Column(String, nullable=True)
    paid_amount = Column(Integer, nullable=True)
    admin_notes = Column(Text, nullable=True)

    confirmed_at = Column(DateTime, nullable=True)
    confirmed_by = Column(String, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    type = relationship(ConsultationType)
    user = relationship(User)
