"""Availability model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from consultation_api.database import Base


class AvailabilityRule(Base):
    """Recurring opening window for one day of the week (Sunday is 0)."""
    __tablename__ = "admin_availability"

    id = Column(Integer, primary_key=True)
    day_of_week = Column(Integer, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    slot_duration = Column(Integer, nullable=False, default=60)
    break_between = Column(Integer, nullable=False, default=15)
    enabled = Column(Boolean, nullable=False, default=True)
