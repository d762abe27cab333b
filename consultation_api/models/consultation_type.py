"""Consultation service catalogue."""

from sqlalchemy import JSON, Boolean, Column, Integer, String, Text
from consultation_api.database import Base


class ConsultationType(Base):
    """A bookable consultation service."""
    __tablename__ = "consultation_types"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default='')
    price = Column(Integer, nullable=False, default=0)  # FCFA, 0 means on quote
    duration = Column(Integer, nullable=False, default=60)
    features = Column(JSON, nullable=False, default=list)
    color = Column(String, nullable=False, default='#8b5cf6')
    icon = Column(String, nullable=False, default='sparkles')
    enabled = Column(Boolean, nullable=False, default=True)
    requires_payment = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
