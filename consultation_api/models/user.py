"""User model definitions."""

from sqlalchemy import Column, Integer, String
from consultation_api.database import Base


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String, unique=True, index=True, nullable=True)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, default='CUSTOMER')  # CUSTOMER/ADMIN/MANAGER
