"""User model definitions."""

from sqlalchemy import Column, Integer, String

from slotbook.database import Base


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    phone = Column(String)
    role = Column(String, default="applicant")  # applicant/admin
