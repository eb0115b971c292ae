"""Appointment slot model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, func

from slotbook.database import Base


class AppointmentSlot(Base):
    """A bookable time window with its base capacity and mode flags."""
    __tablename__ = "appointment_slots"

    id = Column(Integer, primary_key=True)
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    capacity = Column(Integer, nullable=False, default=3)
    allow_online = Column(Boolean, nullable=False, default=True)
    allow_in_person = Column(Boolean, nullable=False, default=True)
    lock_version = Column(Integer, nullable=False, default=0)  # bumped by every admission
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
