"""Slot rule model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, func

from slotbook.database import Base


class AppointmentSlotRule(Base):
    """Override for exactly one slot. Takes precedence over the day rule."""
    __tablename__ = "appointment_slot_rules"

    id = Column(Integer, primary_key=True)
    slot_id = Column(Integer, ForeignKey("appointment_slots.id"), nullable=False, unique=True, index=True)
    is_blocked = Column(Boolean, nullable=False, default=False)
    is_online_only = Column(Boolean, nullable=False, default=False)
    capacity = Column(Integer, nullable=True)
    allow_online = Column(Boolean, nullable=True)
    allow_in_person = Column(Boolean, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
