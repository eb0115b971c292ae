"""Day rule model definitions."""

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, func

from slotbook.database import Base


class AppointmentDayRule(Base):
    """Override applied to every slot on one local calendar date."""
    __tablename__ = "appointment_day_rules"

    id = Column(Integer, primary_key=True)
    day_date = Column(Date, nullable=False, unique=True, index=True)
    is_blocked = Column(Boolean, nullable=False, default=False)
    is_online_only = Column(Boolean, nullable=False, default=False)
    default_capacity = Column(Integer, nullable=True)  # null defers to the slot's own capacity
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
