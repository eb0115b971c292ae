"""Appointment model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Time, func, text

from slotbook.database import Base

STATUS_UPCOMING = "upcoming"
STATUS_COMPLETED = "completed"
STATUS_CANCELED = "canceled"
STATUS_NO_SHOW = "no_show"
APPOINTMENT_STATUSES = (STATUS_UPCOMING, STATUS_COMPLETED, STATUS_CANCELED, STATUS_NO_SHOW)

MODE_IN_PERSON = "in_person"
MODE_ONLINE = "online"
APPOINTMENT_MODES = (MODE_IN_PERSON, MODE_ONLINE)

RAW_UPCOMING_INDEX = "uq_appointments_raw_upcoming"

_RAW_UPCOMING = text("status = 'upcoming' AND slot_id IS NULL")


class Appointment(Base):
    """A ledger entry. Upcoming entries count against their slot's capacity."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_slot_status", "slot_id", "status"),
        Index(
            RAW_UPCOMING_INDEX,
            "date_local",
            "time_local",
            unique=True,
            sqlite_where=_RAW_UPCOMING,
            postgresql_where=_RAW_UPCOMING,
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    mode = Column(String, nullable=False)
    date_local = Column(Date, nullable=False)
    time_local = Column(Time, nullable=False)
    start_at_utc = Column(DateTime, nullable=False)
    end_at_utc = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=STATUS_UPCOMING)
    slot_id = Column(Integer, ForeignKey("appointment_slots.id"), nullable=True)
    survey_response_id = Column(Integer, nullable=True)
    note = Column(String, nullable=True)
    handled_by_admin_name = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
