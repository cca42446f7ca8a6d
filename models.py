from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint

# Slot labels offered to clients. The column itself accepts free text.
TIME_SLOTS = ("9 AM", "10 AM", "1 PM", "2 PM", "3 PM", "4 PM")

CONSULTATION_DESCRIPTION = "Free 30-minute Consultation"

class Consultation(SQLModel, table=True):
    __tablename__ = "consultations"
    __table_args__ = (
        # Database-level protection against double booking
        UniqueConstraint("select_date", "preferred_time", name="unique_consultation_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    schedule_a_consultation: str = Field(default=CONSULTATION_DESCRIPTION)
    select_date: str = Field(index=True)  # YYYY-MM-DD
    preferred_time: Optional[str] = Field(default=None)
    full_name: str
    email: str
