"""SQLAlchemy models for the rotation ledger."""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Text, Index,
)
from sqlalchemy.orm import relationship

from .database import Base


class InternStatus(str, Enum):
    ACTIVE = "Active"
    EXTENDED = "Extended"
    COMPLETED = "Completed"


class Batch(str, Enum):
    A = "A"
    B = "B"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class Workload(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ExtensionReasonType(str, Enum):
    SIGN_OUT = "sign_out"
    PRESENTATION = "presentation"
    INTERNAL_QUERY = "internal_query"
    LEAVE = "leave"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> "ExtensionReasonType":
        """Accept enum members and labels like "internal query" or "Sign-Out"."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        return cls(key)


class ActivityType(str, Enum):
    EXTENSION = "extension"
    REASSIGNMENT = "reassignment"
    STATUS_CHANGE = "status_change"
    NEW_INTERN = "new_intern"
    AUTO_ADVANCE = "auto_advance"


ROUND_ROBIN_KEY = "round_robin_counter"


def workload_for_patient_count(patient_count: int) -> Workload:
    if patient_count <= 4:
        return Workload.LOW
    if patient_count <= 8:
        return Workload.MEDIUM
    return Workload.HIGH


class Intern(Base):
    __tablename__ = "interns"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    gender = Column(String(10), nullable=True)
    batch = Column(String(1), nullable=False, index=True)  # A or B
    start_date = Column(Date, nullable=True, index=True)  # null = data-integrity problem
    phone_number = Column(String(30), nullable=True)
    status = Column(String(20), nullable=False, default=InternStatus.ACTIVE.value, index=True)
    extension_days = Column(Integer, nullable=False, default=0)
    extension_days_applied = Column(Integer, nullable=False, default=0)  # already added to placement end dates
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rotations = relationship("Rotation", back_populates="intern", cascade="all, delete-orphan")
    extension_reasons = relationship("ExtensionReason", back_populates="intern", cascade="all, delete-orphan")


class Unit(Base):
    __tablename__ = "units"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    duration_days = Column(Integer, nullable=False)
    workload = Column(String(10), nullable=False, default=Workload.MEDIUM.value)
    patient_count = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rotations = relationship("Rotation", back_populates="unit")


class Rotation(Base):
    """One placement of an intern in a unit. Dates are inclusive."""
    __tablename__ = "rotations"
    id = Column(Integer, primary_key=True, index=True)
    intern_id = Column(Integer, ForeignKey("interns.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    is_manual_assignment = Column(Boolean, nullable=False, default=False)
    auto_generated = Column(Boolean, nullable=False, default=False)  # created by the engine; survives overrides
    created_at = Column(DateTime, default=datetime.utcnow)

    intern = relationship("Intern", back_populates="rotations")
    unit = relationship("Unit", back_populates="rotations")

    __table_args__ = (Index("rotations_intern_id_start_date_idx", "intern_id", "start_date"),)

    @property
    def unit_name(self) -> Optional[str]:
        return self.unit.name if self.unit else None


class ExtensionReason(Base):
    """Append-only audit of extension requests."""
    __tablename__ = "extension_reasons"
    id = Column(Integer, primary_key=True, index=True)
    intern_id = Column(Integer, ForeignKey("interns.id", ondelete="CASCADE"), nullable=False, index=True)
    extension_days = Column(Integer, nullable=False)  # signed delta applied
    reason = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    intern = relationship("Intern", back_populates="extension_reasons")


class SystemState(Base):
    """Key/value engine state. Holds the round-robin counter."""
    __tablename__ = "system_state"
    key = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
    description = Column(String(200), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ActivityLog(Base):
    __tablename__ = "activity_log"
    id = Column(Integer, primary_key=True, index=True)
    activity_type = Column(String(20), nullable=False, index=True)
    intern_id = Column(Integer, ForeignKey("interns.id", ondelete="SET NULL"), nullable=True, index=True)
    intern_name = Column(String(100), nullable=True)
    unit_id = Column(Integer, nullable=True, index=True)
    unit_name = Column(String(100), nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
