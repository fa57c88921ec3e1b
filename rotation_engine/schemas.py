"""Pydantic schemas for API."""
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class InternCreate(BaseModel):
    name: str
    start_date: date
    gender: Optional[str] = None
    batch: Optional[str] = None  # A or B; auto-assigned when missing
    phone_number: Optional[str] = None
    initial_unit_id: Optional[int] = None
    auto_generate: Optional[bool] = None


class InternOut(BaseModel):
    id: int
    name: str
    gender: Optional[str] = None
    batch: str
    start_date: Optional[date] = None
    phone_number: Optional[str] = None
    status: str
    extension_days: int
    extension_days_applied: int = 0

    class Config:
        from_attributes = True


class UnitCreate(BaseModel):
    name: str
    duration_days: int = Field(gt=0)
    workload: Optional[str] = None  # derived from patient_count when missing
    patient_count: int = Field(default=0, ge=0)
    description: Optional[str] = None


class UnitOut(BaseModel):
    id: int
    name: str
    duration_days: int
    workload: str
    patient_count: int
    description: Optional[str] = None

    class Config:
        from_attributes = True


class RotationOut(BaseModel):
    id: int
    intern_id: int
    unit_id: int
    unit_name: Optional[str] = None
    start_date: date
    end_date: date
    is_manual_assignment: bool

    class Config:
        from_attributes = True


class ScheduleOut(BaseModel):
    intern_id: int
    status: str
    rotations: List[RotationOut]
    completed: List[RotationOut] = []
    current: Optional[RotationOut] = None
    upcoming: List[RotationOut] = []
    created_rotation_id: Optional[int] = None


class ExtendRequest(BaseModel):
    extension_days: int  # new cumulative total
    reason: str
    notes: Optional[str] = None
    unit_id: Optional[int] = None
    adjustment_days: Optional[int] = None


class ExtendResponse(BaseModel):
    intern_id: int
    status: str
    extension_days: int
    delta: int
    outcome: str  # adjusted, recorded_only, no_change
    adjusted_rotation: Optional[RotationOut] = None
    message: str


class StatusOut(BaseModel):
    intern_id: int
    status: str


class StatusCountsOut(BaseModel):
    counts: Dict[str, int]


class ActivityOut(BaseModel):
    id: int
    activity_type: str
    intern_id: Optional[int] = None
    intern_name: Optional[str] = None
    unit_id: Optional[int] = None
    unit_name: Optional[str] = None
    details: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
