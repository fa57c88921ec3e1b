from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Intern, InternStatus
from ..schemas import (
    ActivityOut, ExtendRequest, ExtendResponse, InternCreate, InternOut,
    RotationOut, ScheduleOut, StatusCountsOut, StatusOut,
)
from ..service import RotationService, get_service

router = APIRouter()


def _rotation_out(r) -> Optional[RotationOut]:
    return RotationOut.model_validate(r) if r is not None else None


@router.get("/", response_model=list[InternOut])
def list_interns(status: Optional[str] = None, batch: Optional[str] = None, db: Session = Depends(get_db)):
    q = db.query(Intern)
    if status:
        q = q.filter(Intern.status == status)
    if batch:
        q = q.filter(Intern.batch == batch)
    return [InternOut.model_validate(i) for i in q.order_by(Intern.id).all()]


@router.get("/status-counts", response_model=StatusCountsOut)
def status_counts(service: RotationService = Depends(get_service)):
    return StatusCountsOut(counts=service.status_counts())


@router.get("/activity", response_model=list[ActivityOut])
def list_activity(limit: int = 20, intern_id: Optional[int] = None, service: RotationService = Depends(get_service)):
    return [ActivityOut.model_validate(a) for a in service.recent_activity(limit=limit, intern_id=intern_id)]


@router.get("/{intern_id}", response_model=InternOut)
def get_intern(intern_id: int, db: Session = Depends(get_db)):
    i = db.query(Intern).filter(Intern.id == intern_id).first()
    if not i:
        raise HTTPException(404, "Intern not found")
    return InternOut.model_validate(i)


@router.post("/", response_model=InternOut, status_code=201)
def create_intern(data: InternCreate, service: RotationService = Depends(get_service)):
    intern = service.create_intern(**data.model_dump())
    return InternOut.model_validate(intern)


@router.get("/{intern_id}/schedule", response_model=ScheduleOut)
def get_schedule(intern_id: int, service: RotationService = Depends(get_service)):
    """Read the schedule. Triggers auto-advance, so this may create the next rotation."""
    view = service.get_schedule(intern_id)
    created = view.advance.created if view.advance else None
    return ScheduleOut(
        intern_id=intern_id,
        status=view.status.value,
        rotations=[RotationOut.model_validate(r) for r in view.rotations],
        completed=[RotationOut.model_validate(r) for r in view.completed],
        current=_rotation_out(view.current),
        upcoming=[RotationOut.model_validate(r) for r in view.upcoming],
        created_rotation_id=created.id if created is not None else None,
    )


@router.get("/{intern_id}/rotations", response_model=list[RotationOut])
def list_rotations(
    intern_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
    service: RotationService = Depends(get_service),
):
    """Stored rotations overlapping [start, end]. Unlike /schedule this never creates anything."""
    return [RotationOut.model_validate(r) for r in service.list_placements(intern_id, start=start, end=end)]


@router.post("/{intern_id}/extend", response_model=ExtendResponse)
def extend_intern(intern_id: int, data: ExtendRequest, service: RotationService = Depends(get_service)):
    result = service.extend_intern(
        intern_id,
        data.extension_days,
        data.reason,
        notes=data.notes,
        unit_id=data.unit_id,
        adjustment_days=data.adjustment_days,
    )
    if result.partial:
        message = "Extension recorded; no rotation to adjust"
    elif data.extension_days > 0:
        message = "Internship extended successfully"
    else:
        message = "Extension removed successfully"
    return ExtendResponse(
        intern_id=intern_id,
        status=result.status.value,
        extension_days=result.extension_days,
        delta=result.delta,
        outcome=result.outcome.value,
        adjusted_rotation=_rotation_out(result.adjusted_placement),
        message=message,
    )


@router.post("/{intern_id}/reconcile", response_model=StatusOut)
def reconcile_status(intern_id: int, service: RotationService = Depends(get_service)):
    status: InternStatus = service.reconcile_status(intern_id)
    return StatusOut(intern_id=intern_id, status=status.value)
