from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Unit, Workload, workload_for_patient_count
from ..schemas import UnitCreate, UnitOut

router = APIRouter()


@router.get("/", response_model=list[UnitOut])
def list_units(db: Session = Depends(get_db)):
    return [UnitOut.model_validate(u) for u in db.query(Unit).order_by(Unit.id).all()]


@router.post("/", response_model=UnitOut, status_code=201)
def create_unit(data: UnitCreate, db: Session = Depends(get_db)):
    existing = db.query(Unit).filter(Unit.name == data.name).first()
    if existing:
        raise HTTPException(400, f"Unit {data.name} already exists")
    if data.workload is None:
        workload = workload_for_patient_count(data.patient_count).value
    elif data.workload in {w.value for w in Workload}:
        workload = data.workload
    else:
        raise HTTPException(400, f"Invalid workload: {data.workload}")
    u = Unit(
        name=data.name,
        duration_days=data.duration_days,
        workload=workload,
        patient_count=data.patient_count,
        description=data.description,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return UnitOut.model_validate(u)
