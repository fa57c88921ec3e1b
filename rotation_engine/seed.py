#!/usr/bin/env python3
"""Seed the database with the default unit catalog and the round-robin counter."""
from .database import SessionLocal, init_db
from .models import ROUND_ROBIN_KEY, SystemState, Unit, workload_for_patient_count

# (name, duration_days, patient_count)
DEFAULT_UNITS = [
    ("Adult Neurology", 2, 0),
    ("Acute Stroke", 2, 0),
    ("Neurosurgery", 2, 0),
    ("Geriatrics", 2, 0),
    ("Orthopedic Inpatients", 2, 0),
    ("Orthopedic Outpatients", 2, 0),
    ("Electrophysiology", 2, 0),
    ("Exercise Immunology", 2, 0),
    ("Women's Health", 2, 0),
    ("Pediatrics Inpatients", 2, 0),
    ("Pediatrics Outpatients", 2, 0),
    ("Cardio Thoracic Unit", 2, 0),
]


def seed(db, units=DEFAULT_UNITS) -> int:
    """Insert missing units (matched by name). Returns how many were added."""
    added = 0
    for name, duration, patients in units:
        if db.query(Unit).filter(Unit.name == name).first():
            continue
        db.add(Unit(
            name=name,
            duration_days=duration,
            patient_count=patients,
            workload=workload_for_patient_count(patients).value,
        ))
        added += 1
    if not db.query(SystemState).filter(SystemState.key == ROUND_ROBIN_KEY).first():
        db.add(SystemState(key=ROUND_ROBIN_KEY, value=0, description="Next round-robin starting offset"))
    db.commit()
    return added


if __name__ == "__main__":
    init_db()
    db = SessionLocal()
    try:
        n = seed(db)
        print(f"Seeded {n} units")
    finally:
        db.close()
