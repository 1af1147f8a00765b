"""
CRUD routes for trainers, the owners of flow versions.
"""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.models_db import TrainerModel

router = APIRouter()

TrainerType = Literal["compliance", "sales", "customer-service", "onboarding", "soft-skills", "knowledge-qa", "custom"]
TrainerStatus = Literal["draft", "active", "inactive", "archived", "testing"]


class TrainerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    type: TrainerType = "custom"
    status: TrainerStatus = "draft"


def _trainer_dict(row: TrainerModel) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "type": row.type,
        "status": row.status,
        "flowCount": len(row.flows),
        "createdAt": row.created_at.isoformat(),
        "updatedAt": row.updated_at.isoformat(),
    }


@router.post("/", status_code=201)
def create_trainer(body: TrainerCreate, db: Session = Depends(get_db)):
    """Create a trainer. Flows are added under /api/flows/trainer/{id}."""
    row = TrainerModel(
        id=uuid.uuid4().hex,
        name=body.name.strip(),
        description=body.description,
        type=body.type,
        status=body.status,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return _trainer_dict(row)


@router.get("/")
def list_trainers(
    db: Session = Depends(get_db),
    status: Optional[TrainerStatus] = Query(None, description="Filter by status"),
):
    q = db.query(TrainerModel).order_by(TrainerModel.created_at.desc())
    if status:
        q = q.filter(TrainerModel.status == status)
    return [_trainer_dict(r) for r in q.all()]


@router.get("/{trainer_id}")
def get_trainer(trainer_id: str, db: Session = Depends(get_db)):
    row = db.get(TrainerModel, trainer_id)
    if not row:
        raise HTTPException(status_code=404, detail=f"Trainer '{trainer_id}' not found")
    return _trainer_dict(row)


@router.delete("/{trainer_id}", status_code=204)
def delete_trainer(trainer_id: str, db: Session = Depends(get_db)):
    """Delete a trainer and, with it, every flow version it owns."""
    row = db.get(TrainerModel, trainer_id)
    if not row:
        raise HTTPException(status_code=404, detail=f"Trainer '{trainer_id}' not found")
    db.delete(row)
    db.commit()
    return None
