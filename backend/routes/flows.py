"""
Flow routes: stateless validate/estimate, flow version CRUD, the publish
gate and dry runs.
"""

import logging
import time
from typing import Any, Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.models.flow import InputError, TrainerFlow, parse_flow_payload
from backend.services.flow_metrics import estimate_duration, generate_optimization_suggestions, get_flow_stats
from backend.services.flow_runner import simulate_flow
from backend.services.flow_service import (
    FlowConflictError,
    FlowNotFoundError,
    FlowStateError,
    TrainerNotFoundError,
    branch_version,
    create_flow,
    delete_flow,
    get_flow_row,
    latest_flow,
    list_flows,
    row_to_flow,
    update_flow,
)
from backend.services.flow_validator import validate_flow, validate_payload
from backend.services.publish_service import FlowPublishError, publish_flow, unpublish_flow
from backend.utils.logging import log_validation_result
from shared.schemas.flow import WIRE_CONFIG, ValidationResult

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_http(e: Exception) -> HTTPException:
    """Map service exceptions to HTTP errors."""
    if isinstance(e, (TrainerNotFoundError, FlowNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InputError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, (FlowConflictError, FlowStateError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _flow_json(flow: TrainerFlow) -> dict[str, Any]:
    return flow.model_dump(mode="json", by_alias=True)


class PublishBody(BaseModel):
    user_id: str = Field(..., min_length=1, description="ID of the user publishing the flow")

    model_config = WIRE_CONFIG


class SimulateBody(BaseModel):
    answers: list[str] = Field(default_factory=list, description="Scripted learner answers, in order")
    max_steps: Optional[int] = Field(None, ge=1)

    model_config = WIRE_CONFIG


# -----------------------------------------------------------------------------
# Stateless checks (no persistence)
# -----------------------------------------------------------------------------


@router.post("/validate", response_model=ValidationResult)
def validate_flow_body(body: Any = Body(...)):
    """Validate a {nodes, edges, settings} payload. 400 on malformed input."""
    try:
        payload = parse_flow_payload(body)
    except InputError as e:
        raise _to_http(e) from e
    started = time.perf_counter()
    result = validate_payload(payload)
    log_validation_result(logger, None, result, duration_sec=time.perf_counter() - started)
    return result


@router.post("/estimate")
def estimate_flow_body(body: Any = Body(...)):
    """Duration estimate, structural stats and optimization hints for a payload."""
    try:
        payload = parse_flow_payload(body)
    except InputError as e:
        raise _to_http(e) from e
    return {
        "estimatedDuration": estimate_duration(payload.nodes, payload.edges),
        "stats": get_flow_stats(payload.nodes, payload.edges).model_dump(by_alias=True),
        "optimizationSuggestions": generate_optimization_suggestions(payload.nodes, payload.edges),
    }


# -----------------------------------------------------------------------------
# Flow versions per trainer
# -----------------------------------------------------------------------------


@router.post("/trainer/{trainer_id}", status_code=201)
def create_trainer_flow(trainer_id: str, body: dict[str, Any], db: Session = Depends(get_db)):
    """Create a draft flow (version 1.0.0 unless given) for a trainer."""
    try:
        flow = create_flow(db, trainer_id, body)
    except (TrainerNotFoundError, InputError) as e:
        raise _to_http(e) from e
    return _flow_json(flow)


@router.get("/trainer/{trainer_id}/all")
def list_trainer_flows(trainer_id: str, db: Session = Depends(get_db)):
    """All versions of a trainer's flow, newest first (graph omitted)."""
    try:
        flows = list_flows(db, trainer_id)
    except TrainerNotFoundError as e:
        raise _to_http(e) from e
    return [
        {
            "id": f.id,
            "name": f.name,
            "version": f.version,
            "isPublished": f.is_published,
            "publishedAt": f.published_at.isoformat() if f.published_at else None,
            "metadata": f.metadata.model_dump(by_alias=True),
            "createdAt": f.created_at.isoformat() if f.created_at else None,
            "updatedAt": f.updated_at.isoformat() if f.updated_at else None,
        }
        for f in flows
    ]


@router.get("/trainer/{trainer_id}/latest")
def get_latest_flow(
    trainer_id: str,
    published: Optional[bool] = Query(None, description="Only published (true) or only draft (false) versions"),
    db: Session = Depends(get_db),
):
    try:
        flow = latest_flow(db, trainer_id, published=published)
    except (TrainerNotFoundError, FlowNotFoundError) as e:
        raise _to_http(e) from e
    return _flow_json(flow)


# -----------------------------------------------------------------------------
# Single flow version
# -----------------------------------------------------------------------------


@router.get("/{flow_id}")
def get_flow(flow_id: str, db: Session = Depends(get_db)):
    try:
        return _flow_json(row_to_flow(get_flow_row(db, flow_id)))
    except FlowNotFoundError as e:
        raise _to_http(e) from e


@router.put("/{flow_id}")
def update_trainer_flow(flow_id: str, body: dict[str, Any], db: Session = Depends(get_db)):
    """Replace name, nodes, edges or settings of a draft flow. 409 when published."""
    try:
        flow = update_flow(db, flow_id, body)
    except (FlowNotFoundError, InputError, FlowStateError, FlowConflictError) as e:
        raise _to_http(e) from e
    return _flow_json(flow)


@router.delete("/{flow_id}", status_code=204)
def delete_trainer_flow(flow_id: str, db: Session = Depends(get_db)):
    try:
        delete_flow(db, flow_id)
    except FlowNotFoundError as e:
        raise _to_http(e) from e
    except FlowStateError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return None


@router.post("/{flow_id}/validate", response_model=ValidationResult)
def validate_stored_flow(flow_id: str, db: Session = Depends(get_db)):
    try:
        flow = row_to_flow(get_flow_row(db, flow_id))
    except FlowNotFoundError as e:
        raise _to_http(e) from e
    result = validate_flow(flow.nodes, flow.edges, flow.settings)
    log_validation_result(logger, flow_id, result)
    return result


@router.post("/{flow_id}/publish")
def publish_trainer_flow(flow_id: str, body: PublishBody, db: Session = Depends(get_db)):
    """Validate and publish. 422 with every blocking error when validation fails."""
    try:
        outcome = publish_flow(db, flow_id, body.user_id)
    except FlowPublishError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors}) from e
    except (FlowNotFoundError, FlowStateError, FlowConflictError) as e:
        raise _to_http(e) from e
    return {"success": True, "message": "Flow published successfully", "data": _flow_json(outcome["flow"])}


@router.post("/{flow_id}/unpublish")
def unpublish_trainer_flow(flow_id: str, db: Session = Depends(get_db)):
    try:
        outcome = unpublish_flow(db, flow_id)
    except (FlowNotFoundError, FlowConflictError) as e:
        raise _to_http(e) from e
    return {"success": True, "message": "Flow unpublished", "data": _flow_json(outcome["flow"])}


@router.post("/{flow_id}/versions", status_code=201)
def create_flow_version(
    flow_id: str,
    part: Literal["major", "minor", "patch"] = Query("minor", description="Semver part to bump"),
    db: Session = Depends(get_db),
):
    """Branch a new draft version from this flow's graph."""
    try:
        flow = branch_version(db, flow_id, part=part)
    except FlowNotFoundError as e:
        raise _to_http(e) from e
    return _flow_json(flow)


@router.post("/{flow_id}/simulate")
def simulate_trainer_flow(flow_id: str, body: SimulateBody, db: Session = Depends(get_db)):
    """Dry-run the flow with scripted answers and return the path taken."""
    try:
        flow = row_to_flow(get_flow_row(db, flow_id))
    except FlowNotFoundError as e:
        raise _to_http(e) from e
    return simulate_flow(flow, body.answers, max_steps=body.max_steps).to_dict()
