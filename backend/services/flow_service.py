"""
Flow persistence: convert stored rows to TrainerFlow values and back, and
create, edit, branch and look up flow versions.

Every write goes through normalize_flow so derived metadata is always
recomputed. Published versions are read-only until unpublished.
"""

import logging
import uuid
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from backend.models.flow import InputError, TrainerFlow, parse_flow_payload
from backend.models_db import TrainerFlowModel, TrainerModel
from backend.services.flow_metrics import normalize_flow

logger = logging.getLogger(__name__)


class TrainerNotFoundError(LookupError):
    """No trainer with the given ID."""


class FlowNotFoundError(LookupError):
    """No flow version matches the lookup."""


class FlowStateError(RuntimeError):
    """The flow's publish state forbids the requested operation."""


class FlowConflictError(RuntimeError):
    """The stored flow changed underneath this write (stale revision)."""


# -----------------------------------------------------------------------------
# Row <-> value
# -----------------------------------------------------------------------------


def row_to_flow(row: TrainerFlowModel) -> TrainerFlow:
    return TrainerFlow.model_validate(
        {
            "id": row.id,
            "trainer_id": row.trainer_id,
            "version": row.version,
            "name": row.name,
            "nodes": row.nodes or [],
            "edges": row.edges or [],
            "settings": row.settings or {},
            "metadata": row.flow_metadata or {},
            "is_published": row.is_published,
            "published_at": row.published_at,
            "published_by": row.published_by,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }
    )


def apply_flow_to_row(row: TrainerFlowModel, flow: TrainerFlow) -> None:
    row.name = flow.name
    row.version = flow.version
    row.nodes = [n.model_dump(mode="json", by_alias=True, exclude_none=True) for n in flow.nodes]
    row.edges = [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in flow.edges]
    row.settings = flow.settings.model_dump(mode="json", by_alias=True)
    row.flow_metadata = flow.metadata.model_dump(mode="json", by_alias=True)
    row.is_published = flow.is_published
    row.published_at = flow.published_at
    row.published_by = flow.published_by


def commit_or_conflict(db: Session) -> None:
    """Commit; a stale revision becomes FlowConflictError after rollback."""
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning("Concurrent flow update rejected: %s", e)
        raise FlowConflictError("Flow was modified by another request; reload and retry") from e


def _build_flow(data: dict[str, Any]) -> TrainerFlow:
    parse_flow_payload(data)
    try:
        return normalize_flow(TrainerFlow.model_validate(data))
    except ValidationError as e:
        raise InputError(f"Invalid flow: {e}") from e


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------


def get_trainer_row(db: Session, trainer_id: str) -> TrainerModel:
    row = db.get(TrainerModel, trainer_id)
    if row is None:
        raise TrainerNotFoundError(f"Trainer '{trainer_id}' not found")
    return row


def get_flow_row(db: Session, flow_id: str) -> TrainerFlowModel:
    row = db.get(TrainerFlowModel, flow_id)
    if row is None:
        raise FlowNotFoundError(f"Flow '{flow_id}' not found")
    return row


def list_flows(db: Session, trainer_id: str) -> list[TrainerFlow]:
    get_trainer_row(db, trainer_id)
    rows = (
        db.query(TrainerFlowModel)
        .filter(TrainerFlowModel.trainer_id == trainer_id)
        .order_by(TrainerFlowModel.created_at.desc())
        .all()
    )
    return [row_to_flow(r) for r in rows]


def latest_flow(db: Session, trainer_id: str, published: Optional[bool] = None) -> TrainerFlow:
    """Most recently created version; with published=True, the active published one."""
    get_trainer_row(db, trainer_id)
    q = db.query(TrainerFlowModel).filter(TrainerFlowModel.trainer_id == trainer_id)
    if published is not None:
        q = q.filter(TrainerFlowModel.is_published == published)
    if published:
        q = q.order_by(TrainerFlowModel.published_at.desc())
    else:
        q = q.order_by(TrainerFlowModel.created_at.desc())
    row = q.first()
    if row is None:
        raise FlowNotFoundError("No flow found for this trainer")
    return row_to_flow(row)


# -----------------------------------------------------------------------------
# Writes
# -----------------------------------------------------------------------------


def create_flow(db: Session, trainer_id: str, data: dict[str, Any]) -> TrainerFlow:
    """Create a draft flow version for a trainer from a raw JSON body."""
    get_trainer_row(db, trainer_id)
    body = {k: v for k, v in data.items() if k in ("name", "version", "nodes", "edges", "settings")}
    body["trainer_id"] = trainer_id
    if body.get("settings") is None:
        body.pop("settings", None)
    flow = _build_flow(body)
    row = TrainerFlowModel(id=uuid.uuid4().hex, trainer_id=trainer_id)
    apply_flow_to_row(row, flow)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Created flow %s v%s for trainer %s", row.id, row.version, trainer_id)
    return row_to_flow(row)


def update_flow(db: Session, flow_id: str, updates: dict[str, Any]) -> TrainerFlow:
    """Replace name, nodes, edges or settings of a draft flow."""
    row = get_flow_row(db, flow_id)
    if row.is_published:
        raise FlowStateError("Cannot edit a published flow. Unpublish it first.")
    body = row_to_flow(row).model_dump(mode="json", by_alias=True)
    for key in ("name", "nodes", "edges", "settings"):
        if key in updates:
            body[key] = updates[key]
    if body.get("settings") is None:
        body.pop("settings", None)
    flow = _build_flow(body)
    apply_flow_to_row(row, flow)
    commit_or_conflict(db)
    db.refresh(row)
    return row_to_flow(row)


def delete_flow(db: Session, flow_id: str) -> None:
    row = get_flow_row(db, flow_id)
    if row.is_published:
        raise FlowStateError("Cannot delete published flow. Unpublish it first.")
    db.delete(row)
    db.commit()


def _semver_key(version: str) -> tuple[int, ...]:
    try:
        return tuple(int(p) for p in version.split("."))
    except ValueError:
        return (0, 0, 0)


def bump_version(version: str, part: str = "minor") -> str:
    major, minor, patch = (_semver_key(version) + (0, 0, 0))[:3]
    if part == "major":
        return f"{major + 1}.0.0"
    if part == "patch":
        return f"{major}.{minor}.{patch + 1}"
    return f"{major}.{minor + 1}.0"


def branch_version(db: Session, flow_id: str, part: str = "minor") -> TrainerFlow:
    """Copy a flow's graph into a new draft version numbered after the trainer's latest."""
    source = get_flow_row(db, flow_id)
    versions = [
        v for (v,) in db.query(TrainerFlowModel.version).filter(TrainerFlowModel.trainer_id == source.trainer_id)
    ]
    latest = max(versions, key=_semver_key)
    flow = row_to_flow(source).model_copy(
        update={
            "id": None,
            "version": bump_version(latest, part),
            "is_published": False,
            "published_at": None,
            "published_by": None,
        }
    )
    row = TrainerFlowModel(id=uuid.uuid4().hex, trainer_id=source.trainer_id)
    apply_flow_to_row(row, normalize_flow(flow))
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Branched flow %s v%s from %s", row.id, row.version, flow_id)
    return row_to_flow(row)
