"""
Publish gate: the only way a flow version becomes the servable script.

draft --(validate)--> published; published --(unpublish)--> draft.
publish() and unpublish() are pure transitions on TrainerFlow values;
publish_flow() and unpublish_flow() load, transition and write back a stored
version under the row's optimistic revision check.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from backend.models.flow import TrainerFlow
from backend.models_db import TrainerFlowModel
from backend.services.flow_metrics import normalize_flow
from backend.services.flow_service import (
    FlowStateError,
    apply_flow_to_row,
    commit_or_conflict,
    get_flow_row,
    row_to_flow,
)
from backend.services.flow_validator import ValidationPolicy, validate_flow
from backend.utils.logging import log_publish_event, log_validation_result
from shared.schemas.flow import ValidationResult

logger = logging.getLogger(__name__)


class FlowPublishError(ValueError):
    """Validation errors block the transition to published."""

    def __init__(self, errors: list[str], result: Optional[ValidationResult] = None):
        self.errors = errors
        self.result = result
        super().__init__(f"Cannot publish flow: {', '.join(errors)}")


def publish(
    flow: TrainerFlow,
    user_id: str,
    policy: Optional[ValidationPolicy] = None,
    now: Optional[datetime] = None,
) -> TrainerFlow:
    """Validate and return the published copy; raise FlowPublishError on any error."""
    result = validate_flow(flow.nodes, flow.edges, flow.settings, policy)
    if result.errors:
        raise FlowPublishError(result.errors, result)
    return flow.model_copy(
        update={
            "is_published": True,
            "published_at": now or datetime.utcnow(),
            "published_by": user_id,
        }
    )


def unpublish(flow: TrainerFlow) -> TrainerFlow:
    """Revert to draft. No validation; the version itself is kept."""
    return flow.model_copy(update={"is_published": False, "published_at": None, "published_by": None})


def publish_flow(db: Session, flow_id: str, user_id: str) -> dict[str, Any]:
    """
    Publish a stored flow version.

    Sibling versions of the same trainer are unpublished in the same
    transaction, so a trainer serves one version at a time. The trainer row
    is written too: a concurrent publish of another version bumps its
    revision first and this commit fails with FlowConflictError.
    """
    row = get_flow_row(db, flow_id)
    if row.is_published:
        raise FlowStateError("Flow is already published")
    flow = normalize_flow(row_to_flow(row))
    try:
        published = publish(flow, user_id)
    except FlowPublishError as e:
        log_validation_result(logger, flow_id, e.result)
        log_publish_event(logger, flow_id, "publish", user_id=user_id, success=False, error=str(e))
        raise

    trainer = row.trainer
    trainer_revision = trainer.revision
    siblings = (
        db.query(TrainerFlowModel)
        .filter(
            TrainerFlowModel.trainer_id == row.trainer_id,
            TrainerFlowModel.id != row.id,
            TrainerFlowModel.is_published.is_(True),
        )
        .all()
    )
    for sibling in siblings:
        apply_flow_to_row(sibling, unpublish(row_to_flow(sibling)))
    apply_flow_to_row(row, published)
    trainer.updated_at = datetime.utcnow()
    commit_or_conflict(db)
    db.refresh(row)
    log_publish_event(
        logger,
        flow_id,
        "publish",
        user_id=user_id,
        success=True,
        extra={
            "version": row.version,
            "trainer_revision": trainer_revision + 1,
            "unpublished_siblings": [s.id for s in siblings],
        },
    )
    return {"success": True, "flow": row_to_flow(row)}


def unpublish_flow(db: Session, flow_id: str) -> dict[str, Any]:
    row = get_flow_row(db, flow_id)
    apply_flow_to_row(row, unpublish(row_to_flow(row)))
    commit_or_conflict(db)
    db.refresh(row)
    log_publish_event(logger, flow_id, "unpublish", success=True)
    return {"success": True, "flow": row_to_flow(row)}
