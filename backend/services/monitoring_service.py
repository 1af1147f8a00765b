"""
Monitoring for Chat Train.

- Health check: DB connectivity
- Metrics: trainer and flow counts, publish state, complexity mix
- Used by /api/health and /api/metrics
"""

import logging
from typing import Any

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models_db import TrainerFlowModel, TrainerModel

logger = logging.getLogger(__name__)


def check_db(db: Session) -> tuple[bool, str]:
    """Check database connectivity. Returns (ok, message)."""
    try:
        db.execute(text("SELECT 1"))
        return True, "ok"
    except SQLAlchemyError as e:
        return False, str(e)


def get_health(db: Session) -> dict[str, Any]:
    """Return health status for /api/health."""
    db_ok, db_msg = check_db(db)
    return {
        "status": "healthy" if db_ok else "unhealthy",
        "checks": {
            "database": {"status": "up" if db_ok else "down", "message": db_msg},
        },
    }


def get_metrics(db: Session) -> dict[str, Any]:
    """Aggregate counts for /api/metrics."""
    try:
        trainers_total = db.query(func.count(TrainerModel.id)).scalar() or 0
        flows_total = db.query(func.count(TrainerFlowModel.id)).scalar() or 0
        flows_published = (
            db.query(func.count(TrainerFlowModel.id))
            .filter(TrainerFlowModel.is_published.is_(True))
            .scalar() or 0
        )
        complexity = {"low": 0, "medium": 0, "high": 0}
        for (meta,) in db.query(TrainerFlowModel.flow_metadata).all():
            bucket = (meta or {}).get("complexity")
            if bucket in complexity:
                complexity[bucket] += 1
        return {
            "trainers_total": trainers_total,
            "flows_total": flows_total,
            "flows_published": flows_published,
            "flows_draft": flows_total - flows_published,
            "flows_by_complexity": complexity,
        }
    except SQLAlchemyError as e:
        logger.exception("get_metrics failed: %s", e)
        return {
            "trainers_total": 0,
            "flows_total": 0,
            "flows_published": 0,
            "flows_draft": 0,
            "flows_by_complexity": {"low": 0, "medium": 0, "high": 0},
            "error": str(e),
        }
