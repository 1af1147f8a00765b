#!/usr/bin/env python3
"""
Load the sample trainer and flow from flows/sample_onboarding_v1.json into the database.
Idempotent: the trainer is upserted and the flow is only created once.

Usage (from project root):
  python scripts/seed_sample_flow.py
"""
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

SAMPLE_PATH = ROOT / "flows" / "sample_onboarding_v1.json"


def main() -> int:
    if not SAMPLE_PATH.exists():
        print(f"Sample file not found: {SAMPLE_PATH}", file=sys.stderr)
        return 1
    from backend.database import Base, SessionLocal, engine
    from backend.models_db import TrainerFlowModel, TrainerModel
    from backend.services.flow_service import create_flow

    data = json.loads(SAMPLE_PATH.read_text(encoding="utf-8"))
    trainer_data = data.pop("trainer")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        trainer = db.get(TrainerModel, trainer_data["id"])
        if trainer is None:
            trainer = TrainerModel(**trainer_data)
            db.add(trainer)
        else:
            trainer.name = trainer_data["name"]
            trainer.description = trainer_data.get("description")
        db.commit()

        existing = (
            db.query(TrainerFlowModel)
            .filter(TrainerFlowModel.trainer_id == trainer.id, TrainerFlowModel.version == data["version"])
            .first()
        )
        if existing:
            print(f"Flow already seeded: {existing.name} (id={existing.id}, version={existing.version})")
            return 0
        flow = create_flow(db, trainer.id, data)
        print(
            f"Seeded flow: {flow.name} (id={flow.id}, version={flow.version}, "
            f"~{flow.metadata.estimated_duration} min, {flow.metadata.complexity.value})"
        )
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
