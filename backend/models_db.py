"""
SQLAlchemy ORM models for Chat Train (persisted in SQLite).

Stores trainers and their flow versions; nodes and edges live inside the flow
row as JSON.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.database import Base

TRAINER_TYPES = ("compliance", "sales", "customer-service", "onboarding", "soft-skills", "knowledge-qa", "custom")
TRAINER_STATUSES = ("draft", "active", "inactive", "archived", "testing")


class TrainerModel(Base):
    """A training bot. Owns its flow versions."""

    __tablename__ = "trainers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="custom")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft", index=True)
    # Optimistic lock; every publish of one of its flows bumps it
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    flows: Mapped[list["TrainerFlowModel"]] = relationship(
        back_populates="trainer",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": revision}


class TrainerFlowModel(Base):
    """One version of a trainer's flow graph."""

    __tablename__ = "trainer_flows"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    trainer_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("trainers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version: Mapped[str] = mapped_column(String(32), nullable=False, default="1.0.0", index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    nodes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    edges: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    settings: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    flow_metadata: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)  # 'metadata' is reserved by SQLAlchemy
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    published_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Optimistic concurrency: every UPDATE checks and bumps this counter
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    trainer: Mapped[TrainerModel] = relationship(back_populates="flows")

    __mapper_args__ = {"version_id_col": revision}
