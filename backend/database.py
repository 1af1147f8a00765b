"""
SQLite database setup for Chat Train.

Uses SQLAlchemy with a single file (chattrain.db) for simplicity.
"""

import os
from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import declarative_base, sessionmaker

# Default: store DB in project root for easy backup/portability
DB_DIR = Path(__file__).resolve().parent.parent
DB_PATH = os.getenv("CHATTRAIN_DB_PATH", str(DB_DIR / "chattrain.db"))
SQLALCHEMY_DATABASE_URI = f"sqlite:///{DB_PATH}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URI,
    connect_args={"check_same_thread": False},  # SQLite requirement for FastAPI
    echo=os.getenv("CHATTRAIN_DB_ECHO", "0") == "1",  # Set CHATTRAIN_DB_ECHO=1 to log SQL
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def enable_sqlite_foreign_keys(target_engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""

    @event.listens_for(target_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)


def get_db():
    """Dependency: yield a DB session and close it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def migrate_if_needed():
    """Add columns introduced after the first release to existing tables if missing."""
    adds = {
        "trainers": [("revision", "INTEGER NOT NULL DEFAULT 1")],
        "trainer_flows": [("revision", "INTEGER NOT NULL DEFAULT 1"), ("published_by", "TEXT")],
    }
    for table, columns in adds.items():
        with engine.connect() as conn:
            r = conn.execute(text(f"PRAGMA table_info({table})")).fetchall()
            existing = {row[1] for row in r}
        for col, ctype in columns:
            if existing and col not in existing:
                with engine.connect() as conn:
                    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col} {ctype}"))
                    conn.commit()
