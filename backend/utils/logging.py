"""
Structured logging for Chat Train.

- Configurable level (DEBUG, INFO, WARN, ERROR)
- Writes to the logs/ directory (file handler)
- Console handler for development
- Helpers for validation results and publish transitions
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

# Default: project root / logs
LOG_DIR = Path(os.getenv("CHATTRAIN_LOG_DIR", str(Path(__file__).resolve().parent.parent.parent / "logs")))
LOG_LEVEL = os.getenv("CHATTRAIN_LOG_LEVEL", "INFO").upper()


def _ensure_log_dir(log_dir: Path) -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def configure_logging(
    level: str = LOG_LEVEL,
    log_dir: Optional[Path] = None,
    log_to_console: bool = True,
) -> None:
    """Configure root and backend loggers. Call once at app startup."""
    log_dir = _ensure_log_dir(log_dir or LOG_DIR)
    level_value = getattr(logging, level, logging.INFO)

    file_handler = logging.FileHandler(log_dir / "chattrain.log", encoding="utf-8")
    file_handler.setLevel(level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )

    root = logging.getLogger()
    root.setLevel(level_value)
    # Avoid duplicate handlers when reloading
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(file_handler)
    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level_value)
        console.setFormatter(logging.Formatter("%(levelname)s | %(name)s | %(message)s"))
        root.addHandler(console)

    logging.getLogger("backend").setLevel(level_value)


def log_validation_result(
    logger: logging.Logger,
    flow_id: Optional[str],
    result: Any,
    duration_sec: Optional[float] = None,
) -> None:
    """Log a validator verdict (counts only). Warning level when it has errors."""
    if result is None:
        return
    payload = {
        "event": "validation",
        "flow_id": flow_id,
        "is_valid": result.is_valid,
        "errors": len(result.errors),
        "warnings": len(result.warnings),
        "suggestions": len(result.suggestions),
        "duration_sec": duration_sec,
        "ts": datetime.utcnow().isoformat() + "Z",
    }
    level = logging.INFO if result.is_valid else logging.WARNING
    logger.log(level, "Validation: %s", json.dumps(payload, default=str))


def log_publish_event(
    logger: logging.Logger,
    flow_id: str,
    action: str,
    user_id: Optional[str] = None,
    success: bool = True,
    error: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Log a publish or unpublish transition."""
    payload = {
        "event": "flow_" + action,
        "flow_id": flow_id,
        "user_id": user_id,
        "success": success,
        "error": error,
        "ts": datetime.utcnow().isoformat() + "Z",
    }
    if extra:
        payload.update(extra)
    if success:
        logger.info("Publish gate: %s", json.dumps(payload, default=str))
    else:
        logger.warning("Publish gate: %s", json.dumps(payload, default=str))
