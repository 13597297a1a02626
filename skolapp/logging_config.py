# skolapp/logging_config.py
"""
Structured JSON logging for maintenance jobs and the API.

Provides single-line JSON logs with run and step context so the output of a
scheduled sweep can be filtered per run in the CI log viewer, plus a context
manager that times each sweep step.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variables for run correlation
run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
job_var: ContextVar[str | None] = ContextVar("job", default=None)
step_var: ContextVar[str | None] = ContextVar("step", default=None)

# Extra fields copied from the log record when present
EXTRA_FIELDS = (
    "event",
    "duration_ms",
    "count",
    "dry_run",
    "org_id",
    "consent_id",
    "student_id",
    "invite_id",
    "user_id",
    "table",
    "retention_days",
    "cutoff",
)


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "run_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        job = job_var.get()
        if job:
            log_data["job"] = job

        step = step_var.get()
        if step:
            log_data["step"] = step

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure logging for scheduled jobs or local development.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def set_run_context(run_id: str, job: str) -> None:
    """Attach run and job identifiers to every subsequent log line."""
    run_id_var.set(run_id)
    job_var.set(job)


def clear_run_context() -> None:
    run_id_var.set(None)
    job_var.set(None)
    step_var.set(None)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def log_step(step: str):
    """
    Context manager for sweep step logging.

    Logs step start and end with duration. Exceptions are logged and re-raised;
    callers decide whether a failed step aborts anything.

    Usage:
        with log_step("expire_consents"):
            # ... step logic ...
    """
    token = step_var.set(step)

    start_time = time.time()
    logger = logging.getLogger("skolapp.jobs")

    logger.info(f"Step {step} started", extra={"event": "step_start"})

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Step {step} completed",
            extra={"event": "step_complete", "duration_ms": duration_ms},
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Step {step} failed: {e}",
            extra={"event": "step_failed", "duration_ms": duration_ms},
            exc_info=True,
        )
        raise
    finally:
        step_var.reset(token)
