"""
Centralized Logging Configuration for go-grader.

Console output stays human-friendly; the optional run log is serialized JSON
so that a grading run can be audited after the fact.
"""

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from go_grader.config import settings

if TYPE_CHECKING:  # pragma: no cover
    from loguru import Logger
else:  # pragma: no cover
    Logger = Any


def setup_main_process_logging(
    run_id: str,
    logs_dir: Path | None = None,
    *,
    level: str | None = None,
) -> Path | None:
    """
    Configure logging for the grading process.

    Sets up:
    - Console output at the configured level
    - <logs_dir>/<run_id>/run.log at DEBUG level, when logs_dir is given
    - Global run_id context

    Returns the run log path, if any.
    """
    # Remove default handler first
    logger.remove()

    handlers: list[dict[str, Any]] = [
        {
            "sink": sys.stderr,
            "level": level or settings.log_level,
            "format": "<level>{message}</level>",
        },
    ]

    run_log: Path | None = None
    if logs_dir is not None:
        run_log = logs_dir / run_id / "run.log"
        run_log.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            {
                "sink": run_log,
                "level": "DEBUG",
                "serialize": True,
                "enqueue": True,  # Thread-safe
                "backtrace": True,
                "diagnose": False,
            }
        )

    logger.configure(handlers=handlers, extra={"run_id": run_id})
    return run_log


def get_problem_logger(problem_id: str) -> Logger:
    """
    Get a logger bound with problem context.

    This assumes logging has already been configured.
    """
    return logger.bind(problem=problem_id)
