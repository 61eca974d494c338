from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

DEFAULT_LOG_DIR = Path(
    os.environ.get(
        "INSTALLER_FINISH_LOG_DIR",
        "/var/log/installer-finish",
    )
)

# Used when DEFAULT_LOG_DIR is not writable (e.g. running without root)
FALLBACK_LOG_DIR = Path.home() / ".local" / "state" / "installer-finish" / "logs"


def _should_log_dump(record) -> bool:
    """Keep multi-line file dumps out of the console; the log files get them."""
    tags = record["extra"].get("tags", [])

    if "dump" in tags:
        return record["level"].no >= logger.level("WARNING").no

    return True


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Setup multi-tier logging with separate sinks for different log levels.

    Logging Tiers:
    - CRITICAL/ERROR: Failed steps, unrecoverable errors
    - SUCCESS/INFO: Step start/finish, target system changes
    - DEBUG: Command execution, parameter bags, file dumps
    - TRACE: Ultra-verbose (every parsed mount entry)

    Log Files:
    - operations.log: INFO+ events (7 day retention)
    - debug.log: DEBUG+ events when --debug is enabled (3 day retention)
    - structured.jsonl: Structured JSON logs for analysis (7 day retention)

    Args:
        debug: Enable DEBUG level logging
        trace: Enable TRACE level logging (very verbose)
        log_dir: Custom log directory (defaults to /var/log/installer-finish)
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    # SINK 1: Console (stderr)
    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        filter=_should_log_dump,
        colorize=True,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[source]: <15}</cyan> | "
            "<blue>{extra[job_id]: <20}</blue> | "
            "{message}"
        ),
    )

    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    # SINK 2: Operations Log (INFO+)
    logger.add(
        log_dir / "operations.log",
        level="INFO",
        rotation="5 MB",
        retention="7 days",
        compression="zip",
        backtrace=False,
        diagnose=False,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <15} | "
            "{extra[job_id]: <20} | "
            "{message}"
        ),
    )

    # SINK 3: Debug Log (DEBUG+ when debug=True)
    if debug or trace:
        logger.add(
            log_dir / "debug.log",
            level="TRACE" if trace else "DEBUG",
            rotation="10 MB",
            retention="3 days",
            compression="zip",
            backtrace=True,
            diagnose=True,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <15} | "
                "{extra[job_id]: <20} | "
                "{extra[tags]} | "
                "{message}"
            ),
        )

    # SINK 4: Structured JSON Log (INFO+)
    logger.add(
        log_dir / "structured.jsonl",
        level="INFO",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        serialize=True,
        format="{message}",
    )

    return logger


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking a step write with automatic timing.

    Logs the start, completion and failure of the operation together with its
    duration.

    Example:
        with operation_context("umount_finish", destdir="/mnt") as log:
            log.debug("Reading /proc/mounts")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.info(f"starting {operation}", **details)

        try:
            yield log
            duration = time.time() - start_time
            log.success(f"{operation} finished", duration_seconds=round(duration, 2))
        except Exception as e:
            duration = time.time() - start_time
            log.error(
                f"{operation} failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.

    Each factory method returns a logger pre-configured with appropriate
    source, tags, and context for the domain.
    """

    @staticmethod
    def for_finish(step: str, job_id: str | None = None) -> Logger:
        """Logger for a finish step client."""
        if job_id is None:
            job_id = f"{step}-{uuid.uuid4().hex[:8]}"
        return logger.bind(job_id=job_id, source=step, tags=["finish", step])

    @staticmethod
    def for_umount() -> Logger:
        """Logger for the unmount sequencer."""
        return logger.bind(source="umount", tags=["umount", "storage"])

    @staticmethod
    def for_storage() -> Logger:
        """Logger for mount table, mtab and btrfs handling."""
        return logger.bind(source="storage", tags=["storage"])

    @staticmethod
    def for_dump() -> Logger:
        """Logger for verbatim dumps of /proc files and tool output."""
        return logger.bind(source="dump", tags=["dump"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for commands, settings and target system writers."""
        return logger.bind(source="system", tags=["system"])
