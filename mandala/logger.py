"""
Mandala Planner logging.

Where things go:
- logs/system.log   routine operations (INFO+)
- logs/error.log    failures with stack traces (ERROR+)
- logs/report_dump.log  raw model output of rejected reports
- stderr            WARNING+ only

MANDALA_LOG_LEVEL overrides the file level (e.g. DEBUG); MANDALA_LOG_DIR moves
the directory.
"""
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from mandala.paths import get_logs_dir

MAX_BYTES = 5 * 1024 * 1024  # 5MB
BACKUP_COUNT = 3

ROOT_LOGGER_NAME = "mandala"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: Optional[int] = None,
    console_level: int = logging.WARNING,
    logs_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Attach file and console handlers to the `mandala` logger.

    Safe to call more than once; existing handlers are replaced.
    """
    if log_level is None:
        log_level = logging.getLevelName(os.getenv("MANDALA_LOG_LEVEL", "INFO").upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    target_dir = logs_dir or get_logs_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    file_format = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    root.addHandler(_rotating_handler(target_dir / "system.log", log_level, file_format))
    root.addHandler(_rotating_handler(target_dir / "error.log", logging.ERROR, file_format))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module logger under the `mandala` namespace, e.g. get_logger("plan_store")."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME)


def log_rejected_report(plan_id: str, raw_content: Optional[str], reason: str, logs_dir: Optional[Path] = None) -> None:
    """
    Keep the full model output of a rejected report for later inspection.

    system.log only gets a one-line warning; the raw text can be long.
    """
    target_dir = logs_dir or get_logs_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    with open(target_dir / "report_dump.log", "a", encoding="utf-8") as f:
        f.write(f"[{datetime.now().isoformat()}] plan {plan_id}: {reason}\n")
        f.write(f"{raw_content or '<empty>'}\n")
        f.write("-" * 50 + "\n")

    get_logger("report_generator").warning("Rejected report for plan %s: %s", plan_id, reason)
