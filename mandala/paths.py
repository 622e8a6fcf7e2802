"""
Filesystem locations: config templates, runtime data, logs and exports.

Data and log directories can be moved with MANDALA_DATA_DIR and
MANDALA_LOG_DIR; they are read at call time so tests can redirect them.
"""
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"


def _dir_from_env(var: str, default: Path) -> Path:
    raw = os.getenv(var, "").strip()
    return Path(raw).expanduser() if raw else default


def get_data_dir() -> Path:
    """plans.json lives here (MANDALA_DATA_DIR or <project_root>/data)."""
    return _dir_from_env("MANDALA_DATA_DIR", PROJECT_ROOT / "data")


def get_logs_dir() -> Path:
    return _dir_from_env("MANDALA_LOG_DIR", PROJECT_ROOT / "logs")


def get_exports_dir() -> Path:
    """Generated PDFs and CSV sheets."""
    return get_data_dir() / "exports"

