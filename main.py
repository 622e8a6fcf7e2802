"""
Mandala Planner web service entry point.

    python main.py                      # 0.0.0.0:8020
    MANDALA_RELOAD=1 python main.py     # auto-reload while editing web/ or mandala/
"""
import os
import sys
from pathlib import Path

import uvicorn

sys.path.insert(0, str(Path(__file__).parent))

from mandala.logger import get_logger, setup_logging  # noqa: E402

TRUTHY = {"1", "true", "yes", "on"}


def main():
    setup_logging()

    reload_enabled = os.getenv("MANDALA_RELOAD", "").strip().lower() in TRUTHY
    host = os.getenv("MANDALA_HOST", "0.0.0.0")
    port = int(os.getenv("MANDALA_PORT", "8020"))
    get_logger("server").info("Serving on %s:%d (reload=%s)", host, port, reload_enabled)

    uvicorn.run(
        "web.backend.app:app",
        host=host,
        port=port,
        reload=reload_enabled,
        reload_dirs=["web", "mandala"] if reload_enabled else None,
    )


if __name__ == "__main__":
    main()
