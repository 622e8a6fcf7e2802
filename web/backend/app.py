import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mandala.config_manager import settings
from mandala.logger import get_logger
from web.backend.routers import admin, plans, recommendations

logger = get_logger("api")

API_PREFIX = "/api/v1"


def allowed_origins() -> List[str]:
    """MANDALA_ALLOWED_ORIGINS (comma separated), else the site URL, else any."""
    raw = os.getenv("MANDALA_ALLOWED_ORIGINS") or settings.site_url or "*"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app() -> FastAPI:
    app = FastAPI(title="Mandala Planner API", version="1.0")

    origins = allowed_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # browsers refuse credentials with a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "Mandala Planner"}

    for router, name in ((plans.router, "plans"), (recommendations.router, "recommendations"), (admin.router, "admin")):
        app.include_router(router, prefix=f"{API_PREFIX}/{name}", tags=[name])

    logger.info("API ready, CORS origins: %s", ", ".join(origins))
    return app


app = create_app()
