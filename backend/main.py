from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import engine, session_scope
from models import Base
from routes import dashboard as dashboard_routes
from routes import disease as disease_routes
from services.errors import UpstreamError
from services.ingest_service import IngestService

logger = logging.getLogger("surveillance")


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    _configure_logging()
    app = FastAPI(title=settings.app_name)

    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(disease_routes.router)
    app.include_router(dashboard_routes.router)

    @app.exception_handler(UpstreamError)
    async def _upstream_error(_request: Request, exc: UpstreamError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message, "view": exc.view})

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup() -> None:
        logger.info("[CONFIG] APP_ENV=%s", settings.env)
        logger.info("[CONFIG] DATABASE_URL=%s", settings.database_url)
        logger.info("[CONFIG] SEED_SAMPLE_DATA=%s", settings.seed_sample_data)
        logger.info(
            "[CONFIG] MAX_LOOKBACK_DAYS=%s QUERY_TIMEOUT_S=%s WARN_THRESHOLD_MS=%s",
            settings.max_lookback_days,
            settings.query_timeout_s,
            settings.slow_call_warn_ms,
        )

        Base.metadata.create_all(bind=engine)

        # Seed sample data for demo (only if DB empty)
        if not settings.seed_sample_data:
            return
        if not os.path.exists(settings.sample_csv_path):
            logger.warning("[SEED] %s not found; skipping", settings.sample_csv_path)
            return
        ingest = IngestService()
        with session_scope() as db:
            if ingest.has_any_data(db):
                return
            ingest.ingest_file(db, settings.sample_csv_path)

    return app


app = create_app()
