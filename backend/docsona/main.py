from __future__ import annotations


import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docsona.api.v1 import appointments
from docsona.core.config import settings
from docsona.core.logging import LoggingMiddleware, configure_logging
from docsona.db.session import init_db
from docsona.services import start_background_services, stop_background_services

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title=settings.project_name)

app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    start_background_services()
    logger.info("application_started", project=settings.project_name)


@app.on_event("shutdown")
def on_shutdown() -> None:
    stop_background_services()


@app.get("/healthz", tags=["system"])
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(appointments.router, prefix="/api/v1")
