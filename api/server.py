"""FastAPI application — HTTP surface of the PII detection pipeline."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import deps
from api.routers import detection, settings
from models.schemas import HealthResponse

logger = logging.getLogger(__name__)

app = FastAPI(
    title="pii-pipeline",
    version=deps.VERSION,
    description="Multi-pass PII detection and consolidation",
)

# Review UI runs on a different origin during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(detection.router)
app.include_router(settings.router)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@app.on_event("startup")
async def startup():
    logger.info("Starting PII detection service (ML %s)", "available" if deps.ml_available() else "off")


@app.on_event("shutdown")
async def shutdown():
    deps.shutdown()


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(version=deps.VERSION, ml_available=deps.ml_available())
