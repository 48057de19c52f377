"""User-editable detection settings."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from api import deps
from core.config import config
from models.schemas import SettingsUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["settings"])


@router.get("/settings")
async def get_settings():
    """Get current app settings."""
    return config.model_dump(mode="json")


@router.patch("/settings")
async def update_settings(updates: SettingsUpdate):
    """Update settings (partial); persisted and applied to the live pipeline."""
    applied = updates.model_dump(exclude_none=True)
    for key, value in applied.items():
        setattr(config, key, value)

    if applied:
        config.save_user_settings()
        if "ml_enabled" in applied:
            # Classifier presence is fixed at build time; release the old workers
            deps.shutdown()
            deps.set_pipeline(None)
        else:
            deps.get_pipeline().configure(**config.pipeline_options())
        logger.info("Settings updated: %s", ", ".join(sorted(applied)))

    return {"applied": applied, "settings": config.model_dump(mode="json")}
