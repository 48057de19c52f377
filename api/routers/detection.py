"""PII detection endpoints: single text and batch."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from api.deps import get_pipeline
from core.detection.pipeline import DEFAULT_OPTIONS, PipelineContext
from models.schemas import BatchDetectRequest, DetectionResult, DetectRequest, RuntimeContext

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["detection"])

_MAX_BATCH = 100


def _check_options(options: dict[str, Any]) -> None:
    unknown = sorted(set(options) - set(DEFAULT_OPTIONS))
    if unknown:
        raise HTTPException(422, f"Unknown option(s): {', '.join(unknown)}")
    if options.get("runtime_context") is not None:
        try:
            RuntimeContext.model_validate(options["runtime_context"])
        except ValidationError as exc:
            raise HTTPException(
                422, f"Invalid runtime_context ({exc.error_count()} errors)",
            ) from exc


@router.post("/detect", response_model=DetectionResult)
async def detect(req: DetectRequest):
    """Run the detection pipeline on one text."""
    _check_options(req.options)
    pipeline = get_pipeline()
    ctx = PipelineContext(
        language=req.language,
        config=dict(req.options),
        runtime_context=req.runtime_context,
    )
    # Detection is CPU-bound; keep the event loop free
    return await asyncio.to_thread(pipeline.process, req.text, ctx)


@router.post("/detect/batch", response_model=list[DetectionResult])
async def detect_batch(req: BatchDetectRequest):
    """Run the pipeline on several texts; results keep the input order."""
    if len(req.texts) > _MAX_BATCH:
        raise HTTPException(413, f"At most {_MAX_BATCH} texts per batch")
    _check_options(req.options)
    pipeline = get_pipeline()
    logger.info("Batch detection request: %d texts", len(req.texts))
    return await asyncio.to_thread(
        pipeline.process_batch, req.texts, None, req.language, req.options,
    )
