"""Shared state and helpers used by all API routers."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from core.config import config
from core.detection.classifier import (
    Classifier,
    ThreadedClassifier,
    TransformersClassifier,
    is_transformers_available,
)
from core.detection.pipeline import DetectionPipeline, create_default_pipeline

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Singleton state  (built lazily on first request, replaced by tests)
# ---------------------------------------------------------------------------
_pipeline: Optional[DetectionPipeline] = None
_classifier: Optional[ThreadedClassifier] = None
_lock = threading.Lock()


def ml_available() -> bool:
    return config.ml_enabled and is_transformers_available()


def _build_classifier() -> Optional[Classifier]:
    global _classifier
    if not ml_available():
        logger.info("ML classifier disabled or transformers missing — regex-only detection")
        return None
    _classifier = ThreadedClassifier(
        TransformersClassifier(config.ml_model), max_workers=max(1, config.ml_workers),
    )
    return _classifier


def get_pipeline() -> DetectionPipeline:
    """Return the shared pipeline, building it on first use."""
    global _pipeline
    with _lock:
        if _pipeline is None:
            _pipeline = create_default_pipeline(
                classifier=_build_classifier(), **config.pipeline_options(),
            )
        return _pipeline


def set_pipeline(pipeline: Optional[DetectionPipeline]) -> None:
    """Swap the shared pipeline (``None`` → rebuild on next request)."""
    global _pipeline
    with _lock:
        _pipeline = pipeline


def shutdown() -> None:
    global _classifier
    with _lock:
        classifier, _classifier = _classifier, None
    if classifier is not None:
        classifier.shutdown(wait=False)
