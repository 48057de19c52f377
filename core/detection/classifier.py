"""Token-classification backends for the ML half of the high-recall pass.

A classifier takes a chunk of text and returns raw per-token predictions
in the Hugging Face shape ``{"entity", "word", "score", "start", "end"}``.
``infer`` blocks; ``submit`` (optional) returns a
:class:`concurrent.futures.Future` so inference can run on a worker
thread while the caller waits with a timeout.

Backends:
  - :class:`TransformersClassifier` — lazy-loaded ``transformers`` NER
    pipeline, in-process
  - :class:`ThreadedClassifier` — wraps any classifier with a
    single-worker executor; falls back to in-process inference once the
    executor has been shut down
"""

from __future__ import annotations

import logging
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional, Protocol, runtime_checkable

from core.detection import detection_config as det_cfg
from core.detection.ml_retry import MLInputError
from core.detection.subword_merge import strip_bio
from models.schemas import PIIType

logger = logging.getLogger(__name__)

Prediction = dict[str, Any]

DEFAULT_MODEL = "Davlan/bert-base-multilingual-cased-ner-hrl"

# ---------------------------------------------------------------------------
# Label mapping
# ---------------------------------------------------------------------------

ML_LABEL_MAP: dict[str, PIIType] = {
    "PER": PIIType.PERSON,
    "PERSON": PIIType.PERSON,
    "ORG": PIIType.ORGANIZATION,
    "ORGANIZATION": PIIType.ORGANIZATION,
    "LOC": PIIType.LOCATION,
    "LOCATION": PIIType.LOCATION,
    "GPE": PIIType.LOCATION,
    "DATE": PIIType.DATE,
    "PHONE": PIIType.PHONE,
    "EMAIL": PIIType.EMAIL,
    "ADDRESS": PIIType.ADDRESS,
    "MISC": PIIType.UNKNOWN,
}


def map_ml_label(label: str) -> PIIType:
    """``"B-PER"`` → PERSON; unknown labels map to UNKNOWN."""
    return ML_LABEL_MAP.get(strip_bio(label).upper(), PIIType.UNKNOWN)


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def validate_ml_input(text: Any, max_length: int = det_cfg.ML_MAX_INPUT_CHARS) -> str:
    """Check classifier input; return it with control characters blanked.

    The returned string has the same length as *text* so prediction
    offsets stay valid.  Raises :class:`MLInputError` for non-strings,
    blank input and input over *max_length* characters.
    """
    if not isinstance(text, str):
        raise MLInputError(f"Invalid input: expected str, got {type(text).__name__}")
    if not text.strip():
        raise MLInputError("Invalid input: text is empty")
    if len(text) > max_length:
        raise MLInputError(
            f"Invalid input: {len(text)} characters exceeds the limit of {max_length}"
        )
    return _CONTROL_CHARS.sub(" ", text)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class Classifier(Protocol):
    def infer(self, text: str) -> list[Prediction]: ...


# ---------------------------------------------------------------------------
# transformers backend
# ---------------------------------------------------------------------------

class TransformersClassifier:
    """Hugging Face token-classification pipeline, loaded on first use."""

    def __init__(self, model_id: str = DEFAULT_MODEL, device: int = -1) -> None:
        self.model_id = model_id
        self.device = device
        self._pipeline = None
        self._lock = threading.Lock()
        self._infer_lock = threading.Lock()

    def _load(self):
        with self._lock:
            if self._pipeline is None:
                from transformers import pipeline as hf_pipeline

                logger.info("Loading HF NER model '%s' …", self.model_id)
                # No aggregation: sub-word pieces are merged by subword_merge
                self._pipeline = hf_pipeline(
                    "ner",
                    model=self.model_id,
                    aggregation_strategy="none",
                    device=self.device,
                )
                logger.info("HF model '%s' loaded successfully", self.model_id)
            return self._pipeline

    @property
    def loaded(self) -> bool:
        return self._pipeline is not None

    def unload(self) -> None:
        with self._lock:
            self._pipeline = None
        logger.info("HF NER pipeline unloaded")

    def infer(self, text: str) -> list[Prediction]:
        pipe = self._load()
        # HF pipelines are not safe to call from several threads at once
        with self._infer_lock:
            results = pipe(text)
        return [
            {
                "entity": ent.get("entity", ent.get("entity_group", "")),
                "word": ent.get("word", ""),
                "score": float(ent.get("score", 0.0)),
                "start": int(ent.get("start") or 0),
                "end": int(ent.get("end") or 0),
            }
            for ent in results
        ]


def is_transformers_available() -> bool:
    """Check if the transformers package can be imported."""
    try:
        import transformers  # noqa: F401
        return True
    except ImportError:
        return False


# ---------------------------------------------------------------------------
# Worker-thread wrapper
# ---------------------------------------------------------------------------

class ThreadedClassifier:
    """Run another classifier's inference on a dedicated worker pool."""

    def __init__(self, inner: Classifier, max_workers: int = 1) -> None:
        self.inner = inner
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="ml-infer",
        )
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self._executor is not None

    def submit(self, text: str) -> Future:
        with self._lock:
            executor = self._executor
            if executor is not None:
                try:
                    return executor.submit(self.inner.infer, text)
                except RuntimeError:
                    # Executor shut down underneath us
                    self._executor = None
        logger.warning("ML worker pool unavailable; running inference in-process")
        future: Future = Future()
        try:
            future.set_result(self.inner.infer(text))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def infer(self, text: str) -> list[Prediction]:
        return self.submit(text).result()

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
