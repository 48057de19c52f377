"""Pass 10 — high-recall candidate generation.

Regex library + optional ML token classifier, merged into one span list.
False positives are expected here; later passes prune them.

ML failures never abort the document: after the retry policy gives up,
the pass continues regex-only and marks ``ml_status`` as ``degraded``.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING, Optional

from core.detection import detection_config as det_cfg
from core.detection.chunking import TextChunk, TextChunker, merge_chunk_predictions
from core.detection.classifier import Classifier, Prediction, map_ml_label, validate_ml_input
from core.detection.deny_list import DenyList
from core.detection.merge import drop_frontmatter, find_frontmatter_end, merge_candidates
from core.detection.ml_retry import MLInputError, RetryExhaustedError, RetryPolicy, call_with_retry
from core.detection.regex_detector import detect_regex, matches_to_entities
from core.detection.regex_patterns import PatternDef
from core.detection.subword_merge import MLToken, merge_subwords
from models.schemas import DetectionSource, Entity

if TYPE_CHECKING:
    from core.detection.pipeline import PipelineContext

logger = logging.getLogger(__name__)


class HighRecallPass:
    name = "high_recall"
    order = det_cfg.ORDER_HIGH_RECALL

    def __init__(
        self,
        classifier: Optional[Classifier] = None,
        deny_list: Optional[DenyList] = None,
        chunker: Optional[TextChunker] = None,
        patterns: Optional[list[PatternDef]] = None,
    ) -> None:
        self.enabled = True
        self.classifier = classifier
        self.deny_list = deny_list
        self.chunker = chunker or TextChunker()
        self.patterns = patterns

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        candidates = list(entities)

        rule = matches_to_entities(detect_regex(text, patterns=self.patterns))
        ml = self._ml_entities(text, context)
        logger.debug("High recall: %d rule, %d ML candidates", len(rule), len(ml))
        candidates.extend(rule)
        candidates.extend(ml)

        merged = merge_candidates(candidates, text)

        # Frontmatter is located once per document, and only after merging
        if "frontmatter_end" not in context.metadata:
            context.metadata["frontmatter_end"] = find_frontmatter_end(text)
        merged = drop_frontmatter(merged, context.metadata["frontmatter_end"])

        if self.deny_list is not None and context.option("deny_list_enabled", True):
            merged = self._filter_denied(merged, context)
        return merged

    # ── ML ───────────────────────────────────────────────────────────

    def _ml_entities(self, text: str, context: PipelineContext) -> list[Entity]:
        if self.classifier is None or not context.option("ml_enabled", True):
            context.metadata["ml_status"] = "disabled"
            return []

        policy = RetryPolicy(
            max_attempts=int(context.option("retry_max_attempts", det_cfg.RETRY_MAX_ATTEMPTS)),
            initial_delay_ms=float(context.option("retry_initial_delay_ms", det_cfg.RETRY_INITIAL_DELAY_MS)),
            max_delay_ms=float(context.option("retry_max_delay_ms", det_cfg.RETRY_MAX_DELAY_MS)),
            multiplier=float(context.option("retry_multiplier", det_cfg.RETRY_MULTIPLIER)),
        )
        timeout = context.option("ml_timeout_s")

        # Sizes, counts and timings only: no text reaches the metrics
        metrics: dict = {"text_length": len(text), "chunks": [], "failed": False}
        context.metadata["ml_metrics"] = metrics
        started = time.perf_counter()
        try:
            clean = validate_ml_input(text)
            per_chunk: list[tuple[TextChunk, list[MLToken]]] = []
            for chunk in self.chunker.chunk(clean):
                chunk_started = time.perf_counter()
                raw = call_with_retry(lambda c=chunk: self._infer(c.text, timeout), policy)
                metrics["chunks"].append({
                    "index": chunk.index,
                    "chars": chunk.end - chunk.start,
                    "tokens": self.chunker.count_tokens(chunk.text),
                    "predictions": len(raw),
                    "duration_ms": round((time.perf_counter() - chunk_started) * 1000, 2),
                })
                per_chunk.append((chunk, [MLToken.from_raw(r) for r in raw]))
        except (MLInputError, RetryExhaustedError) as exc:
            logger.warning("ML detection unavailable, continuing regex-only: %s", exc)
            metrics["failed"] = True
            self._finish_metrics(metrics, started, 0)
            context.metadata["ml_status"] = "degraded"
            context.record_error(self.name, exc)
            return []

        tokens = merge_chunk_predictions(per_chunk)
        threshold = float(context.option("ml_threshold", det_cfg.ML_THRESHOLD))
        entities: list[Entity] = []
        for m in merge_subwords(tokens, text):
            if m.score < threshold:
                continue
            entities.append(Entity(
                type=map_ml_label(m.label),
                text=m.text,
                start=m.start,
                end=m.end,
                confidence=max(0.0, min(1.0, m.score)),
                source=DetectionSource.ML,
                metadata={"ml_label": m.label, "ml_pieces": m.pieces},
            ))
        self._finish_metrics(metrics, started, len(entities))
        context.metadata["ml_status"] = "ok"
        return entities

    @staticmethod
    def _finish_metrics(metrics: dict, started: float, detected: int) -> None:
        chunks = metrics["chunks"]
        metrics["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        metrics["chunk_count"] = len(chunks)
        metrics["chunked"] = len(chunks) > 1
        metrics["tokens_processed"] = sum(c["tokens"] for c in chunks)
        metrics["entities_detected"] = detected
        logger.debug(
            "ML metrics: %d chunk(s), %d tokens, %d entities in %.1f ms",
            len(chunks), metrics["tokens_processed"], detected, metrics["duration_ms"],
        )

    def _infer(self, text: str, timeout: Optional[float]) -> list[Prediction]:
        submit = getattr(self.classifier, "submit", None)
        if submit is None:
            return self.classifier.infer(text)
        future = submit(text)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise TimeoutError(f"ML inference timed out after {timeout}s") from exc

    # ── deny list ────────────────────────────────────────────────────

    def _filter_denied(self, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        counts: dict[str, int] = context.metadata.setdefault("deny_list_filtered", {})
        kept: list[Entity] = []
        for ent in entities:
            if self.deny_list.is_denied(ent.text, ent.type, context.language):
                counts[ent.type.value] = counts.get(ent.type.value, 0) + 1
                logger.debug("Deny list dropped %s %r", ent.type.value, ent.text)
                continue
            kept.append(ent)
        return kept
