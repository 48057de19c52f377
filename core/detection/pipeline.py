"""PII detection pipeline — runs ordered passes over normalised text.

``DetectionPipeline.process`` normalises the input, hands a copy of the
entity list to each enabled pass in ascending ``order`` and maps every
surviving span back onto the caller's text.  A pass that raises is
logged, recorded in ``metadata["errors"]`` and rolled back; the next pass
still runs, so a result is always returned.

The default pass set (see :func:`create_default_pipeline`):

  10  high_recall            regex + optional ML candidates, merged
  20  format_validation      checksum / format validators
  25  address_relationship   component linking into grouped addresses
  30  context_scoring        context-word confidence adjustment
  50  consolidation          overlap resolution + logical ids
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Optional, Protocol

from pydantic import ValidationError

from core.detection import detection_config as det_cfg
from core.detection.language import detect_language
from core.detection.normalizer import NormalizationResult, TextNormalizer
from models.schemas import DetectionResult, Entity, PassRunInfo, RuntimeContext

if TYPE_CHECKING:
    from core.detection.classifier import Classifier
    from core.detection.deny_list import DenyList
    from core.detection.postal_db import SwissPostalDatabase
    from core.detection.validators import ValidatorRegistry

logger = logging.getLogger(__name__)


DEFAULT_OPTIONS: dict[str, Any] = {
    "ml_enabled": True,
    "ml_threshold": det_cfg.ML_THRESHOLD,
    "ml_timeout_s": None,
    "retry_max_attempts": det_cfg.RETRY_MAX_ATTEMPTS,
    "retry_initial_delay_ms": det_cfg.RETRY_INITIAL_DELAY_MS,
    "retry_max_delay_ms": det_cfg.RETRY_MAX_DELAY_MS,
    "retry_multiplier": det_cfg.RETRY_MULTIPLIER,
    "deny_list_enabled": True,
    "show_components": False,
    "context_window": det_cfg.CONTEXT_WINDOW,
    "context_windows": {},          # PIIType → window override
    "address_proximity": det_cfg.ADDRESS_PROXIMITY,
    "validation_floor": det_cfg.VALIDATION_FLOOR,
    "batch_workers": 4,
    "runtime_context": None,
}


# ---------------------------------------------------------------------------
# Context & pass protocol
# ---------------------------------------------------------------------------

@dataclass
class PipelineContext:
    """Per-document state threaded through every pass."""

    language: Optional[str] = None
    config: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    runtime_context: Optional[RuntimeContext] = None

    def option(self, key: str, default: Any = None) -> Any:
        value = self.config.get(key)
        return default if value is None else value

    def record_error(self, pass_name: str, error: BaseException | str) -> None:
        self.metadata.setdefault("errors", []).append(
            {"pass": pass_name, "error": str(error)}
        )


class DetectionPass(Protocol):
    name: str
    order: int
    enabled: bool

    def execute(
        self, text: str, entities: list[Entity], context: PipelineContext,
    ) -> list[Entity]: ...


def _copy_entities(entities: Iterable[Entity]) -> list[Entity]:
    return [e.model_copy(deep=True) for e in entities]


def _coerce_runtime_context(value: Any) -> Optional[RuntimeContext]:
    if value is None or isinstance(value, RuntimeContext):
        return value
    return RuntimeContext.model_validate(value)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class DetectionPipeline:
    """Ordered multi-pass PII detector."""

    def __init__(self, normalizer: Optional[TextNormalizer] = None, **options: Any) -> None:
        self.normalizer = normalizer or TextNormalizer()
        self._passes: list[DetectionPass] = []
        self._data_sources: dict[str, Any] = {}
        self._options: dict[str, Any] = dict(DEFAULT_OPTIONS)
        self.configure(**options)

    # ── passes ───────────────────────────────────────────────────────

    def register_pass(self, pass_: DetectionPass) -> None:
        self._passes.append(pass_)
        logger.debug("Registered pass %s (order %d)", pass_.name, pass_.order)

    @property
    def passes(self) -> list[DetectionPass]:
        # sorted() is stable: equal orders keep registration order
        return sorted(self._passes, key=lambda p: p.order)

    def attach_data_source(self, name: str, source: Any) -> None:
        """Track a shared registry whose ``load_error`` is reported on every run."""
        self._data_sources[name] = source

    def data_warnings(self) -> list[dict[str, str]]:
        return [
            {"source": name, "warning": source.load_error}
            for name, source in self._data_sources.items()
            if getattr(source, "load_error", None)
        ]

    def get_pass(self, name: str) -> Optional[DetectionPass]:
        for p in self._passes:
            if p.name == name:
                return p
        return None

    # ── options ──────────────────────────────────────────────────────

    @property
    def options(self) -> dict[str, Any]:
        return dict(self._options)

    def configure(self, **options: Any) -> None:
        """Merge run options into the pipeline configuration."""
        for key, value in options.items():
            if key not in DEFAULT_OPTIONS:
                logger.warning("Ignoring unknown pipeline option %r", key)
                continue
            if key == "runtime_context":
                value = _coerce_runtime_context(value)
            self._options[key] = value

    # ── processing ───────────────────────────────────────────────────

    def process(self, text: Any, context: Optional[PipelineContext] = None) -> DetectionResult:
        """Detect PII in *text*; never raises."""
        if not isinstance(text, str) or not text.strip():
            return DetectionResult(metadata={"passes": [], "errors": []})

        ctx = self._make_context(context)
        t_start = time.perf_counter()

        try:
            norm = self.normalizer.normalize(text)
        except Exception as exc:
            logger.exception("Normalisation failed; detecting on raw text")
            ctx.record_error("normalizer", exc)
            norm = NormalizationResult(
                text=text, index_map=list(range(len(text))), original_length=len(text),
            )
        work = norm.text

        if ctx.language is None:
            ctx.language = detect_language(work, default=None)

        entities: list[Entity] = []
        runs: list[PassRunInfo] = []
        for pass_ in self.passes:
            if not pass_.enabled:
                continue
            info = PassRunInfo(name=pass_.name, order=pass_.order, entities_before=len(entities))
            t0 = time.perf_counter()
            try:
                entities = pass_.execute(work, _copy_entities(entities), ctx)
            except Exception as exc:
                logger.exception("Pass %s failed; reverting its changes", pass_.name)
                ctx.record_error(pass_.name, exc)
                info.error = str(exc)
            info.duration_ms = round((time.perf_counter() - t0) * 1000, 3)
            info.entities_after = len(entities)
            runs.append(info)
            logger.debug(
                "Pass %s: %d → %d entities in %.1f ms",
                pass_.name, info.entities_before, info.entities_after, info.duration_ms,
            )

        final = self._finalize(text, norm, entities, ctx)

        ctx.metadata.setdefault("errors", [])
        ctx.metadata["warnings"] = self.data_warnings()
        ctx.metadata.setdefault("deny_list_filtered", {})
        ctx.metadata.setdefault("ml_status", "disabled")
        ctx.metadata["passes"] = [r.model_dump() for r in runs]
        ctx.metadata["language"] = ctx.language
        ctx.metadata["normalized"] = norm.changed
        ctx.metadata["duration_ms"] = round((time.perf_counter() - t_start) * 1000, 3)

        logger.info(
            "Detected %d entities in %d chars (%.1f ms)",
            len(final), len(text), ctx.metadata["duration_ms"],
        )
        return DetectionResult(entities=final, metadata=ctx.metadata)

    def process_batch(
        self,
        texts: list[str],
        max_workers: Optional[int] = None,
        language: Optional[str] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> list[DetectionResult]:
        """Process documents concurrently, one per worker; input order is kept.

        Every document gets its own :class:`PipelineContext`; *options*
        apply to all of them.
        """
        if not texts:
            return []
        workers = max(1, min(max_workers or self._options["batch_workers"], len(texts)))
        logger.info("Batch: %d documents on %d workers", len(texts), workers)

        def run(text: str) -> DetectionResult:
            return self.process(text, PipelineContext(language=language, config=dict(options or {})))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="detect") as pool:
            return list(pool.map(run, texts))

    # ── helpers ──────────────────────────────────────────────────────

    def _make_context(self, context: Optional[PipelineContext]) -> PipelineContext:
        config = dict(self._options)
        if context is None:
            return PipelineContext(
                config=config, runtime_context=config.get("runtime_context"),
            )
        bad_runtime: Optional[ValidationError] = None
        for key, value in context.config.items():
            if key == "runtime_context":
                try:
                    value = _coerce_runtime_context(value)
                except ValidationError as exc:
                    # Keep the pipeline-level hints, if any
                    bad_runtime = exc
                    continue
            config[key] = value
        ctx = PipelineContext(
            language=context.language,
            config=config,
            metadata=dict(context.metadata),
            runtime_context=context.runtime_context or config.get("runtime_context"),
        )
        if bad_runtime is not None:
            logger.warning("Ignoring malformed runtime_context (%d errors)", bad_runtime.error_count())
            ctx.record_error(
                "runtime_context",
                f"Invalid runtime_context: {bad_runtime.error_count()} validation error(s)",
            )
        return ctx

    @staticmethod
    def _finalize(
        original: str,
        norm: NormalizationResult,
        entities: list[Entity],
        ctx: PipelineContext,
    ) -> list[Entity]:
        """Map spans back to *original*, drop hidden/empty ones, sort."""
        show_components = bool(ctx.option("show_components", False))
        out: list[Entity] = []
        for ent in entities:
            if ent.hidden and not show_components:
                continue
            start, end = norm.map_span(ent.start, ent.end)
            end = min(end, len(original))
            if end <= start:
                continue
            ent.start, ent.end = start, end
            ent.text = original[start:end]
            ent.confidence = max(0.0, min(1.0, ent.confidence))
            for comp in ent.components:
                c_start, c_end = norm.map_span(comp.start, comp.end)
                comp.start, comp.end = c_start, min(c_end, len(original))
                comp.text = original[comp.start:comp.end]
            out.append(ent)
        out.sort(key=lambda e: (e.start, -(e.end - e.start)))
        return out


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_default_pipeline(
    classifier: Optional["Classifier"] = None,
    *,
    validators: Optional["ValidatorRegistry"] = None,
    deny_list: Optional["DenyList"] = None,
    postal_db: Optional["SwissPostalDatabase"] = None,
    normalizer: Optional[TextNormalizer] = None,
    **options: Any,
) -> DetectionPipeline:
    """Build a pipeline with the five standard passes.

    Registries are built once here and shared by reference with the
    passes that need them.
    """
    from core.detection.deny_list import DenyList
    from core.detection.passes import (
        AddressRelationshipPass,
        ConsolidationPass,
        ContextScoringPass,
        FormatValidationPass,
        HighRecallPass,
    )
    from core.detection.postal_db import SwissPostalDatabase
    from core.detection.validators import build_default_registry

    validators = validators or build_default_registry()
    deny_list = deny_list if deny_list is not None else DenyList.from_file()
    postal_db = postal_db if postal_db is not None else SwissPostalDatabase.from_file()

    pipeline = DetectionPipeline(normalizer=normalizer, **options)
    pipeline.register_pass(HighRecallPass(classifier=classifier, deny_list=deny_list))
    pipeline.register_pass(FormatValidationPass(validators))
    pipeline.register_pass(AddressRelationshipPass(postal_db))
    pipeline.register_pass(ContextScoringPass(deny_list=deny_list))
    pipeline.register_pass(ConsolidationPass())
    pipeline.attach_data_source("deny_list", deny_list)
    pipeline.attach_data_source("postal_db", postal_db)
    logger.info(
        "Detection pipeline ready (%d passes, ML %s)",
        len(pipeline.passes), "on" if classifier is not None else "off",
    )
    return pipeline
