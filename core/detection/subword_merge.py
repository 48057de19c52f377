"""Merge B-/I- sub-word predictions into whole-entity spans.

Token classifiers run without aggregation emit one prediction per
word piece: ``B-PER "Jean"``, ``I-PER "##ne"``, ``I-PER "Du"`` …  This
module stitches consecutive pieces of the same entity type back together.
Two pieces join when their types match and the gap between them is at
most ``max_gap`` characters.  The merged score is the mean of the piece
scores and the text is re-sliced from the document.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, NamedTuple

from core.detection import detection_config as det_cfg

logger = logging.getLogger(__name__)


class MLToken(NamedTuple):
    entity: str       # raw label, e.g. "B-PER"
    word: str
    score: float
    start: int
    end: int

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "MLToken":
        """Build from a Hugging Face style prediction dict."""
        label = raw.get("entity") or raw.get("entity_group") or ""
        return cls(
            entity=str(label),
            word=str(raw.get("word", "")),
            score=float(raw.get("score", 0.0)),
            start=int(raw.get("start", 0)),
            end=int(raw.get("end", 0)),
        )


class MergedEntity(NamedTuple):
    label: str        # prefix-less label, e.g. "PER"
    text: str
    score: float
    start: int
    end: int
    pieces: int


def strip_bio(label: str) -> str:
    """``"B-PER"`` → ``"PER"``; labels without a prefix pass through."""
    if len(label) > 2 and label[1] == "-" and label[0] in "BIEStbies":
        return label[2:]
    return label


def merge_subwords(
    tokens: list[MLToken],
    text: str,
    max_gap: int = det_cfg.SUBWORD_MAX_GAP,
    min_length: int = det_cfg.SUBWORD_MIN_LENGTH,
) -> list[MergedEntity]:
    ordered = sorted(
        (t for t in tokens if t.entity and t.entity.upper() != "O"),
        key=lambda t: (t.start, t.end),
    )
    if not ordered:
        return []
    merged: list[MergedEntity] = []

    label = strip_bio(ordered[0].entity)
    start, end = ordered[0].start, ordered[0].end
    scores = [ordered[0].score]

    def flush() -> None:
        span = text[start:end] if 0 <= start < end <= len(text) else ""
        if len(span.strip()) >= min_length:
            merged.append(MergedEntity(
                label=label,
                text=span,
                score=sum(scores) / len(scores),
                start=start,
                end=end,
                pieces=len(scores),
            ))

    for tok in ordered[1:]:
        tok_label = strip_bio(tok.entity)
        continues = tok.entity.upper().startswith("I-") or tok.word.startswith("##")
        if continues and tok_label == label and tok.start - end <= max_gap:
            end = max(end, tok.end)
            scores.append(tok.score)
            continue
        flush()
        label, start, end, scores = tok_label, tok.start, tok.end, [tok.score]
    flush()

    logger.debug("Sub-word merge: %d tokens → %d entities", len(tokens), len(merged))
    return merged
