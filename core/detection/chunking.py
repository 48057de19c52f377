"""Token-budgeted chunking for ML inference on long documents.

Transformer NER models see at most ~512 tokens.  Longer inputs are cut
into windows on sentence boundaries, each window overlapping the previous
one by roughly ``overlap_tokens`` worth of trailing sentences so entities
at a cut are seen whole at least once.  Predictions are shifted back to
document offsets and the duplicates the overlap produces are collapsed.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Optional

from core.detection import detection_config as det_cfg
from core.detection.subword_merge import MLToken

logger = logging.getLogger(__name__)

_SENTENCE_UPPER = "A-ZÄÖÜÀÂÇÉÈÊËÎÏÔÛÙŸŒÆ"
_ABBREVIATION_RE = re.compile(
    r"(?:^|\W)(?:Mr|Mrs|Ms|Dr|Prof|Sr|Jr|vs|etc|e\.g|i\.e|Inc|Ltd|Corp|Co|St|Nr|Hr|Fr|M|Mme)\.$",
    re.IGNORECASE,
)


def estimate_tokens(text: str) -> int:
    """Rough sub-word count: max(chars / 4, whitespace words)."""
    return max(math.ceil(len(text) / det_cfg.CHARS_PER_TOKEN), len(text.split()))


@dataclass(frozen=True)
class TextChunk:
    text: str
    start: int
    end: int
    index: int


def split_sentences(text: str) -> list[tuple[int, int]]:
    """Sentence spans ``(start, end)``; each end absorbs trailing whitespace.

    A sentence ends at ``.``/``!``/``?`` followed by a newline, by the end
    of the text, or by whitespace and an upper-case letter, unless the
    word before the dot is a common abbreviation.
    """
    spans: list[tuple[int, int]] = []
    n = len(text)
    start = 0
    i = 0
    while i < n:
        ch = text[i]
        if ch in ".!?":
            nxt = text[i + 1] if i + 1 < n else ""
            after = text[i + 2] if i + 2 < n else ""
            boundary = (
                i == n - 1
                or nxt == "\n"
                or (nxt.isspace() and re.match(f"[{_SENTENCE_UPPER}]", after) is not None)
            )
            if boundary and not _ABBREVIATION_RE.search(text[start:i + 1]):
                j = i + 1
                while j < n and text[j].isspace():
                    j += 1
                spans.append((start, j))
                start = j
                i = j
                continue
        i += 1
    if start < n and text[start:].strip():
        spans.append((start, n))
    elif spans and start < n:
        spans[-1] = (spans[-1][0], n)
    return spans


class TextChunker:
    """Split text into overlapping sentence windows within a token budget."""

    def __init__(
        self,
        max_tokens: int = det_cfg.CHUNK_MAX_TOKENS,
        overlap_tokens: int = det_cfg.CHUNK_OVERLAP_TOKENS,
        tokenizer: Optional[Callable[[str], int]] = None,
    ) -> None:
        if overlap_tokens >= max_tokens:
            raise ValueError("overlap_tokens must be smaller than max_tokens")
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.count_tokens = tokenizer or estimate_tokens

    def needs_chunking(self, text: str) -> bool:
        return self.count_tokens(text) > self.max_tokens

    def chunk(self, text: str) -> list[TextChunk]:
        if not text:
            return []
        if not self.needs_chunking(text):
            return [TextChunk(text=text, start=0, end=len(text), index=0)]

        sentences = [s for span in split_sentences(text) for s in self._fit(text, span)]
        chunks: list[TextChunk] = []
        current: list[tuple[int, int]] = []
        current_tokens = 0

        for span in sentences:
            tokens = self.count_tokens(text[span[0]:span[1]])
            if current and current_tokens + tokens > self.max_tokens:
                chunks.append(self._make(text, current, len(chunks)))
                # Carry trailing sentences forward, never the whole chunk
                overlap: list[tuple[int, int]] = []
                overlap_tokens = 0
                for prev in reversed(current[1:]):
                    if overlap_tokens >= self.overlap_tokens:
                        break
                    prev_tokens = self.count_tokens(text[prev[0]:prev[1]])
                    if overlap_tokens + prev_tokens + tokens > self.max_tokens:
                        break
                    overlap.insert(0, prev)
                    overlap_tokens += prev_tokens
                current, current_tokens = overlap, overlap_tokens
            current.append(span)
            current_tokens += tokens
        if current:
            chunks.append(self._make(text, current, len(chunks)))

        logger.debug("Chunked %d chars into %d windows", len(text), len(chunks))
        return chunks

    def _fit(self, text: str, span: tuple[int, int]) -> list[tuple[int, int]]:
        """Hard-split a single sentence that alone exceeds the budget."""
        start, end = span
        if self.count_tokens(text[start:end]) <= self.max_tokens:
            return [span]
        budget = self.max_tokens * det_cfg.CHARS_PER_TOKEN
        pieces: list[tuple[int, int]] = []
        while start < end:
            cut = min(end, start + budget)
            if cut < end:
                space = text.rfind(" ", start + 1, cut)
                if space > start:
                    cut = space + 1
            pieces.append((start, cut))
            start = cut
        return pieces

    @staticmethod
    def _make(text: str, spans: list[tuple[int, int]], index: int) -> TextChunk:
        start, end = spans[0][0], spans[-1][1]
        return TextChunk(text=text[start:end], start=start, end=end, index=index)


def merge_chunk_predictions(
    per_chunk: list[tuple[TextChunk, list[MLToken]]],
) -> list[MLToken]:
    """Shift chunk-local predictions to document offsets and drop overlap duplicates.

    Two predictions with the same label are duplicates when they overlap
    by more than half of the shorter one; the higher-scoring one is kept
    with the union span.
    """
    shifted = [
        tok._replace(start=tok.start + chunk.start, end=tok.end + chunk.start)
        for chunk, tokens in per_chunk
        for tok in tokens
    ]
    shifted.sort(key=lambda t: (t.start, t.end))

    deduped: list[MLToken] = []
    for tok in shifted:
        for idx, existing in enumerate(deduped):
            if existing.entity != tok.entity:
                continue
            overlap = min(existing.end, tok.end) - max(existing.start, tok.start)
            shorter = min(existing.end - existing.start, tok.end - tok.start)
            if overlap > shorter * 0.5:
                best = tok if tok.score > existing.score else existing
                deduped[idx] = best._replace(
                    start=min(existing.start, tok.start),
                    end=max(existing.end, tok.end),
                )
                break
        else:
            deduped.append(tok)
    return deduped
