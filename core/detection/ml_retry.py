"""Bounded exponential-backoff retry for ML inference calls.

Transient failures (timeouts, dropped connections, 503s, rate limits) are
retried; anything that looks permanent (bad input, missing model, out of
memory, 4xx) fails immediately.  Unknown errors are treated as permanent.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from core.detection import detection_config as det_cfg

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_PATTERNS = (
    "timeout", "timed out", "network", "connection", "econnrefused",
    "econnreset", "model not ready", "model loading", "temporarily",
    "temporary", "rate limit", "too many requests", "429", "502", "503",
    "504", "service unavailable", "bad gateway", "gateway timeout",
)

_FATAL_PATTERNS = (
    "invalid input", "model not found", "corrupted", "out of memory",
    "oom", "invalid configuration", "missing required", "unsupported",
    "400", "401", "403", "404", "405", "422",
)


def _compile(patterns: tuple[str, ...]) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(p) for p in patterns) + r")\b")


_RETRYABLE_RE = _compile(_RETRYABLE_PATTERNS)
_FATAL_RE = _compile(_FATAL_PATTERNS)


class MLInputError(ValueError):
    """Classifier input rejected before inference; never retried."""


class RetryExhaustedError(RuntimeError):
    """All attempts failed (or the error was not retryable)."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"ML inference failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, MLInputError):
        return False
    combined = f"{type(error).__name__}: {error}".lower()
    if _FATAL_RE.search(combined):
        return False
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    return _RETRYABLE_RE.search(combined) is not None


@dataclass
class RetryPolicy:
    max_attempts: int = det_cfg.RETRY_MAX_ATTEMPTS
    initial_delay_ms: float = det_cfg.RETRY_INITIAL_DELAY_MS
    max_delay_ms: float = det_cfg.RETRY_MAX_DELAY_MS
    multiplier: float = det_cfg.RETRY_MULTIPLIER

    def delay_ms(self, attempt: int) -> float:
        """Delay after failed *attempt* (1-based)."""
        return min(self.initial_delay_ms * self.multiplier ** (attempt - 1), self.max_delay_ms)


def call_with_retry(
    fn: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *fn* until it succeeds, fails permanently, or attempts run out.

    Raises :class:`RetryExhaustedError` wrapping the last error.
    """
    policy = policy or RetryPolicy()
    attempts = 0
    while True:
        attempts += 1
        try:
            return fn()
        except Exception as exc:
            retryable = is_retryable(exc)
            if not retryable or attempts >= policy.max_attempts:
                logger.warning(
                    "ML call failed (attempt %d/%d, %s): %s",
                    attempts, policy.max_attempts,
                    "retryable" if retryable else "fatal", exc,
                )
                raise RetryExhaustedError(attempts, exc) from exc
            delay = policy.delay_ms(attempts)
            logger.info("ML call failed (%s), retrying in %.0f ms", exc, delay)
            if delay > 0:
                sleep(delay / 1000.0)
