"""Shared fixtures — fake token classifiers stand in for the transformers model."""

from __future__ import annotations

import re

import pytest

from core.detection.deny_list import DenyList
from core.detection.pipeline import create_default_pipeline
from core.detection.postal_db import SwissPostalDatabase
from core.detection.validators import build_default_registry


class FakeClassifier:
    """Tags every occurrence of the given names as B-PER / I-PER tokens."""

    def __init__(self, names: tuple[str, ...] = ("John Smith",), score: float = 0.95):
        self.names = names
        self.score = score
        self.calls = 0

    def infer(self, text: str) -> list[dict]:
        self.calls += 1
        out: list[dict] = []
        for name in self.names:
            for m in re.finditer(re.escape(name), text):
                offset = m.start()
                for i, word in enumerate(name.split(" ")):
                    start = text.index(word, offset)
                    out.append({
                        "entity": ("B-PER" if i == 0 else "I-PER"),
                        "word": word,
                        "score": self.score,
                        "start": start,
                        "end": start + len(word),
                    })
                    offset = start + len(word)
        return out


class FailingClassifier:
    """Raises the same error on every call."""

    def __init__(self, error: Exception | None = None):
        self.error = error or TimeoutError("inference timed out")
        self.calls = 0

    def infer(self, text: str) -> list[dict]:
        self.calls += 1
        raise self.error


@pytest.fixture(scope="session")
def postal_db() -> SwissPostalDatabase:
    return SwissPostalDatabase.from_file()


@pytest.fixture(scope="session")
def validators():
    return build_default_registry()


@pytest.fixture
def deny_list() -> DenyList:
    return DenyList.from_file()


@pytest.fixture
def pipeline(validators, deny_list, postal_db):
    """Regex-only default pipeline."""
    return create_default_pipeline(
        validators=validators, deny_list=deny_list, postal_db=postal_db,
    )


@pytest.fixture
def make_pipeline(validators, postal_db):
    """Factory for pipelines with a custom classifier / deny list / options."""

    def _make(classifier=None, deny_list=None, **options):
        return create_default_pipeline(
            classifier,
            validators=validators,
            deny_list=deny_list if deny_list is not None else DenyList.from_file(),
            postal_db=postal_db,
            **{"retry_initial_delay_ms": 0, **options},
        )

    return _make
