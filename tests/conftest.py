"""
Shared fixtures: a pipeline wired to in-memory providers, so no test talks to a real LLM.
"""

import pytest

from note_triage.core.pipeline import ClassificationService
from note_triage.core.prompts import PromptBuilder
from note_triage.core.response_cache import ResponseCache
from note_triage.core.router import ClassificationRouter
from note_triage.core.sanitizer import ResultSanitizer

CATEGORIES = ["Groceries", "To-do", "Reminders", "Movies", "Shows", "App", "Other"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "GEMINI_API_KEY",
        "OPENAI_API_KEY",
        "GEMINI_MODEL",
        "OPENAI_MODEL",
        "OPENAI_BASE_URL",
        "FALLBACK_CONFIDENCE",
        "LOW_CONFIDENCE_THRESHOLD",
        "DEBUG_LOG",
        "CONFIG_PATH",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def categories():
    return list(CATEGORIES)


@pytest.fixture
def sanitizer():
    return ResultSanitizer(fallback_category="Other", default_confidence=0.6, subcategory_threshold=0.8)


@pytest.fixture
def make_service(sanitizer):
    def _make(*providers, low_confidence_threshold=None, cache=None, batch_workers=4):
        router = ClassificationRouter(
            providers,
            fallback_category="Other",
            low_confidence_threshold=low_confidence_threshold,
        )
        return ClassificationService(
            router,
            cache or ResponseCache(max_entries=100, ttl_seconds=60),
            PromptBuilder(),
            sanitizer,
            batch_workers=batch_workers,
        )

    return _make
