"""Test fixtures and utilities."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ledgerlearn.config import Config, LLMConfig
from ledgerlearn.documents.page_source import PageImageError, PageSource, page_image_name
from ledgerlearn.learning import LearningFeedbackLoop, PatternStore, SupplierProfileStore
from ledgerlearn.state_store import StateStore

# Environment variables read by load_config()
CONFIG_ENV_VARS = (
    "LEDGERLEARN_STATE_DB",
    "LEDGERLEARN_LLM_ENABLED",
    "OLLAMA_URL",
    "OLLAMA_AUTH_HEADER",
    "OLLAMA_MODEL",
    "OLLAMA_MODEL_FALLBACK",
    "OLLAMA_VISION_MODEL",
    "OLLAMA_TIMEOUT",
    "LEDGERLEARN_PAGE_ROOT",
    "LEDGERLEARN_PAGE_URL",
    "LEDGERLEARN_PAGE_TOKEN",
)


class FakePageSource(PageSource):
    """In-memory page source.

    uploads maps an upload ref to its page count; 0 means the upload exists
    without page images. Refs in unreadable exist but fail to read.
    """

    def __init__(
        self,
        uploads: dict[str, int],
        unreadable: set[str] | None = None,
        max_pages: int = 100,
    ):
        super().__init__(max_pages=max_pages)
        self.refs: set[str] = set()
        for file_ref, page_count in uploads.items():
            self.refs.add(file_ref)
            for n in range(1, page_count + 1):
                self.refs.add(page_image_name(file_ref, n))
        self.unreadable = unreadable or set()

    @property
    def name(self) -> str:
        return "fake"

    def exists(self, ref: str) -> bool:
        return ref in self.refs

    def read_page(self, image_ref: str) -> bytes:
        if image_ref in self.unreadable or image_ref not in self.refs:
            raise PageImageError(image_ref, "unreadable")
        return f"image:{image_ref}".encode()


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def store(temp_db) -> StateStore:
    """Fresh, migrated state store."""
    return StateStore(temp_db)


@pytest.fixture
def suppliers(store) -> SupplierProfileStore:
    return SupplierProfileStore(store)


@pytest.fixture
def patterns(store) -> PatternStore:
    return PatternStore(store)


@pytest.fixture
def feedback(suppliers, patterns) -> LearningFeedbackLoop:
    return LearningFeedbackLoop(suppliers, patterns)


@pytest.fixture
def llm_config() -> Config:
    """Config with the LLM enabled against a local Ollama."""
    return Config(
        llm=LLMConfig(
            enabled=True,
            ollama_url="http://localhost:11434",
            model_fast="qwen2.5:3b",
            model_fallback="qwen2.5:7b",
            model_vision="qwen2.5vl:7b",
            timeout_seconds=5,
            max_concurrent=2,
        )
    )


@pytest.fixture
def mock_inference() -> MagicMock:
    """Inference service double: enabled, no suggestions."""
    inference = MagicMock()
    inference.is_enabled = True
    inference.suggest_account.return_value = None
    return inference


@pytest.fixture
def clean_env(monkeypatch) -> None:
    """Remove config environment overrides for the test."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_page_source() -> type[FakePageSource]:
    """The in-memory page source class, for building per-test uploads."""
    return FakePageSource
