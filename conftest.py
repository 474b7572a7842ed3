"""Pytest configuration — ensures the project root and test helpers are importable."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent / "tests"))


@pytest.fixture(autouse=True)
def _no_llm_calls(monkeypatch: pytest.MonkeyPatch):
    """Prevent real LLM API calls during tests — keeps the suite fast and free."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    yield
