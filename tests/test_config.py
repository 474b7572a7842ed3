"""Tests for settings loading."""

from __future__ import annotations

import pytest

from foreclosure_abstract.config import PipelineSettings
from foreclosure_abstract.exceptions import ConfigurationError


class TestFromEnv:
    def test_defaults(self) -> None:
        settings = PipelineSettings.from_env({})
        assert settings.openai_api_key is None
        assert settings.max_pages_per_chunk == 15
        assert settings.concurrency == 3
        assert settings.rate_limit_backoff == 60
        assert settings.transient_backoff == 10
        assert settings.identity_wait_timeout == 1800

    def test_overrides(self) -> None:
        settings = PipelineSettings.from_env(
            {
                "OPENAI_API_KEY": "sk-test",
                "ABSTRACT_CONCURRENCY": "5",
                "ABSTRACT_MODEL": "gpt-test",
                "ABSTRACT_IDENTITY_WAIT_TIMEOUT": "2.5",
                "ABSTRACT_RECORDED_KEYWORDS": "DOT, Recorded ,",
            }
        )
        assert settings.openai_api_key == "sk-test"
        assert settings.concurrency == 5
        assert settings.model == "gpt-test"
        assert settings.identity_wait_timeout == 2.5
        assert settings.recorded_keywords == ("dot", "recorded")

    def test_blank_values_ignored(self) -> None:
        assert PipelineSettings.from_env({"ABSTRACT_CONCURRENCY": ""}).concurrency == 3

    @pytest.mark.parametrize(
        "name, value",
        [("ABSTRACT_CONCURRENCY", "zero"), ("ABSTRACT_CONCURRENCY", "0"), ("ABSTRACT_MAX_JOBS", "-1")],
    )
    def test_invalid_value(self, name: str, value: str) -> None:
        with pytest.raises(ConfigurationError) as exc:
            PipelineSettings.from_env({name: value})
        assert exc.value.code == "CONFIGURATION_INVALID"

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ABSTRACT_MAX_PAGES_PER_CHUNK", "4")
        assert PipelineSettings.from_env().max_pages_per_chunk == 4
