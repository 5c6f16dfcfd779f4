"""Tests for deep_research.config module."""

import pytest

from deep_research.config import ResearchSettings, require_api_key
from deep_research.errors import ConfigError
from deep_research.modes import DEFAULT_MODEL


class TestResearchSettings:
    def test_defaults(self):
        settings = ResearchSettings()
        assert settings.model == DEFAULT_MODEL
        assert settings.concurrency == 2
        assert settings.max_concurrency is None

    def test_validation_collects_errors(self):
        with pytest.raises(ValueError) as exc_info:
            ResearchSettings(concurrency=0, num_learnings=0)
        assert "concurrency must be >= 1" in str(exc_info.value)
        assert "num_learnings must be >= 1" in str(exc_info.value)

    def test_ceiling_below_concurrency(self):
        with pytest.raises(ValueError, match="max_concurrency"):
            ResearchSettings(concurrency=4, max_concurrency=2)

    def test_thinking_budget_below_max_tokens(self):
        with pytest.raises(ValueError, match="thinking_budget"):
            ResearchSettings(max_tokens=2048, thinking_budget=4096)


class TestFromEnv:
    def test_empty_environment_gives_defaults(self):
        assert ResearchSettings.from_env({}) == ResearchSettings()

    def test_reads_overrides(self):
        settings = ResearchSettings.from_env({
            "DEEP_RESEARCH_MODEL": "claude-test",
            "DEEP_RESEARCH_CONCURRENCY": "4",
            "DEEP_RESEARCH_MAX_CONCURRENCY": "8",
            "DEEP_RESEARCH_THINKING_BUDGET": "",
        })
        assert settings.model == "claude-test"
        assert settings.concurrency == 4
        assert settings.max_concurrency == 8
        assert settings.thinking_budget is None

    def test_non_integer_raises_config_error(self):
        with pytest.raises(ConfigError, match="DEEP_RESEARCH_CONCURRENCY"):
            ResearchSettings.from_env({"DEEP_RESEARCH_CONCURRENCY": "lots"})

    def test_invalid_value_raises_config_error(self):
        with pytest.raises(ConfigError, match="concurrency must be >= 1"):
            ResearchSettings.from_env({"DEEP_RESEARCH_CONCURRENCY": "0"})

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("DEEP_RESEARCH_NUM_LEARNINGS", "7")
        assert ResearchSettings.from_env().num_learnings == 7


class TestRequireApiKey:
    def test_present(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        assert require_api_key() == "sk-test"

    def test_missing(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ConfigError, match="ANTHROPIC_API_KEY"):
            require_api_key()
