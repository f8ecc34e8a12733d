"""
Smoke tests for config / settings loading.
Run: python -m pytest tests/ -v
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from case_coach.config import LLMConfig, get_settings, _is_placeholder


class TestIsPlaceholder:
    def test_empty_string_is_placeholder(self):
        assert _is_placeholder("")

    def test_angle_bracket_is_placeholder(self):
        assert _is_placeholder("<your-key-here>")

    def test_your_prefix_is_placeholder(self):
        assert _is_placeholder("your-api-key")
        assert _is_placeholder("your_api_key")

    def test_literal_PLACEHOLDER_is_placeholder(self):
        assert _is_placeholder("PLACEHOLDER")

    def test_real_key_not_placeholder(self):
        assert not _is_placeholder("sk-abc123defgh456ijkl789mnop")


class TestSettingsLoading:
    def test_defaults(self, monkeypatch):
        for key in ("LLM_MODEL", "LLM_MAX_TOKENS", "LLM_TEMPERATURE", "CASECOACH_TURN_BUDGET"):
            monkeypatch.delenv(key, raising=False)
        s = get_settings()
        assert s.llm.model == "gpt-4o-mini"
        assert s.llm.max_tokens == 500
        assert s.llm.temperature == 0.7
        assert s.app.default_turn_budget == 25
        assert s.app.credits_warning_threshold == 5

    def test_force_mock_defaults_false(self, monkeypatch):
        monkeypatch.delenv("FORCE_MOCK_MODE", raising=False)
        assert not get_settings().app.force_mock_mode

    def test_api_key_fallback_chain(self, monkeypatch):
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-real-key")
        assert get_settings().llm.api_key == "sk-or-real-key"

    def test_live_mode_false_without_credentials(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "<placeholder>")
        monkeypatch.setenv("FORCE_MOCK_MODE", "false")
        assert not get_settings().live_mode

    def test_force_mock_disables_live_mode(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "sk-real-looking-key")
        monkeypatch.setenv("FORCE_MOCK_MODE", "true")
        assert not get_settings().live_mode

    def test_live_mode_with_real_key(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "sk-real-looking-key")
        monkeypatch.setenv("FORCE_MOCK_MODE", "false")
        assert get_settings().live_mode

    def test_base_url_trailing_slash_stripped(self, monkeypatch):
        monkeypatch.setenv("LLM_BASE_URL", "https://openrouter.ai/api/v1/")
        s = get_settings()
        assert s.llm.base_url == "https://openrouter.ai/api/v1"
        assert s.llm.is_openrouter

    def test_status_summary_keys(self):
        summary = get_settings().status_summary()
        assert set(summary) == {"Text generation", "Model", "Database"}


class TestLLMConfig:
    def test_is_configured_requires_real_key(self):
        cfg = LLMConfig("your-key", "https://api.openai.com/v1", "m", 100, 0.5, 5.0)
        assert not cfg.is_configured
        assert not cfg.is_openrouter
