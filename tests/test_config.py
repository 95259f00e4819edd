"""Unit tests for environment validation."""
import sys
sys.path.insert(0, 'backend')

import pytest
import config


@pytest.fixture
def valid_env(monkeypatch):
    """Patch config to a known-good state."""
    monkeypatch.setattr(config, "GROQ_API_KEY", "gsk_test")
    monkeypatch.setattr(config, "ELEVENLABS_API_KEY", "xi_test")
    monkeypatch.setattr(config, "SESSION_BACKEND", "memory")
    monkeypatch.setattr(config, "SESSION_TIMEOUT", 3_600_000)
    monkeypatch.setattr(config, "SWEEP_INTERVAL", 300_000)
    monkeypatch.setattr(config, "MAX_TURNS", 20)
    monkeypatch.setattr(config, "RETRY_DELAY", 1_000)
    monkeypatch.setattr(config, "REQUEST_TIMEOUT", 10_000)
    monkeypatch.setattr(config, "MAX_OUTPUT_TOKENS", 500)
    monkeypatch.setattr(config, "PORT", 8080)
    return monkeypatch


class TestValidateEnvironment:
    """Test suite for config.validate_environment."""

    def test_valid_configuration(self, valid_env):
        assert config.validate_environment() == []

    def test_missing_groq_key(self, valid_env):
        valid_env.setattr(config, "GROQ_API_KEY", None)
        assert "GROQ_API_KEY is required" in config.validate_environment()

    def test_missing_elevenlabs_key(self, valid_env):
        valid_env.setattr(config, "ELEVENLABS_API_KEY", None)
        errors = config.validate_environment()
        assert any("ELEVENLABS_API_KEY" in e for e in errors)

    @pytest.mark.parametrize("name", ["SESSION_TIMEOUT", "MAX_TURNS", "REQUEST_TIMEOUT", "SWEEP_INTERVAL"])
    def test_non_positive_values(self, valid_env, name):
        valid_env.setattr(config, name, 0)
        assert f"{name} must be a positive integer" in config.validate_environment()

    def test_zero_retry_delay_allowed(self, valid_env):
        valid_env.setattr(config, "RETRY_DELAY", 0)
        assert config.validate_environment() == []

    def test_invalid_port(self, valid_env):
        valid_env.setattr(config, "PORT", 70000)
        assert any("PORT" in e for e in config.validate_environment())

    def test_unknown_backend(self, valid_env):
        valid_env.setattr(config, "SESSION_BACKEND", "redis")
        assert any("SESSION_BACKEND" in e for e in config.validate_environment())

    def test_supabase_backend_requires_credentials(self, valid_env):
        valid_env.setattr(config, "SESSION_BACKEND", "supabase")
        valid_env.setattr(config, "SUPABASE_URL", None)
        valid_env.setattr(config, "SUPABASE_KEY", None)
        assert any("SUPABASE_URL" in e for e in config.validate_environment())

    def test_int_env_parsing(self, monkeypatch):
        monkeypatch.setenv("SOME_TIMEOUT", "2500")
        assert config._int_env("SOME_TIMEOUT", 1) == 2500

        monkeypatch.setenv("SOME_TIMEOUT", "soon")
        assert config._int_env("SOME_TIMEOUT", 1) == -1

        monkeypatch.delenv("SOME_TIMEOUT")
        assert config._int_env("SOME_TIMEOUT", 7) == 7
