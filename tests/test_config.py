"""Configuration settings test suite.

Validate provider credential resolution, secret masking, and validation of
routing limits for the application configuration module.
"""
import os
from unittest import mock

import pytest
from pydantic import ValidationError

from app.config import Settings


def test_key_file_takes_precedence_over_env_var(mock_fs_open):
    """Verify key file precedence over environment variables.

    Ensure that when both a Docker secret file and an environment variable
    are present, the file wins.
    """
    mock_fs_open.return_value.read.return_value = "key_from_file\n"

    env_vars = {
        "OPENAI_API_KEY_FILE": "/run/secrets/openai_key",
        "OPENAI_API_KEY": "key_from_env_var_BAD",
    }

    with mock.patch.dict(os.environ, env_vars, clear=True):
        settings = Settings(_env_file=None)

        keys = settings.api_keys

        assert keys["openai"].get_secret_value() == "key_from_file"
        mock_fs_open.assert_called_with("/run/secrets/openai_key", "r")


def test_env_var_used_when_file_is_unset():
    """Verify fallback to the environment variable when no key file is set."""
    env_vars = {
        "GROQ_API_KEY_FILE": "",
        "GROQ_API_KEY": "groq_key_from_env_OK",
    }
    with mock.patch.dict(os.environ, env_vars, clear=True):
        settings = Settings(_env_file=None)
        assert settings.api_keys["groq"].get_secret_value() == "groq_key_from_env_OK"


def test_vendors_without_keys_are_omitted():
    """Verify unconfigured vendors are absent from the resolved key map."""
    with mock.patch.dict(os.environ, {"ANTHROPIC_API_KEY": "anthropic_key"}, clear=True):
        settings = Settings(_env_file=None)
        assert set(settings.api_keys) == {"anthropic"}


def test_missing_key_file_raises():
    """Verify a declared but missing key file is reported, not ignored."""
    with mock.patch.dict(os.environ, {}, clear=True):
        settings = Settings(DEEPSEEK_API_KEY_FILE="/nonexistent/deepseek_key", _env_file=None)
        with pytest.raises(ValueError, match="deepseek API key file"):
            _ = settings.api_keys


def test_api_keys_are_masked():
    """Verify that provider keys are masked in configuration dumps."""
    with mock.patch.dict(os.environ, {}, clear=True):
        settings = Settings(OPENAI_API_KEY="super_sensitive_data", _env_file=None)
        dumped = str(settings.model_dump())

    assert "super_sensitive_data" not in dumped
    assert settings.OPENAI_API_KEY.get_secret_value() == "super_sensitive_data"


def test_routing_defaults():
    """Verify the documented routing defaults."""
    with mock.patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)

    assert settings.ROUTER_ATTEMPT_TIMEOUT_SECONDS == 30.0
    assert settings.QUEUE_MAX_IN_FLIGHT == 4
    assert settings.PROVIDER_RATE_LIMIT_PER_MINUTE == 100
    assert settings.PROVIDER_CATALOG_FILE is None


@pytest.mark.parametrize(
    "field",
    ["ROUTER_ATTEMPT_TIMEOUT_SECONDS", "QUEUE_MAX_IN_FLIGHT", "METRICS_SINK_QUEUE_SIZE"],
)
def test_non_positive_limits_are_rejected(field):
    """Verify routing limits must be strictly positive."""
    with pytest.raises(ValidationError):
        Settings(**{field: 0}, _env_file=None)


def test_rate_limit_can_be_disabled_but_not_zero():
    """Verify None disables rate limiting while zero is rejected."""
    assert Settings(PROVIDER_RATE_LIMIT_PER_MINUTE=None, _env_file=None).PROVIDER_RATE_LIMIT_PER_MINUTE is None
    with pytest.raises(ValidationError):
        Settings(PROVIDER_RATE_LIMIT_PER_MINUTE=0, _env_file=None)
