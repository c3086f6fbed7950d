"""
Tests for Configuration

Tests settings validation and the derived values components rely on.
"""

import pytest
from pydantic import ValidationError

from review_relay.config import Settings


def _settings(**overrides) -> Settings:
    values = {
        "github_app_id": "1",
        "github_webhook_secret": "secret",
        "openai_api_key": "sk-test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestDefaults:

    def test_server_defaults(self):
        """Test default port, path and model."""
        settings = _settings()

        assert settings.port == 3000
        assert settings.webhook_path == "/api/webhook"
        assert settings.local_webhook_url == "http://localhost:3000/api/webhook"
        assert settings.openai_model == "gpt-4o-mini"

    def test_github_api_base(self):
        """Test the API base for github.com and an enterprise host."""
        assert _settings().github_api_base == "https://api.github.com"
        assert (
            _settings(enterprise_hostname="ghe.example.com").github_api_base
            == "https://ghe.example.com/api/v3"
        )

    def test_webhook_path_made_absolute(self):
        """Test that a relative webhook path gets a leading slash."""
        assert _settings(webhook_path="hooks").webhook_path == "/hooks"

    def test_invalid_log_level(self):
        """Test that an unknown log level is rejected."""
        with pytest.raises(ValidationError):
            _settings(log_level="verbose")

    def test_log_level_normalized(self):
        """Test that log levels are upper-cased."""
        assert _settings(log_level="debug").log_level == "DEBUG"


class TestPrivateKey:

    def test_inline_key_unescapes_newlines(self):
        """Test that escaped newlines in an inline key are restored."""
        settings = _settings(github_private_key="-----BEGIN-----\\nabc\\n-----END-----")

        assert settings.get_private_key() == "-----BEGIN-----\nabc\n-----END-----"

    def test_key_file(self, tmp_path):
        """Test reading the private key from a file."""
        key_file = tmp_path / "key.pem"
        key_file.write_text("pem-content")

        assert _settings(github_private_key_path=str(key_file)).get_private_key() == "pem-content"

    def test_missing_key_file(self, tmp_path):
        """Test that a missing key file raises ValueError."""
        settings = _settings(github_private_key_path=str(tmp_path / "nope.pem"))

        with pytest.raises(ValueError, match="not found"):
            settings.get_private_key()

    def test_no_key_configured(self):
        """Test that an unconfigured key raises ValueError."""
        with pytest.raises(ValueError, match="not configured"):
            _settings().get_private_key()


class TestMessageTemplate:

    def test_reads_template(self, tmp_path):
        """Test that the template file content is returned stripped."""
        template = tmp_path / "message.md"
        template.write_text("Thanks for the PR!\n")

        assert _settings(message_template_path=str(template)).load_message_template() == "Thanks for the PR!"

    def test_missing_template_returns_none(self, tmp_path):
        """Test that a missing template yields None."""
        settings = _settings(message_template_path=str(tmp_path / "missing.md"))

        assert settings.load_message_template() is None

    def test_blank_template_returns_none(self, tmp_path):
        """Test that a whitespace-only template yields None."""
        template = tmp_path / "message.md"
        template.write_text("   \n")

        assert _settings(message_template_path=str(template)).load_message_template() is None
