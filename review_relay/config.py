"""
Configuration Management Module

This module handles all application configuration using Pydantic Settings.
Configuration is loaded once from environment variables (and an optional
.env file) and is never mutated afterwards.

Design Decisions:
- Use Pydantic Settings for automatic environment variable loading
- Provide sensible defaults for optional settings
- Validate configuration at startup (fail-fast approach)
- Support both file path and direct content for private key
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_COMMENT_BODY = "Hi, this is a comment from the bot."


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values are loaded from environment variables only,
    never hardcoded or logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # GitHub App Configuration
    # =========================================================================
    github_app_id: str = Field(
        description="GitHub App ID from app settings"
    )

    github_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to GitHub App private key .pem file"
    )

    github_private_key: Optional[str] = Field(
        default=None,
        description="GitHub App private key content (alternative to path)"
    )

    github_webhook_secret: str = Field(
        description="Webhook secret for signature verification"
    )

    enterprise_hostname: Optional[str] = Field(
        default=None,
        description="GitHub Enterprise Server hostname, e.g. github.example.com"
    )

    # =========================================================================
    # OpenAI Configuration
    # =========================================================================
    openai_api_key: str = Field(
        description="OpenAI API key"
    )

    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use for code review"
    )

    openai_store: bool = Field(
        default=True,
        description="Ask OpenAI to store completions"
    )

    # =========================================================================
    # Review Comment
    # =========================================================================
    message_template_path: str = Field(
        default="message.md",
        description="Markdown file used as the comment body when no review is available"
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the server"
    )

    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port to bind the server"
    )

    webhook_path: str = Field(
        default="/api/webhook",
        description="Path the webhook endpoint is mounted on"
    )

    delivery_ttl_seconds: int = Field(
        default=600,
        ge=0,
        description="How long a delivery ID is remembered to drop redeliveries (0 disables)"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_requests: bool = Field(
        default=False,
        description="Enable request/response logging"
    )

    log_app_identity: bool = Field(
        default=True,
        description="Look up and log the authenticated app name on startup"
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("webhook_path")
    @classmethod
    def validate_webhook_path(cls, v: str) -> str:
        """Webhook paths are absolute."""
        if not v.startswith("/"):
            return f"/{v}"
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def github_api_base(self) -> str:
        """REST API root, pointing at GitHub Enterprise when configured."""
        if self.enterprise_hostname:
            return f"https://{self.enterprise_hostname}/api/v3"
        return "https://api.github.com"

    @property
    def local_webhook_url(self) -> str:
        return f"http://localhost:{self.port}{self.webhook_path}"

    def get_private_key(self) -> str:
        """
        Get the GitHub App private key content.

        Supports two modes:
        1. Direct content via GITHUB_PRIVATE_KEY env var
        2. File path via GITHUB_PRIVATE_KEY_PATH env var

        Returns:
            Private key content as string

        Raises:
            ValueError: If neither option is configured or file doesn't exist
        """
        # Direct content takes precedence
        if self.github_private_key:
            # Handle newline escaping in env vars
            return self.github_private_key.replace("\\n", "\n")

        if self.github_private_key_path:
            key_path = Path(self.github_private_key_path)
            if not key_path.exists():
                raise ValueError(f"Private key file not found: {key_path}")
            return key_path.read_text(encoding="utf-8")

        raise ValueError(
            "GitHub private key not configured. "
            "Set either GITHUB_PRIVATE_KEY or GITHUB_PRIVATE_KEY_PATH"
        )

    def load_message_template(self) -> Optional[str]:
        """
        Read the fallback comment body.

        Returns None when the template file is missing or empty; callers
        then fall back to DEFAULT_COMMENT_BODY.
        """
        template_path = Path(self.message_template_path)
        if not template_path.is_file():
            return None

        content = template_path.read_text(encoding="utf-8").strip()
        return content or None


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are read once per process and shared by every
    component that is not handed an explicit instance.

    Returns:
        Settings instance
    """
    return Settings()
