"""
Test Configuration

Pytest configuration and fixtures for the test suite.
"""

from typing import Generator, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from review_relay.config import Settings
from review_relay.main import create_app
from review_relay.models import ChangedFile
from review_relay.services.ai_engine import AIReviewEngine
from review_relay.services.github_client import GitHubClient

WEBHOOK_SECRET = "test_secret"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings that never touch the network or a real .env file."""
    return Settings(
        _env_file=None,
        github_app_id="12345",
        github_private_key="not-a-real-key",
        github_webhook_secret=WEBHOOK_SECRET,
        openai_api_key="sk-test",
        message_template_path=str(tmp_path / "missing.md"),
        log_app_identity=False,
        log_json_format=False,
    )


@pytest.fixture
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for synchronous tests."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_pr_payload() -> dict:
    """Sample pull_request.opened webhook payload."""
    return {
        "action": "opened",
        "number": 42,
        "pull_request": {
            "id": 123456789,
            "number": 42,
            "state": "open",
            "title": "Add new feature",
            "user": {"login": "testuser", "id": 12345, "type": "User"},
            "head": {"ref": "feature-branch", "sha": "abc123def456"},
            "base": {"ref": "main", "sha": "xyz789abc012"},
            "draft": False,
        },
        "repository": {
            "id": 111,
            "name": "widgets",
            "full_name": "acme/widgets",
            "private": False,
            "owner": {"login": "acme", "id": 1, "type": "Organization"},
        },
        "sender": {"login": "testuser", "id": 12345, "type": "User"},
        "installation": {"id": 987654},
    }


@pytest.fixture
def changed_files() -> List[ChangedFile]:
    return [
        ChangedFile(
            filename="a.go",
            status="modified",
            changes=3,
            additions=2,
            deletions=1,
            patch="@@ -1,3 +1,4 @@\n package main\n-import \"fmt\"\n+import \"os\"\n+import \"fmt\"",
        )
    ]


@pytest.fixture
def github_client(changed_files) -> MagicMock:
    """GitHub client double that lists `changed_files` and accepts comments."""
    github = MagicMock(spec=GitHubClient)
    github.list_pull_request_files = AsyncMock(return_value=changed_files)
    github.create_issue_comment = AsyncMock(return_value={"id": 1})
    return github


@pytest.fixture
def ai_engine(settings: Settings) -> AIReviewEngine:
    """Real prompt building over a mocked OpenAI SDK client."""
    openai_client = MagicMock()
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = "## Summary\nLooks fine."
    response.usage = None
    openai_client.chat.completions.create = AsyncMock(return_value=response)
    return AIReviewEngine(settings, client=openai_client)
