"""
Services Package

This package contains the clients the review relay talks to:
- github_auth: GitHub App authentication
- github_client: GitHub REST API client
- ai_engine: OpenAI completion client
"""

from review_relay.services.ai_engine import AIReviewEngine, AIReviewError
from review_relay.services.github_auth import GitHubAppAuth, GitHubAuthError
from review_relay.services.github_client import (
    GitHubAPIError,
    GitHubClient,
    get_authenticated_app,
)

__all__ = [
    "AIReviewEngine",
    "AIReviewError",
    "GitHubAppAuth",
    "GitHubAuthError",
    "GitHubAPIError",
    "GitHubClient",
    "get_authenticated_app",
]
