"""
GitHub App Authentication Service

This module handles GitHub App authentication including:
- JWT generation for App authentication
- Installation access token generation
- Reuse of cached tokens until shortly before they expire

Design Decisions:
- Use RS256 algorithm for JWT signing (GitHub requirement)
- Cache tokens per installation to minimize API calls
- Point at GitHub Enterprise when an enterprise hostname is configured
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import httpx
import jwt

from review_relay.config import Settings, get_settings
from review_relay.logging_config import get_logger

logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"


@dataclass
class CachedToken:
    """Cached installation access token with expiration."""
    token: str
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        """Check if token is expired or will expire within 5 minutes."""
        buffer = timedelta(minutes=5)
        return datetime.now(timezone.utc) >= (self.expires_at - buffer)


class GitHubAuthError(Exception):
    """Raised when the app cannot authenticate against GitHub."""
    pass


class GitHubAppAuth:
    """
    GitHub App Authentication Manager.

    Handles JWT generation and installation access token management
    for GitHub App authentication.

    Usage:
        auth = GitHubAppAuth(settings)
        token = await auth.get_installation_token(installation_id)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self.api_base = self.settings.github_api_base
        self._private_key: Optional[str] = None
        # Cache tokens by installation_id
        self._token_cache: Dict[int, CachedToken] = {}

    @property
    def private_key(self) -> str:
        """Lazy load and cache the private key."""
        if self._private_key is None:
            self._private_key = self.settings.get_private_key()
            logger.debug("Loaded GitHub App private key")
        return self._private_key

    def generate_jwt(self) -> str:
        """
        Generate a JWT for GitHub App authentication.

        The JWT authenticates as the app itself, not as an installation,
        and is valid for at most 10 minutes.

        Raises:
            GitHubAuthError: If the key is missing or cannot sign
        """
        try:
            now = int(time.time())

            payload = {
                # Issued 60 seconds in the past for clock drift
                "iat": now - 60,
                "exp": now + (9 * 60),
                "iss": self.settings.github_app_id,
            }

            return jwt.encode(payload, self.private_key, algorithm="RS256")

        except (ValueError, jwt.PyJWTError) as e:
            logger.error("Failed to generate JWT", error=str(e))
            raise GitHubAuthError(f"Failed to generate JWT: {e}") from e

    def app_headers(self) -> Dict[str, str]:
        """Headers for requests made as the app itself."""
        return {
            "Authorization": f"Bearer {self.generate_jwt()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _fetch_installation_token(self, installation_id: int) -> CachedToken:
        """
        Fetch a new installation access token from GitHub.

        Raises:
            GitHubAuthError: If the token request fails
        """
        url = f"{self.api_base}/app/installations/{installation_id}/access_tokens"

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            try:
                response = await client.post(url, headers=self.app_headers())
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                error_body = e.response.text
                logger.error(
                    "Failed to get installation token",
                    installation_id=installation_id,
                    status_code=e.response.status_code,
                    error=error_body[:500]
                )
                raise GitHubAuthError(
                    f"Failed to get installation token: {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                raise GitHubAuthError(f"Failed to get installation token: {e}") from e

        data = response.json()
        expires_at = datetime.fromisoformat(data["expires_at"].replace("Z", "+00:00"))

        logger.info(
            "Obtained installation access token",
            installation_id=installation_id,
            expires_at=expires_at.isoformat()
        )

        return CachedToken(token=data["token"], expires_at=expires_at)

    async def get_installation_token(self, installation_id: int) -> str:
        """
        Get an installation access token, using cache when possible.

        Args:
            installation_id: GitHub App installation ID

        Returns:
            Valid installation access token

        Raises:
            GitHubAuthError: If authentication fails
        """
        cached = self._token_cache.get(installation_id)

        if cached and not cached.is_expired:
            return cached.token

        logger.debug(
            "Fetching new installation token",
            installation_id=installation_id,
            reason="expired" if cached else "not_cached"
        )

        new_token = await self._fetch_installation_token(installation_id)
        self._token_cache[installation_id] = new_token

        return new_token.token

    def invalidate_token(self, installation_id: int) -> None:
        """Drop a cached token after GitHub rejected it."""
        if self._token_cache.pop(installation_id, None) is not None:
            logger.info("Invalidated cached token", installation_id=installation_id)
