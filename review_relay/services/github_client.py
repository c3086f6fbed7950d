"""
GitHub API Client Module

This module provides the REST calls the review relay makes against GitHub:
listing the files of a pull request, creating an issue comment on it, and
looking up the app itself.

Design Decisions:
- Use httpx for async HTTP requests
- Integrate with GitHub App auth for installation tokens
- Follow pagination for pull requests with many files
- Surface GitHub's error status and message on a single exception type
"""

from typing import Any, Dict, List, Optional

import httpx

from review_relay.config import Settings, get_settings
from review_relay.logging_config import get_logger
from review_relay.models import ChangedFile, ReviewComment
from review_relay.services.github_auth import (
    GITHUB_API_VERSION,
    GitHubAppAuth,
    GitHubAuthError,
)

logger = get_logger(__name__)

FILES_PER_PAGE = 100


class GitHubAPIError(Exception):
    """
    Structured error response from the GitHub API.

    Attributes:
        status_code: HTTP status returned by GitHub
        message: The ``message`` field of GitHub's error body, if any
        response_body: Raw response text
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body

    @classmethod
    def from_response(cls, response: httpx.Response) -> "GitHubAPIError":
        try:
            data = response.json()
            message = data.get("message") if isinstance(data, dict) else None
        except ValueError:
            message = None
        return cls(
            message or response.reason_phrase or "GitHub API error",
            status_code=response.status_code,
            response_body=response.text
        )


class GitHubClient:
    """
    Async GitHub API client authenticated as one app installation.

    Usage:
        client = GitHubClient(installation_id=123, auth=auth)
        files = await client.list_pull_request_files("acme", "widgets", 42)
    """

    def __init__(
        self,
        installation_id: int,
        auth: GitHubAppAuth,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.installation_id = installation_id
        self.auth = auth
        self.settings = settings or get_settings()
        self.api_base = self.settings.github_api_base
        self._transport = transport

    async def _get_headers(self) -> Dict[str, str]:
        """Get authenticated headers for API requests."""
        token = await self.auth.get_installation_token(self.installation_id)
        return {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make an authenticated request to the GitHub API.

        Raises:
            GitHubAuthError: If the installation token was rejected
            GitHubAPIError: For any other 4xx/5xx response
            httpx.HTTPError: On transport failures
        """
        headers = await self._get_headers()
        url = f"{self.api_base}{endpoint}"

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.request(method, url, headers=headers, **kwargs)

        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining is not None and remaining.isdigit() and int(remaining) < 100:
            logger.warning(
                "GitHub API rate limit running low",
                remaining=int(remaining),
                reset_at=response.headers.get("x-ratelimit-reset")
            )

        if response.status_code == 401:
            self.auth.invalidate_token(self.installation_id)
            raise GitHubAuthError("Authentication failed, token invalidated")

        if response.status_code >= 400:
            error = GitHubAPIError.from_response(response)
            logger.error(
                "GitHub API error",
                status_code=error.status_code,
                endpoint=endpoint,
                error=error.message
            )
            raise error

        return response

    async def list_pull_request_files(
        self,
        owner: str,
        repo: str,
        pull_number: int
    ) -> List[ChangedFile]:
        """
        Fetch all files changed in a pull request, in API order.

        Args:
            owner: Repository owner
            repo: Repository name
            pull_number: Pull request number

        Returns:
            List of ChangedFile objects
        """
        files: List[ChangedFile] = []
        page = 1
        endpoint = f"/repos/{owner}/{repo}/pulls/{pull_number}/files"

        while True:
            response = await self._request(
                "GET",
                endpoint,
                params={"page": page, "per_page": FILES_PER_PAGE}
            )
            files_data = response.json()

            files.extend(ChangedFile.model_validate(file_data) for file_data in files_data)

            if len(files_data) < FILES_PER_PAGE:
                break
            page += 1

        logger.info(
            "Fetched PR files",
            owner=owner,
            repo=repo,
            pr_number=pull_number,
            num_files=len(files)
        )

        return files

    async def create_issue_comment(self, comment: ReviewComment) -> Dict[str, Any]:
        """
        Post a comment on the pull request's conversation tab.

        Returns:
            The created comment as returned by GitHub
        """
        endpoint = f"/repos/{comment.owner}/{comment.repo}/issues/{comment.issue_number}/comments"
        response = await self._request("POST", endpoint, json={"body": comment.body})
        data = response.json()

        logger.info(
            "Posted PR comment",
            owner=comment.owner,
            repo=comment.repo,
            pr_number=comment.issue_number,
            comment_id=data.get("id")
        )

        return data


async def get_authenticated_app(
    auth: GitHubAppAuth,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Dict[str, Any]:
    """
    Look up the app the configured credentials belong to (``GET /app``).

    Raises:
        GitHubAuthError: If a JWT cannot be generated
        GitHubAPIError: If GitHub rejects the request
    """
    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        response = await client.get(f"{auth.api_base}/app", headers=auth.app_headers())

    if response.status_code >= 400:
        raise GitHubAPIError.from_response(response)

    return response.json()
