"""
Data Models Module

This module defines the Pydantic models used throughout the application.
Every model is request-scoped: nothing here outlives a single webhook delivery.

Design Decisions:
- Use Pydantic models for all data transfer objects
- Webhook payload models ignore fields we don't read
- Clear separation between GitHub models, review models and pipeline results
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

NO_PATCH_MARKER = "(no patch available)"


# =============================================================================
# Enums
# =============================================================================

class PRAction(str, Enum):
    """Pull request actions we handle."""
    OPENED = "opened"


# =============================================================================
# GitHub Webhook Models
# =============================================================================

class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitHubUser(_Payload):
    """GitHub account reference."""
    login: str


class GitHubRepository(_Payload):
    """Repository the event belongs to."""
    name: str
    owner: GitHubUser

    @property
    def full_name(self) -> str:
        return f"{self.owner.login}/{self.name}"


class GitHubPullRequestHead(_Payload):
    """PR head (source branch) information."""
    ref: str = ""
    sha: str = ""


class GitHubPullRequest(_Payload):
    """Pull request information from webhook."""
    number: int
    head: Optional[GitHubPullRequestHead] = None
    title: Optional[str] = None


class GitHubInstallation(_Payload):
    """GitHub App installation information."""
    id: int


class PullRequestEvent(_Payload):
    """
    A pull_request webhook payload.

    Only the fields the review pipeline reads are modelled.
    """
    action: str
    repository: GitHubRepository
    pull_request: GitHubPullRequest
    installation: Optional[GitHubInstallation] = None


class WebhookDelivery(BaseModel):
    """
    One verified webhook delivery as handed to the dispatcher.

    Attributes:
        name: Event name from the X-GitHub-Event header
        delivery_id: Value of the X-GitHub-Delivery header
        payload: Decoded JSON body
    """
    name: str
    delivery_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def action(self) -> Optional[str]:
        action = self.payload.get("action")
        return action if isinstance(action, str) else None

    @property
    def keys(self) -> List[str]:
        """Routing keys, e.g. ``pull_request`` and ``pull_request.opened``."""
        if self.action:
            return [self.name, f"{self.name}.{self.action}"]
        return [self.name]

    @property
    def event_name(self) -> str:
        return self.keys[-1]

    @property
    def installation_id(self) -> Optional[int]:
        installation = self.payload.get("installation") or {}
        installation_id = installation.get("id")
        return int(installation_id) if installation_id is not None else None


# =============================================================================
# PR File Models
# =============================================================================

class ChangedFile(BaseModel):
    """
    A file changed in a pull request.

    Attributes:
        filename: Path to the file in the repository
        status: Change status (added, removed, modified, renamed, copied, ...)
        changes: Total number of changed lines
        patch: Unified diff patch (None for binary or very large files)
    """
    model_config = ConfigDict(extra="ignore")

    filename: str
    status: str
    changes: int = 0
    additions: int = 0
    deletions: int = 0
    patch: Optional[str] = None

    @property
    def file_info(self) -> str:
        return f"{self.filename} ({self.status})"

    def to_record(self) -> str:
        """Serialize the file as one flat prompt record."""
        patch = self.patch if self.patch is not None else NO_PATCH_MARKER
        return (
            f"File Info: {self.file_info}\n"
            f"Changes: {self.changes}\n"
            f"Patch:\n{patch}"
        )


# =============================================================================
# Review Models
# =============================================================================

class ReviewPrompt(BaseModel):
    """The changed files serialized into a single prompt blob."""
    files: List[ChangedFile] = []

    @property
    def records(self) -> List[str]:
        return [changed_file.to_record() for changed_file in self.files]

    @property
    def text(self) -> str:
        return "\n\n".join(self.records)


class ReviewComment(BaseModel):
    """An issue comment to be posted on the pull request."""
    owner: str
    repo: str
    issue_number: int = Field(ge=1)
    body: str = Field(min_length=1)


# =============================================================================
# Pipeline Results
# =============================================================================

@dataclass
class StepResult(Generic[T]):
    """Outcome of one fallible pipeline step."""
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "StepResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "StepResult[T]":
        return cls(error=error)


class ReviewOutcome(BaseModel):
    """Summary of what one review run did."""
    owner: str
    repo: str
    pull_number: int
    files_fetched: bool = False
    num_files: int = 0
    review_generated: bool = False
    comment_posted: bool = False
    body: str = ""

    @property
    def full_repo_name(self) -> str:
        return f"{self.owner}/{self.repo}"
