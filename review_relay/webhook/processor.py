"""
PR Review Processor Module

This module runs the review pipeline for one opened pull request:

1. List the files changed in the pull request
2. Ask the LLM for a review of those files
3. Post exactly one comment with the review (or the fallback body)

Design Decisions:
- Each step returns an explicit StepResult instead of raising
- A failed file listing skips the LLM call but still posts the fallback
- The completion is awaited and its text becomes the comment body
- Nothing is retried; failures are logged where they are caught
"""

from typing import List, Optional

from review_relay.config import DEFAULT_COMMENT_BODY
from review_relay.logging_config import get_logger
from review_relay.models import ChangedFile, ReviewComment, ReviewOutcome, StepResult
from review_relay.services.ai_engine import AIReviewEngine, AIReviewError
from review_relay.services.github_client import GitHubAPIError, GitHubClient

logger = get_logger(__name__)


class PRReviewProcessor:
    """
    Orchestrates the review of a single pull request.

    Usage:
        processor = PRReviewProcessor(github_client, ai_engine, fallback_body)
        outcome = await processor.process("acme", "widgets", 42)
    """

    def __init__(
        self,
        github_client: GitHubClient,
        ai_engine: AIReviewEngine,
        fallback_body: Optional[str] = None
    ):
        self.github_client = github_client
        self.ai_engine = ai_engine
        self.fallback_body = fallback_body or DEFAULT_COMMENT_BODY

    async def process(self, owner: str, repo: str, pull_number: int) -> ReviewOutcome:
        """
        Execute the review pipeline.

        Never raises for GitHub or LLM failures; the returned outcome
        records which steps succeeded.
        """
        outcome = ReviewOutcome(owner=owner, repo=repo, pull_number=pull_number)

        files_result = await self._fetch_files(owner, repo, pull_number)
        outcome.files_fetched = files_result.ok

        body = self.fallback_body
        if files_result.ok and files_result.value:
            outcome.num_files = len(files_result.value)
            review_result = await self._generate_review(files_result.value)
            if review_result.ok:
                outcome.review_generated = True
                body = review_result.value
        elif files_result.ok:
            logger.info(
                "PR has no changed files, posting fallback comment",
                repo=outcome.full_repo_name,
                pr_number=pull_number
            )

        outcome.body = body
        comment = ReviewComment(owner=owner, repo=repo, issue_number=pull_number, body=body)
        post_result = await self._post_comment(comment)
        outcome.comment_posted = post_result.ok

        logger.info(
            "PR review finished",
            repo=outcome.full_repo_name,
            pr_number=pull_number,
            files_fetched=outcome.files_fetched,
            review_generated=outcome.review_generated,
            comment_posted=outcome.comment_posted
        )

        return outcome

    async def _fetch_files(
        self, owner: str, repo: str, pull_number: int
    ) -> StepResult[List[ChangedFile]]:
        try:
            files = await self.github_client.list_pull_request_files(owner, repo, pull_number)
        except Exception as e:
            logger.error(
                "Error fetching file changes",
                owner=owner,
                repo=repo,
                pr_number=pull_number,
                error=str(e),
                error_type=type(e).__name__
            )
            return StepResult.failure(e)

        for changed_file in files:
            logger.debug(
                "Changed file",
                filename=changed_file.filename,
                status=changed_file.status,
                changes=changed_file.changes,
                has_patch=changed_file.patch is not None
            )

        return StepResult.success(files)

    async def _generate_review(self, files: List[ChangedFile]) -> StepResult[str]:
        try:
            body = await self.ai_engine.review_changes(files)
        except AIReviewError as e:
            logger.error("Error generating review", error=str(e))
            return StepResult.failure(e)
        except Exception as e:
            logger.error(
                "Unexpected error generating review",
                error=repr(e),
                error_type=type(e).__name__
            )
            return StepResult.failure(e)

        return StepResult.success(body)

    async def _post_comment(self, comment: ReviewComment) -> StepResult[dict]:
        try:
            data = await self.github_client.create_issue_comment(comment)
        except GitHubAPIError as e:
            logger.error(
                "Error posting comment",
                status_code=e.status_code,
                message=e.message,
                repo=f"{comment.owner}/{comment.repo}",
                pr_number=comment.issue_number
            )
            return StepResult.failure(e)
        except Exception as e:
            logger.error(
                "Error posting comment",
                error=repr(e),
                repo=f"{comment.owner}/{comment.repo}",
                pr_number=comment.issue_number
            )
            return StepResult.failure(e)

        return StepResult.success(data)


async def review_pull_request(
    owner: str,
    repo: str,
    pull_number: int,
    github_client: GitHubClient,
    ai_engine: AIReviewEngine,
    fallback_body: Optional[str] = None
) -> ReviewOutcome:
    """
    Convenience function to review one pull request.

    This is what the ``pull_request.opened`` handler calls.
    """
    processor = PRReviewProcessor(github_client, ai_engine, fallback_body)
    return await processor.process(owner, repo, pull_number)
