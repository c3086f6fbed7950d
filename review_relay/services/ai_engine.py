"""
AI Review Engine Module

This module turns the changed files of a pull request into a single
chat-completion request and returns the model's answer as markdown,
ready to be posted as a PR comment.

Design Decisions:
- One user-role message carrying every changed file as a flat record
- The completion is awaited and its text returned to the caller
- Any SDK failure or empty answer surfaces as AIReviewError
"""

from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError

from review_relay.config import Settings, get_settings
from review_relay.logging_config import get_logger
from review_relay.models import ChangedFile, ReviewPrompt

logger = get_logger(__name__)


class AIReviewError(Exception):
    """Raised when no review text could be obtained from the model."""
    pass


class AIReviewEngine:
    """
    LLM-backed pull request reviewer.

    Usage:
        engine = AIReviewEngine(settings)
        body = await engine.review_changes(files)
    """

    REVIEW_INSTRUCTIONS = """You are a senior software developer. Analyze the changes made to the repository in this pull request and answer in two sections.

## Summary
A concise, direct statement of what the changes achieve for the project. Explain the integrations and logic that the changes introduce.

## Changes of Concern
For every concern, start with the file name. Below it, quote the line of code that is concerning. On the next line, explain why this logic might be flawed. Be quantitative and specific. If nothing is concerning, say so.

Here are all the changes made in the pull request:

"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[AsyncOpenAI] = None
    ):
        self.settings = settings or get_settings()
        self.client = client or AsyncOpenAI(api_key=self.settings.openai_api_key)

    def build_prompt(self, files: List[ChangedFile]) -> ReviewPrompt:
        return ReviewPrompt(files=files)

    def build_messages(self, prompt: ReviewPrompt) -> List[dict]:
        """Single-turn conversation carrying the serialized file records."""
        return [
            {"role": "user", "content": self.REVIEW_INSTRUCTIONS + prompt.text}
        ]

    async def review_changes(self, files: List[ChangedFile]) -> str:
        """
        Ask the model for a review of the given files.

        Args:
            files: Changed files of the pull request, in API order

        Returns:
            Markdown review text from the first choice

        Raises:
            AIReviewError: If the request fails or the answer is empty
        """
        prompt = self.build_prompt(files)
        messages = self.build_messages(prompt)

        logger.info(
            "Sending code review request to AI",
            model=self.settings.openai_model,
            num_files=len(files),
            prompt_length=len(messages[0]["content"])
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.settings.openai_model,
                store=self.settings.openai_store,
                messages=messages,
            )
        except OpenAIError as e:
            logger.error(
                "AI review failed",
                error=str(e),
                error_type=type(e).__name__
            )
            raise AIReviewError(f"AI review failed: {e}") from e

        if not response.choices:
            raise AIReviewError("AI response contained no choices")

        content = response.choices[0].message.content
        if not content or not content.strip():
            raise AIReviewError("Empty response from AI")

        logger.info(
            "AI review completed",
            response_length=len(content),
            usage=response.usage.model_dump() if response.usage else None
        )

        return content.strip()
