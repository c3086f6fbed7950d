"""
Tests for the AI Review Engine

Tests prompt construction and how completion responses are unpacked.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from review_relay.models import ChangedFile
from review_relay.services.ai_engine import AIReviewEngine, AIReviewError


def _response(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage = None
    return response


class TestPrompt:

    def test_messages_are_single_user_turn(self, ai_engine, changed_files):
        """Test that the prompt is sent as one user message."""
        messages = ai_engine.build_messages(ai_engine.build_prompt(changed_files))

        assert len(messages) == 1
        assert messages[0]["role"] == "user"

    def test_prompt_asks_for_summary_and_concerns(self, ai_engine, changed_files):
        """Test that the prompt asks for a summary and lists each file."""
        content = ai_engine.build_messages(ai_engine.build_prompt(changed_files))[0]["content"]

        assert "Summary" in content
        assert "Changes of Concern" in content
        assert "File Info: a.go (modified)" in content
        assert "Changes: 3" in content
        assert '+import "os"' in content


class TestReviewChanges:

    async def test_returns_first_choice_content(self, ai_engine, changed_files):
        """Test that the first choice's content is returned."""
        body = await ai_engine.review_changes(changed_files)

        assert body == "## Summary\nLooks fine."

    async def test_sends_configured_model_and_store_flag(self, settings, ai_engine, changed_files):
        """Test that the configured model and store flag are sent."""
        await ai_engine.review_changes(changed_files)

        kwargs = ai_engine.client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == settings.openai_model == "gpt-4o-mini"
        assert kwargs["store"] is True

    async def test_empty_content_raises(self, settings, changed_files):
        """Test that a blank completion raises AIReviewError."""
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=_response("   "))
        engine = AIReviewEngine(settings, client=client)

        with pytest.raises(AIReviewError):
            await engine.review_changes(changed_files)

    async def test_no_choices_raises(self, settings, changed_files):
        """Test that a completion without choices raises AIReviewError."""
        response = _response("unused")
        response.choices = []
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)
        engine = AIReviewEngine(settings, client=client)

        with pytest.raises(AIReviewError):
            await engine.review_changes(changed_files)

    async def test_sdk_error_is_wrapped(self, settings, changed_files):
        """Test that OpenAI SDK errors are wrapped in AIReviewError."""
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=OpenAIError("quota exceeded"))
        engine = AIReviewEngine(settings, client=client)

        with pytest.raises(AIReviewError, match="quota exceeded"):
            await engine.review_changes(changed_files)

    async def test_binary_file_uses_marker(self, ai_engine):
        """Test that a file without a patch gets the no-patch marker."""
        await ai_engine.review_changes(
            [ChangedFile(filename="logo.png", status="added", changes=0)]
        )

        content = ai_engine.client.chat.completions.create.await_args.kwargs["messages"][0]["content"]
        assert "logo.png (added)" in content
        assert "(no patch available)" in content
