"""Tests for answer.py: prompt assembly and single completion call."""
import json
from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from answer import SYSTEM_PROMPT, AnswerComposer, ConversationContext

CONTEXTS = [
    {"id": "P1", "type": "practice", "practice_text": "pause and breathe"},
    {"id": "BG2.63", "type": "verse", "translation": "From anger comes delusion"},
]


def _composer(reply="Shri Krishna kehte hain: ..."):
    mock_llm = MagicMock()
    mock_llm.invoke.return_value = AIMessage(content=f"  {reply}\n")
    return AnswerComposer(llm=mock_llm), mock_llm


class TestBuildMessages:
    def test_system_then_user(self):
        composer, _ = _composer()
        messages = composer.build_messages("How do I handle anger?", CONTEXTS,
                                           ConversationContext("anger", "work"))
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)
        assert messages[0].content == SYSTEM_PROMPT

    def test_user_block_contents(self):
        composer, _ = _composer()
        user = composer.build_messages("How do I handle anger?", CONTEXTS,
                                       ConversationContext("anger", "work"))[1].content
        lines = user.split("\n")
        assert lines[0] == "User concern: anger / work"
        assert lines[1] == "Query: How do I handle anger?"
        assert lines[2].startswith("Relevant Contexts: ")
        assert json.loads(lines[2][len("Relevant Contexts: "):]) == CONTEXTS

    def test_default_context_is_general(self):
        composer, _ = _composer()
        user = composer.build_messages("q", [])[1].content
        assert user.startswith("User concern: general / general")

    def test_non_ascii_kept_readable(self):
        composer, _ = _composer()
        user = composer.build_messages("q", [{"sanskrit": "कर्मण्येवाधिकारस्ते"}])[1].content
        assert "कर्मण्येवाधिकारस्ते" in user


class TestPersona:
    def test_reply_template_sections(self):
        for section in ("Shri Krishna kehte hain", "Hinglish:", "Summary:",
                        "Practical Insight:", "Try This:", "References:"):
            assert section in SYSTEM_PROMPT


class TestCompose:
    def test_returns_stripped_text(self):
        composer, mock_llm = _composer("Reply text")
        assert composer.compose("q", CONTEXTS) == "Reply text"
        mock_llm.invoke.assert_called_once()

    def test_failure_propagates(self):
        mock_llm = MagicMock()
        mock_llm.invoke.side_effect = RuntimeError("completion service down")
        composer = AnswerComposer(llm=mock_llm)
        with pytest.raises(RuntimeError, match="completion service down"):
            composer.compose("q", CONTEXTS)
        assert mock_llm.invoke.call_count == 1
