"""Compose a persona-styled reply from retrieved records."""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from utils import get_default_llm

logger = logging.getLogger(__name__)

_PROMPT_PATH = Path(__file__).parent / "prompts" / "persona.txt"
SYSTEM_PROMPT = _PROMPT_PATH.read_text(encoding="utf-8")


@dataclass
class ConversationContext:
    """What the caller knows about the user's situation."""
    concern: str = "general"
    subtopic: str = "general"


class AnswerComposer:
    """Builds the system/user prompt and makes one completion call per request."""

    def __init__(self, llm: BaseChatModel | None = None, system_prompt: str = SYSTEM_PROMPT):
        self._llm = llm or get_default_llm()
        self.system_prompt = system_prompt

    def build_messages(self, query: str, retrieved: Sequence[dict],
                       context: ConversationContext | None = None) -> list[BaseMessage]:
        context = context or ConversationContext()
        contexts_json = json.dumps(list(retrieved), ensure_ascii=False)
        user_prompt = (
            f"User concern: {context.concern} / {context.subtopic}\n"
            f"Query: {query}\n"
            f"Relevant Contexts: {contexts_json}"
        )
        return [
            SystemMessage(content=self.system_prompt),
            HumanMessage(content=user_prompt),
        ]

    def compose(self, query: str, retrieved: Sequence[dict],
                context: ConversationContext | None = None) -> str:
        """Generate the reply text. Completion errors propagate to the caller."""
        messages = self.build_messages(query, retrieved, context)
        response = self._llm.invoke(messages)
        logger.info("Composed reply from %d context record(s)", len(retrieved))
        return response.content.strip()
