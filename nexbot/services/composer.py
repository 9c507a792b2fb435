import logging
import re
from typing import Iterable, Sequence
from fastapi.concurrency import run_in_threadpool
from nexbot.services.llm import LLMService

logger = logging.getLogger(__name__)

SYSTEM_FRAMING = "You are a financial assistant."
CLOSING_INSTRUCTION = "Provide a detailed, specific response."


def clean_response(text: str) -> str:
    """Flatten an LLM reply to a single line without markdown emphasis."""
    text = text.replace("\n", " ").replace("**", "").replace("*", "")
    return re.sub(r"\s+", " ", text).strip()


def build_prompt(query: str, history: Sequence[str] = (), context_parts: Iterable[str] = ()) -> str:
    context_parts = list(context_parts)
    history_block = "Conversation History:\n" + "\n".join(history) + "\n" if history else ""
    context_block = "User Data:\n" + "\n\n".join(context_parts) + "\n" if context_parts else ""
    return (
        f"{SYSTEM_FRAMING}\n"
        f"{history_block}\n"
        f"{context_block}\n"
        f'Current Query: "{query}"\n'
        f"{CLOSING_INSTRUCTION}"
    )


class ResponseComposer:
    def __init__(self, llm: LLMService):
        self.llm = llm

    async def compose(self, query: str, history: Sequence[str] = (), context_parts: Iterable[str] = ()) -> str:
        """Ask the model for a free-form answer. Failures propagate to the caller."""
        prompt = build_prompt(query, history, context_parts)
        logger.info(f"Delegating to LLM ({len(history)} history lines, prompt {len(prompt)} chars)")
        raw = await run_in_threadpool(self.llm.complete, prompt)
        return clean_response(raw)
