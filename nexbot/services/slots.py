import logging
from typing import Optional
from fastapi.concurrency import run_in_threadpool
from nexbot.config.settings import LLM_MAX_TOKENS, LLM_CLASSIFY_TEMPERATURE
from nexbot.models.market import Intent
from nexbot.services.llm import LLMService

logger = logging.getLogger(__name__)

COIN_PROMPT = (
    'Identify the cryptocurrency name or symbol from this query. '
    'Respond only with the name/symbol or "unknown". Query: "{query}"'
)
INTENT_PROMPT = (
    "Classify this query about {coin} into one of: price, market_cap, volume, change, general. "
    'Respond with only the category. Query: "{query}"'
)


def _label(text: str) -> str:
    return text.strip().strip("\"'`.").strip().lower()


class SlotExtractor:
    """Pulls the coin and the query intent out of free text with the LLM.

    Both lookups swallow upstream failures: an unreachable model means
    "no coin" and "general" intent, never an error for the user.
    """

    def __init__(self, llm: LLMService):
        self.llm = llm

    async def _ask(self, prompt: str) -> str:
        return await run_in_threadpool(
            self.llm.complete,
            prompt,
            max_tokens=LLM_MAX_TOKENS,
            temperature=LLM_CLASSIFY_TEMPERATURE,
        )

    async def extract_coin(self, text: str) -> Optional[str]:
        try:
            coin = _label(await self._ask(COIN_PROMPT.format(query=text)))
        except Exception as e:
            logger.error(f"Coin extraction error: {e}")
            return None
        if not coin or coin == "unknown":
            return None
        return coin

    async def classify_intent(self, text: str, coin: Optional[str]) -> Intent:
        try:
            label = _label(await self._ask(INTENT_PROMPT.format(coin=coin, query=text)))
        except Exception as e:
            logger.error(f"Intent detection error: {e}")
            return Intent.GENERAL
        return Intent.parse(label)
