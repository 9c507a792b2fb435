import logging
from typing import Optional
from together import Together
from nexbot.config.settings import (
    TOGETHER_API_KEY,
    LLM_MODEL,
    LLM_REPLY_MAX_TOKENS,
    LLM_TEMPERATURE,
    LLM_TOP_P
)

logger = logging.getLogger(__name__)


class LLMService:
    """Thin wrapper over the Together chat completions API."""

    def __init__(self, client: Optional[Together] = None, model: str = LLM_MODEL):
        self._client = client
        self.model = model

    @property
    def client(self) -> Together:
        # created on first use so the app can boot without an API key
        if self._client is None:
            self._client = Together(api_key=TOGETHER_API_KEY)
        return self._client

    def complete(
        self,
        prompt: str,
        max_tokens: int = LLM_REPLY_MAX_TOKENS,
        temperature: float = LLM_TEMPERATURE,
    ) -> str:
        """Send a single-turn prompt and return the raw reply text.

        Errors from the API are not caught here; callers decide whether a
        failure is fatal.
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=LLM_TOP_P
        )
        text = response.choices[0].message.content or ""
        logger.debug(f"LLM Response: {text}")
        return text
