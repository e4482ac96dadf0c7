import logging
import os
from typing import Dict, List, Optional

from openai import OpenAI

from docqa.config import DEFAULT_LLM_MAX_TOKENS, DEFAULT_LLM_MODEL, DEFAULT_LLM_TEMPERATURE
from docqa.errors import LLMError

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Client for the OpenAI chat completions API.

    One instance is bound to one (model, temperature, max_tokens) triple;
    the QA engine creates a new client when a request overrides them.
    """

    def __init__(
        self,
        model: str = DEFAULT_LLM_MODEL,
        temperature: float = DEFAULT_LLM_TEMPERATURE,
        max_tokens: int = DEFAULT_LLM_MAX_TOKENS,
        api_key: Optional[str] = None,
    ):
        """
        Args:
            model: OpenAI model to use
            temperature: Sampling temperature (0-2)
            max_tokens: Upper bound on generated tokens
            api_key: Overrides OPENAI_API_KEY when given
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:

        if self._client is None:

            api_key = self._api_key or os.getenv("OPENAI_API_KEY")

            if not api_key:
                raise LLMError(
                    "OPENAI_API_KEY environment variable not set. "
                    "Please set it before running the application."
                )

            self._client = OpenAI(api_key=api_key)

        return self._client

    def chat(self, messages: List[Dict[str, str]]) -> str:
        """
        Run one chat completion.

        Args:
            messages: OpenAI-style [{"role": ..., "content": ...}] list

        Returns:
            Generated text ("" when the model returns no content)

        Raises:
            LLMError: If the API call fails
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )

            return response.choices[0].message.content or ""

        except LLMError:
            raise

        except Exception as e:
            logger.error(
                "LLM request failed",
                extra={"model": self.model, "error": str(e)},
            )
            raise LLMError(f"OpenAI API call failed: {e}")

    def generate(self, prompt: str) -> str:
        """Send a single user prompt."""
        return self.chat([{"role": "user", "content": prompt}])
