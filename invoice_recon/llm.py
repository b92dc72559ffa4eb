"""
Language model client used by the extractor and the date normalizer.

The pipeline only needs one capability: send a fully rendered prompt and get
raw text back. `OpenAIModelClient` implements it with the OpenAI chat
completions API. A single shared instance is created lazily and reused by
every session; it keeps no per-call state.
"""

import os
import threading
from typing import Optional, Protocol

from openai import OpenAI, OpenAIError

from .config import OPENAI_BASE_URL, OPENAI_MODEL, OPENAI_TEMPERATURE, logger
from .exceptions import ModelCallError, ModelConfigurationError


class ModelClient(Protocol):
    """Anything that can complete a prompt."""

    def complete(self, prompt: str) -> str:
        ...


class OpenAIModelClient:
    """
    Blocking prompt-in/text-out wrapper around the OpenAI SDK.

    No retries or timeouts are layered on top of the SDK here; callers
    decide their own retry policy.
    """

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_MODEL,
        temperature: float = OPENAI_TEMPERATURE,
        base_url: Optional[str] = OPENAI_BASE_URL,
    ) -> None:
        self.model = model
        self.temperature = temperature
        if base_url:
            self._client = OpenAI(api_key=api_key, base_url=base_url)
        else:
            self._client = OpenAI(api_key=api_key)

    def complete(self, prompt: str) -> str:
        """
        Send a single user message and return the reply text.

        Raises:
            ModelCallError: If the API call fails
        """
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
            )
        except OpenAIError as e:
            raise ModelCallError(f"Model request failed: {e}") from e

        content = response.choices[0].message.content or ""
        return content.strip()


_client: Optional[OpenAIModelClient] = None
_client_lock = threading.Lock()


def get_model_client() -> OpenAIModelClient:
    """
    Return the shared model client, creating it on first use.

    Raises:
        ModelConfigurationError: If OPENAI_API_KEY is not set
    """
    global _client
    if _client is not None:
        return _client

    with _client_lock:
        if _client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ModelConfigurationError("OPENAI_API_KEY must be provided")
            _client = OpenAIModelClient(api_key=api_key)
            logger.info(f"Initialized model client ({_client.model})")
    return _client
