"""
Text generation backed by OpenAI's Chat Completions API.

``OpenAITextGenerator`` is the only production implementation; anything with
a matching ``generate`` method can be injected in its place (tests use simple
fakes).
"""
import logging
from typing import Any, Optional, Protocol

import openai

from .config import AppConfig
from .errors import ConfigurationError, UpstreamServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "text generation"


class TextGenerator(Protocol):
    def generate(self, system_prompt: str, user_prompt: str, *, max_tokens: int, temperature: float) -> str:
        ...


class OpenAITextGenerator:
    """
    Parameters
    ----------
    api_key:
        OpenAI API key. When empty every call raises ``ConfigurationError``
        before any network request is attempted.
    model:
        Model identifier (default ``gpt-4o-mini``).
    timeout:
        Request timeout in seconds.
    """

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini", timeout: float = 30.0) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._client: Any = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "OpenAITextGenerator":
        return cls(
            api_key=config.openai_api_key,
            model=config.openai_model,
            timeout=config.openai_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> Any:
        if not self.is_configured:
            raise ConfigurationError("Text generation is not configured: OPENAI_API_KEY is missing")
        if self._client is None:
            self._client = openai.OpenAI(api_key=self._api_key, timeout=self._timeout)
            logger.info("OpenAI client initialised (model=%s)", self._model)
        return self._client

    def generate(self, system_prompt: str, user_prompt: str, *, max_tokens: int = 120, temperature: float = 0.8) -> str:
        client = self._get_client()
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.APIStatusError as exc:
            logger.error("OpenAI request failed with status %s: %s", exc.status_code, exc.message)
            raise UpstreamServiceError(SERVICE_NAME, exc.message, exc.status_code) from exc
        except openai.OpenAIError as exc:
            logger.error("OpenAI request failed: %s", exc)
            raise UpstreamServiceError(SERVICE_NAME, "Failed to generate message") from exc

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not text:
            raise UpstreamServiceError(SERVICE_NAME, "Text generation returned an empty message")
        return text
