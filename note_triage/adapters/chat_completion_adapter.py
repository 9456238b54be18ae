import logging
from typing import Optional

import requests

from note_triage.core.errors import MissingCredentialError, ProviderTimeoutError, UpstreamError
from note_triage.interfaces.llm_provider import LLMProvider

# Initialize logger for the chat completion adapter
logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-5-nano"

SYSTEM_MESSAGE = "You are a JSON-only classifier. Output valid JSON object only."


class ChatCompletionAdapter(LLMProvider):
    """
    Adapter implementation for OpenAI-compatible chat completion endpoints.
    The base URL is configurable, so a local Ollama (`http://ollama:11434/v1`)
    works the same way as the hosted API.
    """

    provider_id = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = DEFAULT_OPENAI_MODEL,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        timeout: float = 8.0,
    ) -> None:
        self.api_key = api_key or None
        self.api_url = f"{base_url.rstrip('/')}/chat/completions"
        self.model_name = model_name
        self.timeout = timeout
        if self.api_key:
            logger.info(f"Chat completion Adapter initialized. Targeting model: {self.model_name} at {base_url}")
        else:
            logger.warning("Chat completion Adapter created without OPENAI_API_KEY; it will be skipped.")

    @property
    def is_configured(self) -> bool:
        return self.api_key is not None

    def invoke(self, prompt: str) -> str:
        if not self.is_configured:
            raise MissingCredentialError(self.provider_id, "OPENAI_API_KEY")

        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            # JSON mode. Temperature is left at the default: some small models reject any other value.
            "response_format": {"type": "json_object"},
        }

        try:
            response = requests.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderTimeoutError(self.provider_id, self.timeout) from e
        except requests.exceptions.RequestException as e:
            raise UpstreamError(self.provider_id, None, str(e)) from e

        if not response.ok:
            raise UpstreamError(self.provider_id, response.status_code, response.text[:500])

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamError(self.provider_id, response.status_code, f"malformed response envelope: {e}") from e

        return (content or "").strip()
