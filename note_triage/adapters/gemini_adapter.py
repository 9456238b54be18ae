import logging
from typing import Optional

import httpx
from google import genai
from google.genai import errors, types

from note_triage.core.errors import MissingCredentialError, ProviderTimeoutError, UpstreamError
from note_triage.interfaces.llm_provider import LLMProvider

# Initialize logger for this module
logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-lite"


class GeminiAdapter(LLMProvider):
    """
    Adapter implementation for Google Gemini ("generate content" style) using
    the 'google-genai' SDK.

    No retries happen here: a failed or timed-out call is reported to the
    router, which decides whether another provider gets a turn.
    """

    provider_id = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = DEFAULT_GEMINI_MODEL,
        timeout: float = 8.0,
    ) -> None:
        self.api_key = api_key or None
        self.model_name = model_name
        self.timeout = timeout
        self.client = None

        if self.api_key:
            # The SDK expects the HTTP timeout in milliseconds
            self.client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            )
            logger.info(f"Gemini Adapter initialized. Targeting model: {self.model_name}")
        else:
            logger.warning("Gemini Adapter created without GEMINI_API_KEY; it will be skipped.")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def invoke(self, prompt: str) -> str:
        if not self.is_configured:
            raise MissingCredentialError(self.provider_id, "GEMINI_API_KEY")

        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=0.0,  # Zero temperature for deterministic classification
                    response_mime_type="application/json",
                ),
            )
        except errors.APIError as e:
            raise UpstreamError(self.provider_id, e.code, e.message or str(e)) from e
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.provider_id, self.timeout) from e
        except httpx.HTTPError as e:
            raise UpstreamError(self.provider_id, None, str(e)) from e

        text = (response.text or "").strip()
        logger.debug(f"Gemini answered with {len(text)} characters.")
        return text
