from abc import ABC, abstractmethod
from typing import Any

from note_triage.core.errors import UnparseableResponseError
from note_triage.core.utils import extract_json


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    This enforces a Strategy Pattern: the router only knows this interface,
    so backends are chosen by configuration and never by the content of the
    text being classified.
    """

    #: Identifier reported back to callers as `provider`
    provider_id: str = "model"

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when the provider's access credential is present."""

    @abstractmethod
    def invoke(self, prompt: str) -> str:
        """
        Sends the prompt to the backend and returns its unprocessed text answer.

        Args:
            prompt (str): The fully rendered instruction text.

        Returns:
            str: The single textual payload extracted from the backend's envelope.

        Raises:
            MissingCredentialError: The credential is not configured (checked
                before any network call).
            ProviderTimeoutError: The backend did not answer in time.
            UpstreamError: The backend answered with a non-success status.
        """

    def parse_response(self, raw_text: str) -> Any:
        """
        Tolerant JSON parse of a raw answer.

        Raises:
            UnparseableResponseError: Tagged with this provider's id.
        """
        try:
            return extract_json(raw_text)
        except UnparseableResponseError as e:
            raise UnparseableResponseError(e.raw_text, provider=self.provider_id) from e
