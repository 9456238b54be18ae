import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from note_triage.core.errors import NoProviderAvailableError, ProviderError, UnparseableResponseError
from note_triage.core.models import RoutedResponse
from note_triage.core.utils import unparseable_fallback
from note_triage.interfaces.llm_provider import LLMProvider

logger = logging.getLogger("Router")


class ClassificationRouter:
    """
    Sends a prompt to the configured providers in a fixed preference order.

    The first provider that answers with parseable JSON wins. Provider
    failures are logged and recovered here; only the exhaustion of every
    provider surfaces to the caller as NoProviderAvailableError.
    """

    def __init__(
        self,
        providers: Sequence[LLMProvider],
        fallback_category: str = "Other",
        low_confidence_threshold: Optional[float] = None,
    ) -> None:
        self.providers: List[LLMProvider] = list(providers)
        self.fallback_category = fallback_category
        self.low_confidence_threshold = low_confidence_threshold

    @property
    def configured(self) -> List[LLMProvider]:
        return [p for p in self.providers if p.is_configured]

    def status(self) -> Dict[str, str]:
        configured = self.configured
        return {
            "primary": configured[0].provider_id if configured else "none",
            "fallback": configured[1].provider_id if len(configured) > 1 else "none",
        }

    def _call(self, provider: LLMProvider, prompt: str) -> RoutedResponse:
        raw_text = provider.invoke(prompt)
        payload = provider.parse_response(raw_text)
        return RoutedResponse(provider=provider.provider_id, raw_text=raw_text, payload=payload)

    def classify(
        self,
        prompt: str,
        lenient: bool = False,
        confidence_of: Optional[Callable[[Any], float]] = None,
    ) -> RoutedResponse:
        """
        Routes one prompt through the providers.

        Args:
            prompt (str): Rendered instruction text.
            lenient (bool): When every provider fails and at least one of them
                answered with unparseable text, return a low-confidence
                fallback payload instead of raising.
            confidence_of (Optional[Callable[[Any], float]]): Scores a payload.
                Enables the low-confidence second opinion when a threshold is set.

        Raises:
            NoProviderAvailableError: No provider is configured, or all failed.
        """
        candidates = self.configured
        failures: Dict[str, str] = {}
        unparseable: Optional[UnparseableResponseError] = None

        for position, provider in enumerate(candidates):
            try:
                routed = self._call(provider, prompt)
            except ProviderError as e:
                failures[provider.provider_id] = str(e)
                if isinstance(e, UnparseableResponseError) and unparseable is None:
                    unparseable = e
                logger.warning(
                    f"Provider '{provider.provider_id}' failed: {e}",
                    extra={"provider": provider.provider_id, "error_type": type(e).__name__},
                )
                continue

            return self._second_opinion(routed, candidates[position + 1 :], prompt, confidence_of)

        if lenient and unparseable is not None:
            logger.warning(f"No provider returned parseable JSON; using fallback for '{unparseable.provider}'.")
            return RoutedResponse(
                provider=unparseable.provider,
                raw_text=unparseable.raw_text,
                payload=unparseable_fallback(self.fallback_category),
                degraded=True,
            )

        error = NoProviderAvailableError(failures)
        logger.error(str(error))
        raise error

    def _second_opinion(
        self,
        routed: RoutedResponse,
        remaining: Sequence[LLMProvider],
        prompt: str,
        confidence_of: Optional[Callable[[Any], float]],
    ) -> RoutedResponse:
        if self.low_confidence_threshold is None or confidence_of is None or not remaining:
            return routed

        confidence = confidence_of(routed.payload)
        if confidence >= self.low_confidence_threshold:
            return routed

        secondary = remaining[0]
        logger.info(
            f"Confidence {confidence:.2f} from '{routed.provider}' is below "
            f"{self.low_confidence_threshold}; asking '{secondary.provider_id}' too."
        )
        try:
            challenger = self._call(secondary, prompt)
        except ProviderError as e:
            logger.warning(f"Second opinion from '{secondary.provider_id}' failed, keeping '{routed.provider}': {e}")
            return routed

        if confidence_of(challenger.payload) > confidence:
            return challenger
        return routed
