import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from note_triage.adapters.chat_completion_adapter import ChatCompletionAdapter
from note_triage.adapters.gemini_adapter import GeminiAdapter
from note_triage.core.config import Settings
from note_triage.core.errors import InvalidRequestError
from note_triage.core.models import ClassificationRequest, ClassificationResult, NoteLine
from note_triage.core.prompts import ANALYZE_TEMPLATE, CLASSIFY_TEMPLATE, PromptBuilder, load_template
from note_triage.core.response_cache import ResponseCache
from note_triage.core.router import ClassificationRouter
from note_triage.core.sanitizer import ResultSanitizer
from note_triage.core.utils import build_cache_key

logger = logging.getLogger("TriageService")


class ClassificationService:
    """
    Request pipeline: cache lookup, prompt, router, sanitizer, cache store.

    The cache is owned by the service instance, so every test (or app) can
    build an isolated pipeline.
    """

    def __init__(
        self,
        router: ClassificationRouter,
        cache: ResponseCache,
        prompt_builder: PromptBuilder,
        sanitizer: ResultSanitizer,
        batch_workers: int = 8,
    ) -> None:
        self.router = router
        self.cache = cache
        self.prompt_builder = prompt_builder
        self.sanitizer = sanitizer
        self.batch_workers = max(1, batch_workers)

    def classify(self, request: ClassificationRequest) -> Tuple[ClassificationResult, bool]:
        """
        Classifies a single note.

        Returns:
            Tuple[ClassificationResult, bool]: The result and whether it came from the cache.

        Raises:
            InvalidRequestError: Blank text.
            NoProviderAvailableError: Every provider failed.
        """
        if not request.text or not request.text.strip():
            raise InvalidRequestError("text is required")
        return self._classify_text(request, request.text, lenient=False)

    def _classify_text(
        self, request: ClassificationRequest, text: str, lenient: bool
    ) -> Tuple[ClassificationResult, bool]:
        subcategories = request.effective_subcategories()
        key = build_cache_key(text, request.categories, subcategories, mode="classify")
        cached = self.cache.get(key)
        if cached is not None:
            return self.sanitizer.recase(cached, request.categories, subcategories), True

        single = replace(request, text=text)
        prompt = self.prompt_builder.build_classify_prompt(single)

        def confidence_of(payload) -> float:
            return self.sanitizer.sanitize(payload, request.categories, subcategories).confidence

        routed = self.router.classify(prompt, lenient=lenient, confidence_of=confidence_of)
        result = self.sanitizer.sanitize(routed.payload, request.categories, subcategories)
        result = replace(result, provider=routed.provider)

        if not routed.degraded:
            self.cache.set(key, result)
        logger.debug(f"'{text[:40]}' -> {result.category}/{result.subcategory or '-'}")
        logger.info(
            f"Classified as {result.category} conf={result.confidence:.2f} via {result.provider}",
            extra={"provider": result.provider, "category": result.category, "cached": False},
        )
        return result, False

    def classify_lines(
        self, request: ClassificationRequest, lines: Sequence[NoteLine]
    ) -> List[Tuple[ClassificationResult, bool]]:
        """
        Classifies each line with its own provider call, running calls concurrently.

        Results are reassembled by line index, so output[i] always belongs to
        lines[i] whatever order the calls finish in. An unparseable answer only
        degrades its own line.
        """
        if not lines:
            raise InvalidRequestError("at least one non-empty line is required")

        results: List[Optional[Tuple[ClassificationResult, bool]]] = [None] * len(lines)
        with ThreadPoolExecutor(max_workers=min(self.batch_workers, len(lines))) as executor:
            future_to_index = {
                executor.submit(self._classify_text, request, line.cleaned, True): i
                for i, line in enumerate(lines)
            }
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                result, cached = future.result()
                results[index] = (replace(result, text=lines[index].original), cached)

        logger.info(f"Batch of {len(lines)} lines classified.")
        return results

    def analyze(
        self, request: ClassificationRequest, lines: Sequence[NoteLine]
    ) -> Tuple[List[ClassificationResult], str, bool]:
        """
        Classifies all lines with a single provider call.

        Returns:
            Tuple[List[ClassificationResult], str, bool]: Positionally aligned
                results, the provider that answered, and the cache flag.
        """
        if not lines:
            raise InvalidRequestError("at least one non-empty line is required")

        subcategories = request.effective_subcategories()
        joined = "\n".join(line.cleaned for line in lines)
        key = build_cache_key(joined, request.categories, subcategories, mode="analyze")
        cached = self.cache.get(key)
        if cached is not None:
            items, provider = cached
            return (
                [
                    replace(self.sanitizer.recase(item, request.categories, subcategories), text=line.original)
                    for item, line in zip(items, lines)
                ],
                provider,
                True,
            )

        prompt = self.prompt_builder.build_analyze_prompt(request, lines)
        routed = self.router.classify(prompt, lenient=True)
        items = [
            replace(item, provider=routed.provider)
            for item in self.sanitizer.sanitize_batch(routed.payload, lines, request.categories, subcategories)
        ]

        if not routed.degraded:
            self.cache.set(key, (tuple(items), routed.provider))
        logger.info(
            f"Analyzed {len(lines)} lines via {routed.provider}",
            extra={"provider": routed.provider, "lines": len(lines), "cached": False},
        )
        return items, routed.provider, False


def build_service(settings: Settings) -> ClassificationService:
    """
    Wires providers, router, cache, prompt builder and sanitizer from settings.
    """
    providers = [
        GeminiAdapter(settings.gemini_api_key, settings.gemini_model, timeout=settings.request_timeout),
        ChatCompletionAdapter(
            settings.openai_api_key,
            settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout,
        ),
    ]
    router = ClassificationRouter(
        providers,
        fallback_category=settings.fallback_category,
        low_confidence_threshold=settings.low_confidence_threshold,
    )
    prompt_builder = PromptBuilder(
        classify_template=load_template(settings.classify_template_file, CLASSIFY_TEMPLATE),
        analyze_template=load_template(settings.analyze_template_file, ANALYZE_TEMPLATE),
        subcategory_threshold=settings.subcategory_threshold,
        fallback_category=settings.fallback_category,
        max_hints_per_category=settings.max_hints_per_category,
    )
    sanitizer = ResultSanitizer(
        fallback_category=settings.fallback_category,
        default_confidence=settings.fallback_confidence,
        subcategory_threshold=settings.subcategory_threshold,
        reason_max_length=settings.reason_max_length,
    )
    cache = ResponseCache(settings.cache_max_entries, settings.cache_ttl_seconds)
    return ClassificationService(router, cache, prompt_builder, sanitizer, settings.batch_workers)
